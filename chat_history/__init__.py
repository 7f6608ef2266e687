"""Chat history management with sliding windows, token budgets and rolling summaries.

Example:
    from chat_history import HistoryConfig, HistoryManager

    manager = HistoryManager(HistoryConfig(max_turn_pairs=10), counter, summarizer)
    manager.append_user_turn(["Hello!"])
    await manager.trim_if_needed()
    context = manager.get_effective_context()
    ...
    manager.append_model_turn(["Hi, how can I help?"])
    await manager.recompute_token_count()

"""

from chat_history.accumulator import ReplyAccumulator
from chat_history.config import (
    GenerationConfig,
    HistoryConfig,
    ProviderConfig,
    ReasoningDisabled,
    ReasoningEnabled,
    Settings,
)
from chat_history.entities import (
    AttachmentSegment,
    HistoryState,
    ReplyFragment,
    TextSegment,
    Turn,
)
from chat_history.errors import (
    ChatHistoryError,
    CountingError,
    GenerationError,
    PairingError,
    SessionBusyError,
    StoreError,
    SummarizationError,
)
from chat_history.history import HistoryManager, TrimResult

__all__ = [
    "AttachmentSegment",
    "ChatHistoryError",
    "CountingError",
    "GenerationConfig",
    "GenerationError",
    "HistoryConfig",
    "HistoryManager",
    "HistoryState",
    "PairingError",
    "ProviderConfig",
    "ReasoningDisabled",
    "ReasoningEnabled",
    "ReplyAccumulator",
    "ReplyFragment",
    "SessionBusyError",
    "Settings",
    "StoreError",
    "SummarizationError",
    "TextSegment",
    "TrimResult",
    "Turn",
]
