"""Token counting, summarization and generation backends."""

from chat_history.services.base import (
    ModelGenerator,
    Summarizer,
    TokenCounter,
    estimate_tokens_from_chars,
)

__all__ = [
    "ModelGenerator",
    "Summarizer",
    "TokenCounter",
    "estimate_tokens_from_chars",
]
