"""One interactive conversation: history, generation and persistence wired together."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from chat_history.accumulator import ReplyAccumulator
from chat_history.errors import GenerationError, SessionBusyError, StoreError
from chat_history.presets import DEFAULT_PRESET_ID, get_preset, resolve_system_prompt

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from chat_history.config import GenerationConfig, ReasoningDisabled, ReasoningEnabled
    from chat_history.entities import ReplyFragment, Turn
    from chat_history.history import HistoryManager, TurnInput
    from chat_history.services.base import ModelGenerator
    from chat_history.store import ConversationStore, StoredConversation

LOGGER = logging.getLogger(__name__)


class ChatSession:
    """Drives one exchange at a time against a `HistoryManager`.

    The conversation record is only created in the store when the first
    exchange completes.
    """

    def __init__(
        self,
        manager: HistoryManager,
        generator: ModelGenerator,
        generation_config: GenerationConfig,
        *,
        store: ConversationStore | None = None,
        preset_id: str = DEFAULT_PRESET_ID,
        custom_prompt: str | None = None,
    ) -> None:
        self.manager = manager
        self.generator = generator
        self.store = store
        self.preset_id = get_preset(preset_id).id
        self.custom_prompt = custom_prompt
        self.conversation_id: str | None = None
        self._base_config = generation_config
        self._reasoning = generation_config.reasoning
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def generation_config(self) -> GenerationConfig:
        """Generation settings for the current persona and reasoning policy."""
        return self._base_config.model_copy(
            update={
                "system_prompt": resolve_system_prompt(self.preset_id, self.custom_prompt),
                "reasoning": self._reasoning,
            },
        )

    def set_reasoning(self, policy: ReasoningDisabled | ReasoningEnabled) -> None:
        self._reasoning = policy

    async def send(self, segments: TurnInput) -> AsyncIterator[ReplyFragment]:
        """Run one exchange, yielding reply fragments as they stream.

        On failure or cancellation the user turn is rolled back so the history
        stays paired, and the error propagates. Nothing is persisted for a
        failed exchange.
        """
        if self._busy:
            msg = "A reply is still streaming; wait for it before sending again"
            raise SessionBusyError(msg)
        self._busy = True
        try:
            user_turn = self.manager.append_user_turn(segments)
            accumulator = ReplyAccumulator()
            try:
                await self.manager.trim_if_needed()
                context = self.manager.get_effective_context()
                async for fragment in self.generator.stream(context, self.generation_config):
                    accumulator.add(fragment)
                    yield fragment
                if accumulator.is_empty:
                    msg = "The model returned an empty reply"
                    raise GenerationError(msg)
            except (Exception, asyncio.CancelledError, GeneratorExit):
                self.manager.rollback_pending_user_turn()
                raise
            model_turn = self.manager.append_model_turn(accumulator.build())
            await self.manager.recompute_token_count()
            self._persist_exchange(user_turn, model_turn)
        finally:
            self._busy = False

    def _persist_exchange(self, user_turn: Turn, model_turn: Turn) -> None:
        if self.store is None:
            return
        if self.conversation_id is None:
            self.conversation_id = self.store.create(self.preset_id, self.custom_prompt).id
        existing = self.store.get(self.conversation_id)
        stored_turns = (len(existing.turns) if existing else 0) + 2
        self.store.append_exchange(
            self.conversation_id,
            [user_turn, model_turn],
            summary=self.manager.summary,
            summarized_turns=stored_turns - len(self.manager),
            token_count=self.manager.token_count,
        )

    def new_conversation(self) -> None:
        """Start over; the previous conversation stays in the store."""
        self.conversation_id = None
        self.manager.clear()

    def switch_persona(self, preset_id: str, custom_prompt: str | None = None) -> None:
        """Change the system prompt. History is cleared and a new conversation begins."""
        self.preset_id = get_preset(preset_id).id
        self.custom_prompt = custom_prompt
        self.new_conversation()
        LOGGER.info("Switched persona to %s", self.preset_id)

    def clear_history(self) -> int:
        """Clear the current conversation's history. Returns the number of turns dropped."""
        count = len(self.manager)
        self.manager.clear()
        if self.store is not None and self.conversation_id is not None:
            self.store.clear_turns(self.conversation_id)
        return count

    async def load_conversation(self, conversation_id: str) -> StoredConversation:
        """Rehydrate a stored conversation without summarizing anything."""
        if self.store is None:
            msg = "No conversation store configured"
            raise StoreError(msg)
        conversation = self.store.get(conversation_id)
        if conversation is None:
            msg = f"Conversation not found: {conversation_id}"
            raise StoreError(msg)

        self.manager.clear()
        self.preset_id = get_preset(conversation.preset_id).id
        self.custom_prompt = conversation.custom_prompt
        for turn in conversation.turns[conversation.summarized_turns :]:
            if turn.role == "user":
                self.manager.append_user_turn(turn)
            else:
                self.manager.append_model_turn(turn)
        self.manager.restore_summary(conversation.summary)

        if conversation.token_count > 0:
            self.manager.restore_token_count(conversation.token_count)
        elif len(self.manager) > 0:
            count = await self.manager.recompute_token_count()
            self.store.update_token_count(conversation_id, count)

        self.conversation_id = conversation_id
        LOGGER.info(
            "Loaded conversation %s (%d turns, summary=%s)",
            conversation_id,
            len(self.manager),
            self.manager.has_summary,
        )
        return conversation
