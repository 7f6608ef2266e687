"""Factory functions for wiring settings into services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat_history.history import HistoryManager
from chat_history.presets import CUSTOM_PRESET_ID, DEFAULT_PRESET_ID
from chat_history.services.openai import (
    LLMSummarizer,
    OpenAIStreamingGenerator,
    TiktokenCounter,
)
from chat_history.session import ChatSession
from chat_history.store import ConversationStore

if TYPE_CHECKING:
    from chat_history.config import Settings


def get_history_manager(settings: Settings) -> HistoryManager:
    """History manager backed by tiktoken counting and LLM summaries."""
    return HistoryManager(
        settings.history,
        TiktokenCounter(settings.provider.model),
        LLMSummarizer(settings.provider),
    )


def get_chat_session(settings: Settings, *, persist: bool = True) -> ChatSession:
    """Chat session for the configured provider, optionally persisting to the store."""
    store = ConversationStore(settings.store.resolved_path) if persist else None
    system_prompt = settings.generation.system_prompt
    return ChatSession(
        get_history_manager(settings),
        OpenAIStreamingGenerator(settings.provider),
        settings.generation,
        store=store,
        preset_id=CUSTOM_PRESET_ID if system_prompt else DEFAULT_PRESET_ID,
        custom_prompt=system_prompt,
    )
