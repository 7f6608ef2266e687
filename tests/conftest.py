"""Shared test fixtures and configuration."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import pytest

from chat_history.config import GenerationConfig, HistoryConfig
from chat_history.history import HistoryManager
from chat_history.session import ChatSession
from chat_history.store import ConversationStore
from tests.mocks.history import FakeGenerator, FakeSummarizer, FakeTokenCounter

if TYPE_CHECKING:
    from pathlib import Path


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Set default timeout for all tests."""
    for item in items:
        with contextlib.suppress(AttributeError):
            item.add_marker(pytest.mark.timeout(3))


@pytest.fixture
def token_counter() -> FakeTokenCounter:
    return FakeTokenCounter()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def history_config() -> HistoryConfig:
    return HistoryConfig(max_turn_pairs=5, token_budget=1000, summary_trigger_tokens=800)


@pytest.fixture
def manager(
    history_config: HistoryConfig,
    token_counter: FakeTokenCounter,
    summarizer: FakeSummarizer,
) -> HistoryManager:
    return HistoryManager(history_config, token_counter, summarizer)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def store(tmp_path: Path) -> ConversationStore:
    return ConversationStore(tmp_path / "conversations")


@pytest.fixture
def session(
    manager: HistoryManager,
    generator: FakeGenerator,
    store: ConversationStore,
) -> ChatSession:
    return ChatSession(manager, generator, GenerationConfig(), store=store)
