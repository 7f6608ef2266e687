"""Tests for the CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from chat_history.cli import app
from chat_history.config import GenerationConfig
from chat_history.entities import Turn
from chat_history.session import ChatSession
from chat_history.store import ConversationStore

if TYPE_CHECKING:
    from pathlib import Path

    from chat_history.history import HistoryManager

runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(f'[store]\npath = "{(tmp_path / "store").as_posix()}"\n')
    return path


@pytest.fixture
def stored_id(tmp_path: Path) -> str:
    store = ConversationStore(tmp_path / "store")
    conversation = store.create()
    store.append_exchange(
        conversation.id,
        [Turn.user("Hi there"), Turn.model("Hello!")],
        summary=None,
        summarized_turns=0,
        token_count=12,
    )
    return conversation.id


def test_main_no_args() -> None:
    """Test the main function with no arguments."""
    result = runner.invoke(app)
    assert "No command specified" in result.stdout
    assert "Usage" in result.stdout


def test_presets() -> None:
    """Test listing personas."""
    result = runner.invoke(app, ["presets"])
    assert result.exit_code == 0
    assert "programmer" in result.stdout
    assert "translator" in result.stdout


def test_conversations_empty(config_file: Path) -> None:
    result = runner.invoke(app, ["conversations", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "No stored conversations" in result.stdout


def test_conversations_lists_stored(config_file: Path, stored_id: str) -> None:
    result = runner.invoke(app, ["conversations", "--config", str(config_file)])
    assert result.exit_code == 0
    assert stored_id[:8] in result.stdout
    assert "Hi there" in result.stdout


def test_export_markdown(config_file: Path, stored_id: str) -> None:
    result = runner.invoke(app, ["export", stored_id, "--config", str(config_file)])
    assert result.exit_code == 0
    assert "# Hi there" in result.stdout
    assert "Hello!" in result.stdout


def test_export_json_to_file(config_file: Path, stored_id: str, tmp_path: Path) -> None:
    output = tmp_path / "out.json"
    result = runner.invoke(
        app,
        ["export", stored_id, "-f", "json", "-o", str(output), "--config", str(config_file)],
    )
    assert result.exit_code == 0
    data = json.loads(output.read_text())
    assert [m["content"] for m in data["messages"]] == ["Hi there", "Hello!"]


def test_export_missing(config_file: Path) -> None:
    result = runner.invoke(app, ["export", "nope", "--config", str(config_file)])
    assert result.exit_code == 1
    assert "Conversation not found" in result.stdout


def test_rename(config_file: Path, stored_id: str, tmp_path: Path) -> None:
    result = runner.invoke(app, ["rename", stored_id, "Greetings", "--config", str(config_file)])
    assert result.exit_code == 0
    stored = ConversationStore(tmp_path / "store").get(stored_id)
    assert stored is not None
    assert stored.title == "Greetings"


def test_delete(config_file: Path, stored_id: str, tmp_path: Path) -> None:
    result = runner.invoke(app, ["delete", stored_id, "--config", str(config_file)])
    assert result.exit_code == 0
    assert "Deleted" in result.stdout
    assert ConversationStore(tmp_path / "store").get(stored_id) is None

    result = runner.invoke(app, ["delete", stored_id, "--config", str(config_file)])
    assert result.exit_code == 1
    assert "Conversation not found" in result.stdout


def test_invalid_config(tmp_path: Path) -> None:
    path = tmp_path / "bad.toml"
    path.write_text("[history]\ntoken-budget = 10\nsummary-trigger-tokens = 20\n")
    result = runner.invoke(app, ["conversations", "--config", str(path)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout


def test_chat_invalid_reasoning(config_file: Path) -> None:
    result = runner.invoke(
        app,
        ["chat", "--config", str(config_file), "--reasoning", "extreme", "--no-store"],
    )
    assert result.exit_code == 1
    assert "Unknown reasoning level" in result.stdout


def test_chat_loop(config_file: Path, manager: HistoryManager, generator: object) -> None:
    """A message and a slash command are handled before input runs out."""
    session = ChatSession(manager, generator, GenerationConfig())  # type: ignore[arg-type]
    with patch("chat_history.cli.get_chat_session", return_value=session) as mock_factory:
        result = runner.invoke(
            app,
            ["chat", "--config", str(config_file), "--no-store"],
            input="Hi\n/tokens\n",
        )
    assert result.exit_code == 0
    assert mock_factory.call_args.kwargs == {"persist": False}
    assert "Hello there!" in result.stdout
    assert "Tokens: 20" in result.stdout
    assert len(manager) == 2
