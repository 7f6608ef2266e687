"""File-backed conversation store.

Each conversation is one JSON document holding its turns, the running history
summary and the last token count, so a reload restores exactly the context
the model saw before.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from pydantic import BaseModel, Field, ValidationError

from chat_history import constants
from chat_history.entities import Turn  # noqa: TC001
from chat_history.errors import StoreError
from chat_history.presets import DEFAULT_PRESET_ID, get_preset
from chat_history.utils import atomic_write_text

if TYPE_CHECKING:
    from pathlib import Path

LOGGER = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(UTC)


class StoredConversation(BaseModel):
    """A persisted conversation."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str | None = None
    preset_id: str = DEFAULT_PRESET_ID
    custom_prompt: str | None = None
    summary: str | None = None
    # Leading turns already folded into `summary`; they are not replayed on reload.
    summarized_turns: int = Field(0, ge=0)
    token_count: int = Field(0, ge=0)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    turns: list[Turn] = Field(default_factory=list)


def _title_from(text: str) -> str:
    text = " ".join(text.split())
    if len(text) > constants.TITLE_MAX_CHARS:
        return text[: constants.TITLE_MAX_CHARS] + "..."
    return text


class ConversationStore:
    """Key-addressed store of conversations under a directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, conversation_id: str) -> Path:
        if not conversation_id or "/" in conversation_id or conversation_id.startswith("."):
            msg = f"Invalid conversation id: {conversation_id!r}"
            raise StoreError(msg)
        return self.root / f"{conversation_id}.json"

    def _write(self, conversation: StoredConversation) -> None:
        try:
            atomic_write_text(
                self._path(conversation.id),
                conversation.model_dump_json(indent=2),
            )
        except OSError as e:
            msg = f"Failed to save conversation {conversation.id}: {e}"
            raise StoreError(msg) from e

    def _require(self, conversation_id: str) -> StoredConversation:
        conversation = self.get(conversation_id)
        if conversation is None:
            msg = f"Conversation not found: {conversation_id}"
            raise StoreError(msg)
        return conversation

    def create(
        self,
        preset_id: str = DEFAULT_PRESET_ID,
        custom_prompt: str | None = None,
    ) -> StoredConversation:
        """Create and persist an empty conversation."""
        conversation = StoredConversation(preset_id=preset_id, custom_prompt=custom_prompt)
        self._write(conversation)
        LOGGER.debug("Created conversation %s", conversation.id)
        return conversation

    def get(self, conversation_id: str) -> StoredConversation | None:
        """Load a conversation, or None if it does not exist."""
        path = self._path(conversation_id)
        if not path.exists():
            return None
        try:
            return StoredConversation.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            msg = f"Failed to load conversation {conversation_id}: {e}"
            raise StoreError(msg) from e

    def list_conversations(self) -> list[StoredConversation]:
        """All readable conversations, most recently updated first."""
        if not self.root.exists():
            return []
        conversations = []
        for path in self.root.glob("*.json"):
            try:
                conversations.append(
                    StoredConversation.model_validate_json(path.read_text(encoding="utf-8")),
                )
            except (OSError, ValidationError):
                LOGGER.warning("Skipping unreadable conversation file: %s", path)
        return sorted(conversations, key=lambda c: c.updated_at, reverse=True)

    def append_exchange(
        self,
        conversation_id: str,
        turns: list[Turn],
        *,
        summary: str | None,
        summarized_turns: int,
        token_count: int,
    ) -> StoredConversation:
        """Persist a completed exchange together with the refreshed history state."""
        conversation = self._require(conversation_id)
        for turn in turns:
            conversation.turns.append(turn)
            if not conversation.title and turn.role == "user" and turn.answer_text.strip():
                conversation.title = _title_from(turn.answer_text)
        conversation.summary = summary
        conversation.summarized_turns = min(summarized_turns, len(conversation.turns))
        conversation.token_count = token_count
        conversation.updated_at = _now()
        self._write(conversation)
        return conversation

    def update_token_count(self, conversation_id: str, token_count: int) -> None:
        conversation = self._require(conversation_id)
        conversation.token_count = token_count
        self._write(conversation)

    def update_title(self, conversation_id: str, title: str) -> None:
        conversation = self._require(conversation_id)
        conversation.title = title
        conversation.updated_at = _now()
        self._write(conversation)

    def clear_turns(self, conversation_id: str) -> None:
        """Drop all turns, the summary and the token count but keep the conversation."""
        conversation = self._require(conversation_id)
        conversation.turns.clear()
        conversation.summary = None
        conversation.summarized_turns = 0
        conversation.token_count = 0
        conversation.updated_at = _now()
        self._write(conversation)

    def delete(self, conversation_id: str) -> bool:
        """Delete a conversation. Returns False if it did not exist."""
        path = self._path(conversation_id)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            msg = f"Failed to delete conversation {conversation_id}: {e}"
            raise StoreError(msg) from e
        LOGGER.debug("Deleted conversation %s", conversation_id)
        return True


# --- Export ---


def export_markdown(conversation: StoredConversation) -> str:
    """Render a conversation as Markdown, reasoning folded into <details> blocks."""
    lines = [
        f"# {conversation.title or 'Untitled conversation'}",
        f"> Exported {_now():%Y-%m-%d %H:%M:%S} UTC | Preset: {get_preset(conversation.preset_id).name}",
        "",
        "---",
        "",
    ]
    for turn in conversation.turns:
        lines.extend([f"**{'User' if turn.role == 'user' else 'Assistant'}**:", ""])
        if turn.answer_text:
            lines.extend([turn.answer_text, ""])
        lines.extend(f"*[attachment: {a.file_name or a.media_type}]*" for a in turn.attachments)
        if turn.attachments:
            lines.append("")
        if turn.reasoning_text.strip():
            lines.extend(
                [
                    "<details>",
                    "<summary>Reasoning</summary>",
                    "",
                    turn.reasoning_text,
                    "",
                    "</details>",
                    "",
                ],
            )
        lines.extend(["---", ""])
    return "\n".join(lines)


def export_json(conversation: StoredConversation) -> str:
    """Render a conversation as JSON with export metadata; attachments are omitted."""
    data = {
        "metadata": {
            "title": conversation.title,
            "preset_id": conversation.preset_id,
            "exported_at": _now().isoformat(),
            "message_count": len(conversation.turns),
        },
        "messages": [
            {
                "role": turn.role,
                "content": turn.answer_text,
                "reasoning": turn.reasoning_text or None,
                "attachments": [a.media_type for a in turn.attachments],
            }
            for turn in conversation.turns
        ],
    }
    return json.dumps(data, indent=2, ensure_ascii=False)
