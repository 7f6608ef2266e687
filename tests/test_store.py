"""Tests for the file-backed conversation store and exports."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from chat_history.entities import AttachmentSegment, TextSegment, Turn
from chat_history.errors import StoreError
from chat_history.store import ConversationStore, export_json, export_markdown

if TYPE_CHECKING:
    from chat_history.store import StoredConversation


def _exchange(store: ConversationStore, conversation_id: str, question: str) -> StoredConversation:
    return store.append_exchange(
        conversation_id,
        [Turn.user(question), Turn.model(TextSegment(text="hmm", is_reasoning=True), "Sure.")],
        summary=None,
        summarized_turns=0,
        token_count=42,
    )


class TestConversationStore:
    """Tests for CRUD operations."""

    def test_create_and_get(self, store: ConversationStore) -> None:
        conversation = store.create("writer")
        loaded = store.get(conversation.id)
        assert loaded == conversation
        assert loaded is not None
        assert loaded.preset_id == "writer"
        assert loaded.turns == []

    def test_get_missing(self, store: ConversationStore) -> None:
        assert store.get("missing") is None

    @pytest.mark.parametrize("bad_id", ["", "../escape", ".hidden"])
    def test_invalid_ids(self, store: ConversationStore, bad_id: str) -> None:
        with pytest.raises(StoreError, match="Invalid conversation id"):
            store.get(bad_id)

    def test_corrupt_file(self, store: ConversationStore) -> None:
        conversation = store.create()
        (store.root / f"{conversation.id}.json").write_text("{not json")
        with pytest.raises(StoreError, match="Failed to load"):
            store.get(conversation.id)
        assert store.list_conversations() == []

    def test_append_exchange_sets_title(self, store: ConversationStore) -> None:
        conversation = store.create()
        long_question = "word " * 20
        updated = _exchange(store, conversation.id, long_question)
        assert updated.title == ("word " * 10)[:50] + "..."
        assert updated.token_count == 42
        assert updated.updated_at >= conversation.updated_at

        updated = _exchange(store, conversation.id, "second")
        assert len(updated.turns) == 4
        assert updated.title is not None
        assert updated.title.startswith("word")

    def test_summarized_turns_capped(self, store: ConversationStore) -> None:
        conversation = store.create()
        updated = store.append_exchange(
            conversation.id,
            [Turn.user("a"), Turn.model("b")],
            summary="S",
            summarized_turns=10,
            token_count=1,
        )
        assert updated.summarized_turns == 2

    def test_attachments_survive_reload(self, store: ConversationStore) -> None:
        conversation = store.create()
        image = AttachmentSegment(data=b"\x89PNG\r\n", media_type="image/png", file_name="p.png")
        store.append_exchange(
            conversation.id,
            [Turn.user("see", image), Turn.model("nice")],
            summary=None,
            summarized_turns=0,
            token_count=0,
        )
        loaded = store.get(conversation.id)
        assert loaded is not None
        assert loaded.turns[0].attachments == [image]

    def test_list_most_recent_first(self, store: ConversationStore) -> None:
        first = store.create()
        second = store.create()
        _exchange(store, first.id, "newer")
        assert [c.id for c in store.list_conversations()] == [first.id, second.id]

    def test_list_empty_root(self, store: ConversationStore) -> None:
        assert store.list_conversations() == []

    def test_update_title_and_token_count(self, store: ConversationStore) -> None:
        conversation = store.create()
        store.update_title(conversation.id, "Renamed")
        store.update_token_count(conversation.id, 99)
        loaded = store.get(conversation.id)
        assert loaded is not None
        assert loaded.title == "Renamed"
        assert loaded.token_count == 99

    def test_update_missing(self, store: ConversationStore) -> None:
        with pytest.raises(StoreError, match="not found"):
            store.update_title("missing", "x")

    def test_clear_turns(self, store: ConversationStore) -> None:
        conversation = store.create()
        store.append_exchange(
            conversation.id,
            [Turn.user("a"), Turn.model("b")],
            summary="S",
            summarized_turns=2,
            token_count=7,
        )
        store.clear_turns(conversation.id)
        loaded = store.get(conversation.id)
        assert loaded is not None
        assert loaded.turns == []
        assert loaded.summary is None
        assert loaded.summarized_turns == 0
        assert loaded.token_count == 0
        assert loaded.title == "a"

    def test_delete(self, store: ConversationStore) -> None:
        conversation = store.create()
        assert store.delete(conversation.id)
        assert not store.delete(conversation.id)
        assert store.get(conversation.id) is None


class TestExport:
    """Tests for Markdown and JSON exports."""

    def test_markdown(self, store: ConversationStore) -> None:
        conversation = _exchange(store, store.create("programmer").id, "How do I sort?")
        text = export_markdown(conversation)
        assert text.startswith("# How do I sort?\n")
        assert "Preset: Programming expert" in text
        assert "**User**:\n\nHow do I sort?" in text
        assert "**Assistant**:\n\nSure." in text
        assert "<details>\n<summary>Reasoning</summary>\n\nhmm\n\n</details>" in text

    def test_markdown_attachment_placeholder(self, store: ConversationStore) -> None:
        conversation = store.create()
        conversation = store.append_exchange(
            conversation.id,
            [
                Turn.user(AttachmentSegment(data=b"x", media_type="image/png")),
                Turn.model("A picture."),
            ],
            summary=None,
            summarized_turns=0,
            token_count=0,
        )
        text = export_markdown(conversation)
        assert "# Untitled conversation" in text
        assert "*[attachment: image/png]*" in text

    def test_json(self, store: ConversationStore) -> None:
        conversation = _exchange(store, store.create().id, "Question?")
        data = json.loads(export_json(conversation))
        assert data["metadata"]["title"] == "Question?"
        assert data["metadata"]["message_count"] == 2
        assert data["messages"] == [
            {"role": "user", "content": "Question?", "reasoning": None, "attachments": []},
            {"role": "model", "content": "Sure.", "reasoning": "hmm", "attachments": []},
        ]
