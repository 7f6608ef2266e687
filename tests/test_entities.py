"""Tests for turns, segments and the reply accumulator."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from chat_history.accumulator import ReplyAccumulator
from chat_history.entities import (
    AttachmentSegment,
    HistoryState,
    ReplyFragment,
    TextSegment,
    Turn,
)


class TestTurn:
    """Tests for the Turn model."""

    def test_text_views(self) -> None:
        turn = Turn.model(
            TextSegment(text="Let me ", is_reasoning=True),
            "The answer",
            TextSegment(text="think.", is_reasoning=True),
            " is 42.",
        )
        assert turn.answer_text == "The answer is 42."
        assert turn.reasoning_text == "Let me think."
        assert turn.text_length == len("Let me The answerthink. is 42.")

    def test_attachments(self) -> None:
        image = AttachmentSegment(data=b"\x00\x01", media_type="image/jpeg", file_name="a.jpg")
        turn = Turn.user("Look", image)
        assert turn.has_attachments
        assert turn.attachments == [image]
        assert turn.text_length == 4
        assert not Turn.user("plain").has_attachments

    def test_turns_are_immutable(self) -> None:
        turn = Turn.user("hi")
        with pytest.raises(ValidationError):
            turn.role = "model"  # type: ignore[misc]

    def test_invalid_role(self) -> None:
        with pytest.raises(ValidationError):
            Turn(role="system", segments=())  # type: ignore[arg-type]

    def test_json_round_trip_keeps_segment_kinds(self) -> None:
        turn = Turn.user(
            "caption",
            AttachmentSegment(data=b"\xff\xd8binary", media_type="image/jpeg"),
        )
        restored = Turn.model_validate_json(turn.model_dump_json())
        assert restored == turn
        assert isinstance(restored.segments[1], AttachmentSegment)


class TestHistoryState:
    """Tests for the mutable state container."""

    def test_pending_reply_and_reset(self) -> None:
        state = HistoryState()
        assert not state.pending_reply
        state.turns.append(Turn.user("hi"))
        assert state.pending_reply
        state.summary = "S"
        state.token_count = 5
        state.reset()
        assert state.turns == []
        assert state.summary is None
        assert state.token_count == 0

    def test_pending_reply_follows_last_role(self) -> None:
        state = HistoryState(turns=[Turn.user("a"), Turn.model("b"), Turn.user("c"), Turn.user("d")])
        assert state.pending_reply
        state.turns.append(Turn.model("e"))
        assert not state.pending_reply
        state.turns.append(Turn.model("f"))
        assert not state.pending_reply


class TestReplyAccumulator:
    """Tests for assembling streamed fragments into a model turn."""

    def test_coalesces_runs_in_order(self) -> None:
        acc = ReplyAccumulator()
        acc.add_text("Let me ", is_reasoning=True)
        acc.add_text("think.", is_reasoning=True)
        acc.add_text("Hello")
        acc.add_text(" there!")
        turn = acc.build()
        assert turn.role == "model"
        assert turn.segments == (
            TextSegment(text="Let me think.", is_reasoning=True),
            TextSegment(text="Hello there!"),
        )

    def test_interleaved_reasoning_stays_ordered(self) -> None:
        acc = ReplyAccumulator()
        for fragment in [
            ReplyFragment(text="a", is_reasoning=True),
            ReplyFragment(text="b"),
            ReplyFragment(text="c", is_reasoning=True),
        ]:
            acc.add(fragment)
        assert [s.is_reasoning for s in acc.build().segments] == [True, False, True]
        assert acc.answer_text == "b"
        assert acc.reasoning_text == "ac"

    def test_empty_fragments_are_ignored(self) -> None:
        acc = ReplyAccumulator()
        acc.add_text("")
        assert acc.is_empty
        with pytest.raises(ValueError, match="empty stream"):
            acc.build()

    def test_build_is_final(self) -> None:
        acc = ReplyAccumulator()
        acc.add_text("done")
        turn = acc.build()
        assert acc.build() is turn
        with pytest.raises(RuntimeError):
            acc.add_text("more")
