"""Domain entities for chat history.

A conversation is an ordered list of `Turn`s that alternate between the user
and the model. Each turn holds ordered content segments: plain text, text the
model produced while reasoning, or a binary attachment such as an image.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from chat_history.config import HistoryConfig

Role = Literal["user", "model"]


class TextSegment(BaseModel):
    """A fragment of text, optionally flagged as the model's internal reasoning."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str
    is_reasoning: bool = False


class AttachmentSegment(BaseModel):
    """A binary attachment (e.g. an uploaded image) with its media type."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    kind: Literal["attachment"] = "attachment"
    data: bytes = Field(..., repr=False)
    media_type: str
    file_name: str | None = None


Segment = Annotated[TextSegment | AttachmentSegment, Field(discriminator="kind")]


def as_segment(value: str | TextSegment | AttachmentSegment) -> TextSegment | AttachmentSegment:
    """Wrap bare strings as visible text segments."""
    if isinstance(value, str):
        return TextSegment(text=value)
    return value


class Turn(BaseModel):
    """One role-labelled unit of conversation.

    Turns are immutable; a model turn is only built once its reply has been
    fully streamed.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    segments: tuple[Segment, ...] = ()

    @classmethod
    def user(cls, *segments: str | TextSegment | AttachmentSegment) -> Turn:
        """Build a user turn."""
        return cls(role="user", segments=tuple(as_segment(s) for s in segments))

    @classmethod
    def model(cls, *segments: str | TextSegment | AttachmentSegment) -> Turn:
        """Build a model turn."""
        return cls(role="model", segments=tuple(as_segment(s) for s in segments))

    @property
    def text_segments(self) -> list[TextSegment]:
        """All text segments, reasoning included."""
        return [s for s in self.segments if isinstance(s, TextSegment)]

    @property
    def attachments(self) -> list[AttachmentSegment]:
        """All attachment segments."""
        return [s for s in self.segments if isinstance(s, AttachmentSegment)]

    @property
    def answer_text(self) -> str:
        """Visible text, reasoning excluded."""
        return "".join(s.text for s in self.text_segments if not s.is_reasoning)

    @property
    def reasoning_text(self) -> str:
        """Reasoning text only."""
        return "".join(s.text for s in self.text_segments if s.is_reasoning)

    @property
    def text_length(self) -> int:
        """Character count of every text segment; attachments count zero."""
        return sum(len(s.text) for s in self.text_segments)

    @property
    def has_attachments(self) -> bool:
        return any(isinstance(s, AttachmentSegment) for s in self.segments)


@dataclass
class HistoryState:
    """Mutable per-conversation state owned by a single `HistoryManager`."""

    config: HistoryConfig = field(default_factory=HistoryConfig)
    turns: list[Turn] = field(default_factory=list)
    summary: str | None = None
    token_count: int = 0

    @property
    def pending_reply(self) -> bool:
        """True while the last turn is a user turn still waiting for its reply."""
        return bool(self.turns) and self.turns[-1].role == "user"

    def reset(self) -> None:
        """Return to the empty state, keeping the config."""
        self.turns.clear()
        self.summary = None
        self.token_count = 0


class ReplyFragment(BaseModel):
    """One streamed piece of a model reply."""

    model_config = ConfigDict(frozen=True)

    text: str
    is_reasoning: bool = False
