"""Interfaces for the collaborators the history manager and chat session depend on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from chat_history import constants

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from chat_history.config import GenerationConfig
    from chat_history.entities import ReplyFragment, Turn


@runtime_checkable
class TokenCounter(Protocol):
    """Counts the tokens a list of turns would occupy in the model's context."""

    async def count(self, turns: Sequence[Turn]) -> int:
        """Return the token count. May raise on any failure."""
        ...


@runtime_checkable
class Summarizer(Protocol):
    """Produces a short natural-language digest of a run of turns."""

    async def summarize(
        self,
        turns: Sequence[Turn],
        *,
        transcript: str,
        max_chars: int,
    ) -> str:
        """Return a digest of ``turns``.

        ``transcript`` is the role-labelled rendering of ``turns`` with
        reasoning removed and attachments replaced by placeholders.
        May raise on any failure.
        """
        ...


class ModelGenerator(ABC):
    """Abstract base class for the main streaming generation call."""

    @abstractmethod
    def stream(
        self,
        turns: Sequence[Turn],
        config: GenerationConfig,
    ) -> AsyncIterator[ReplyFragment]:
        """Stream the reply to ``turns`` as answer and reasoning fragments."""
        ...


def estimate_tokens_from_chars(
    turns: Sequence[Turn],
    factor: float = constants.CHARS_TO_TOKENS_FACTOR,
) -> int:
    """Local token estimate: text characters times ``factor``, rounded down."""
    total_chars = sum(turn.text_length for turn in turns)
    return int(total_chars * factor)
