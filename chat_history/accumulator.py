"""Builder that turns a stream of reply fragments into one immutable model turn."""

from __future__ import annotations

from dataclasses import dataclass, field

from chat_history.entities import ReplyFragment, TextSegment, Turn


@dataclass
class ReplyAccumulator:
    """Collects ordered answer/reasoning fragments while a reply streams.

    Consecutive fragments of the same kind are merged into one segment, so a
    reply that reasons first and then answers becomes two segments.
    """

    fragments: list[ReplyFragment] = field(default_factory=list)
    _built: Turn | None = field(default=None, init=False, repr=False)

    def add(self, fragment: ReplyFragment) -> None:
        """Record a streamed fragment. Empty fragments are ignored."""
        if self._built is not None:
            msg = "Reply already built; start a new accumulator"
            raise RuntimeError(msg)
        if fragment.text:
            self.fragments.append(fragment)

    def add_text(self, text: str, *, is_reasoning: bool = False) -> None:
        self.add(ReplyFragment(text=text, is_reasoning=is_reasoning))

    @property
    def answer_text(self) -> str:
        return "".join(f.text for f in self.fragments if not f.is_reasoning)

    @property
    def reasoning_text(self) -> str:
        return "".join(f.text for f in self.fragments if f.is_reasoning)

    @property
    def is_empty(self) -> bool:
        return not self.fragments

    def build(self) -> Turn:
        """Return the finished model turn; repeated calls return the same turn."""
        if self._built is not None:
            return self._built
        if self.is_empty:
            msg = "Cannot build a reply from an empty stream"
            raise ValueError(msg)
        segments: list[TextSegment] = []
        for fragment in self.fragments:
            if segments and segments[-1].is_reasoning == fragment.is_reasoning:
                previous = segments.pop()
                segments.append(
                    TextSegment(text=previous.text + fragment.text, is_reasoning=fragment.is_reasoning),
                )
            else:
                segments.append(TextSegment(text=fragment.text, is_reasoning=fragment.is_reasoning))
        self._built = Turn(role="model", segments=tuple(segments))
        return self._built
