"""Sliding-window chat history with token accounting and rolling summaries.

The manager owns the turn list of one conversation and decides, before every
model call, whether the oldest turns have to be compressed:

1. Hard limit: more than ``max_turn_pairs`` pairs are retained, so the oldest
   surplus pairs are summarized and dropped. Needs no network call.
2. Token budget: the effective context counts at least
   ``summary_trigger_tokens``, so the oldest half of the turns (rounded up to
   whole pairs) is summarized and dropped.

Removed turns are folded into a running summary which is replayed to the
model as a synthetic user/model preamble. Failures of the token counter or
the summarizer never reach the caller: counts fall back to a character-based
estimate and digests fall back to a placeholder naming the number of
removed pairs.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat_history import constants
from chat_history._prompts import (
    BACKGROUND_ACK,
    BACKGROUND_TEMPLATE,
    fallback_summary,
    format_transcript,
)
from chat_history.entities import (
    AttachmentSegment,
    HistoryState,
    Role,
    TextSegment,
    Turn,
    as_segment,
)
from chat_history.errors import PairingError
from chat_history.services.base import estimate_tokens_from_chars

if TYPE_CHECKING:
    from chat_history.config import HistoryConfig
    from chat_history.services.base import Summarizer, TokenCounter

LOGGER = logging.getLogger(__name__)

TurnInput = Turn | str | Iterable[str | TextSegment | AttachmentSegment]


@dataclass
class TrimResult:
    """What a single `HistoryManager.trim_if_needed` call removed."""

    hard_limit_removed: int = 0
    token_budget_removed: int = 0
    counted_tokens: int | None = None

    @property
    def removed_turns(self) -> int:
        return self.hard_limit_removed + self.token_budget_removed

    @property
    def trimmed(self) -> bool:
        return self.removed_turns > 0


def _round_up_to_pairs(count: int) -> int:
    return count + 1 if count % 2 else count


class HistoryManager:
    """Owns the `HistoryState` of a single active conversation.

    Calls are expected to be sequential: append user turn, trim, build the
    context, append the model turn, recompute the token count.
    """

    def __init__(
        self,
        config: HistoryConfig,
        token_counter: TokenCounter,
        summarizer: Summarizer,
    ) -> None:
        """Create an empty history governed by ``config``."""
        self._state = HistoryState(config=config)
        self._token_counter = token_counter
        self._summarizer = summarizer

    @classmethod
    def from_state(
        cls,
        state: HistoryState,
        token_counter: TokenCounter,
        summarizer: Summarizer,
    ) -> HistoryManager:
        """Adopt a copy of a previously captured state without re-summarizing it."""
        manager = cls(state.config, token_counter, summarizer)
        manager._state.turns.extend(state.turns)
        manager._state.summary = state.summary or None
        manager._state.token_count = state.token_count
        return manager

    # --- Accessors ---

    @property
    def config(self) -> HistoryConfig:
        return self._state.config

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._state.turns)

    @property
    def summary(self) -> str | None:
        return self._state.summary

    @property
    def has_summary(self) -> bool:
        return bool(self._state.summary)

    @property
    def token_count(self) -> int:
        return self._state.token_count

    @property
    def token_budget(self) -> int:
        """Ceiling surfaced to callers for display; trimming uses the trigger."""
        return self._state.config.token_budget

    @property
    def pending_reply(self) -> bool:
        return self._state.pending_reply

    def __len__(self) -> int:
        return len(self._state.turns)

    def snapshot(self) -> HistoryState:
        """Return a detached copy of the current state."""
        return HistoryState(
            config=self._state.config,
            turns=list(self._state.turns),
            summary=self._state.summary,
            token_count=self._state.token_count,
        )

    # --- Appending ---

    def append_user_turn(self, segments: TurnInput) -> Turn:
        """Append a user turn built from text and/or attachment segments."""
        turn = self._build_turn("user", segments)
        self._check_pairing(expect_pending=False, role="user")
        self._state.turns.append(turn)
        LOGGER.debug("Appended user turn (%d turns)", len(self._state.turns))
        return turn

    def append_model_turn(self, segments: TurnInput) -> Turn:
        """Append a fully assembled model reply, reasoning segments included."""
        turn = self._build_turn("model", segments)
        self._check_pairing(expect_pending=True, role="model")
        self._state.turns.append(turn)
        LOGGER.debug("Appended model turn (%d turns)", len(self._state.turns))
        return turn

    def rollback_pending_user_turn(self) -> Turn | None:
        """Remove a trailing unanswered user turn after a failed or cancelled request."""
        if not self._state.turns or self._state.turns[-1].role != "user":
            return None
        turn = self._state.turns.pop()
        LOGGER.info("Rolled back unanswered user turn")
        return turn

    @staticmethod
    def _build_turn(role: Role, segments: TurnInput) -> Turn:
        if isinstance(segments, Turn):
            if segments.role != role:
                msg = f"Expected a {role} turn, got a {segments.role} turn"
                raise ValueError(msg)
            return segments
        if isinstance(segments, str):
            segments = [segments]
        return Turn(role=role, segments=tuple(as_segment(s) for s in segments))

    def _check_pairing(self, *, expect_pending: bool, role: Role) -> None:
        if self._state.pending_reply == expect_pending:
            return
        msg = f"Appending a {role} turn breaks user/model alternation ({len(self)} turns)"
        if self._state.config.strict_pairing:
            raise PairingError(msg)
        LOGGER.warning(msg)

    # --- Trimming ---

    async def trim_if_needed(self) -> TrimResult:
        """Compress the oldest turns when over the pair limit or the token trigger.

        Only whole pairs are removed and a trailing unanswered user turn is
        never touched, so this is safe to call right after `append_user_turn`.
        """
        result = TrimResult()
        config = self._state.config
        settled = self._settled_turn_count()

        # 1. Hard limit on retained pairs
        max_turns = config.max_turn_pairs * 2
        if len(self._state.turns) > max_turns:
            remove_count = min(
                _round_up_to_pairs(len(self._state.turns) - max_turns),
                settled,
            )
            if remove_count > 0:
                await self._compress_oldest(remove_count, reason="pair limit")
                result.hard_limit_removed = remove_count
                settled -= remove_count

        # 2. Token budget, measured against the already trimmed context
        token_count = await self._count_context()
        result.counted_tokens = token_count
        if token_count >= config.summary_trigger_tokens:
            remove_count = min(_round_up_to_pairs(len(self._state.turns) // 2), settled)
            if remove_count > 0:
                await self._compress_oldest(
                    remove_count,
                    reason=f"{token_count} tokens >= {config.summary_trigger_tokens}",
                )
                result.token_budget_removed = remove_count

        return result

    def _settled_turn_count(self) -> int:
        """Number of leading turns before a trailing unanswered user turn."""
        count = len(self._state.turns)
        return count - 1 if self._state.pending_reply else count

    async def _compress_oldest(self, count: int, *, reason: str) -> None:
        removed = self._state.turns[:count]
        LOGGER.info("Trimming %d oldest turns (%s)", count, reason)
        digest = await self._summarize(removed)
        self._merge_summary(digest)
        del self._state.turns[:count]

    async def _summarize(self, turns: list[Turn]) -> str:
        config = self._state.config
        transcript = format_transcript(turns, config.summary_input_chars)
        try:
            digest = await self._summarizer.summarize(
                turns,
                transcript=transcript,
                max_chars=config.summary_max_chars,
            )
        except Exception:
            LOGGER.warning(
                "Summarization of %d turns failed, using placeholder",
                len(turns),
                exc_info=True,
            )
            return fallback_summary(len(turns))
        if not digest or not digest.strip():
            LOGGER.warning("Summarizer returned an empty digest, using placeholder")
            return fallback_summary(len(turns))
        return digest.strip()

    def _merge_summary(self, digest: str) -> None:
        if self._state.summary:
            self._state.summary = f"{self._state.summary}{constants.SUMMARY_SEPARATOR}{digest}"
        else:
            self._state.summary = digest

    # --- Context assembly and token accounting ---

    def get_effective_context(self) -> list[Turn]:
        """Turns to submit upstream, prefixed by the summary preamble if any.

        The preamble is rebuilt on every call and never stored in history.
        """
        if not self._state.summary:
            return list(self._state.turns)
        return [
            Turn.user(BACKGROUND_TEMPLATE.format(summary=self._state.summary)),
            Turn.model(BACKGROUND_ACK),
            *self._state.turns,
        ]

    async def _count_context(self) -> int:
        context = self.get_effective_context()
        if not context:
            return 0
        try:
            return await self._token_counter.count(context)
        except Exception:
            LOGGER.warning("Token counting failed, using character estimate", exc_info=True)
            return estimate_tokens_from_chars(context)

    async def recompute_token_count(self) -> int:
        """Refresh `token_count` from the effective context and return it."""
        self._state.token_count = await self._count_context()
        return self._state.token_count

    def restore_token_count(self, count: int) -> None:
        """Set the token count from persisted state without counting."""
        if count < 0:
            msg = f"Token count must be non-negative, got {count}"
            raise ValueError(msg)
        self._state.token_count = count

    def restore_summary(self, summary: str | None) -> None:
        """Set the running summary from persisted state without summarizing."""
        self._state.summary = summary or None

    def clear(self) -> None:
        """Forget all turns, the summary and the token count."""
        self._state.reset()
        LOGGER.debug("History cleared")
