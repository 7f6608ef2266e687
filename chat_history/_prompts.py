"""Prompt templates and transcript rendering for history summarization."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from chat_history.entities import Turn

SUMMARY_SYSTEM_PROMPT = "You are a concise summarizer. Output only the summary, no preamble."

HISTORY_SUMMARY_PROMPT = """Summarize the key information in the following exchange concisely.
Keep facts the user shared, decisions made and open questions.
Skip greetings and chitchat.

Conversation:
{transcript}

Summary (at most {max_chars} characters):""".strip()

# Synthetic preamble that anchors the compressed history at the start of the context.
BACKGROUND_TEMPLATE = "[Conversation background: {summary}]"
BACKGROUND_ACK = "Understood, I'm aware of the prior context."

FALLBACK_SUMMARY_TEMPLATE = "[{pairs} turn-pairs of prior conversation occurred]"

_ROLE_LABELS = {"user": "User", "model": "AI"}


def format_transcript(turns: Sequence[Turn], max_chars_per_turn: int) -> str:
    """Render turns as ``Role: text`` lines for the summarizer.

    Reasoning segments are left out and attachments are replaced by a
    placeholder naming their media type.
    """
    lines: list[str] = []
    for turn in turns:
        parts: list[str] = []
        for segment in turn.segments:
            if segment.kind == "attachment":
                parts.append(f"[attachment: {segment.media_type}]")
            elif not segment.is_reasoning:
                parts.append(segment.text)
        text = "".join(parts)
        if len(text) > max_chars_per_turn:
            text = text[:max_chars_per_turn] + "..."
        lines.append(f"{_ROLE_LABELS[turn.role]}: {text}")
    return "\n".join(lines)


def fallback_summary(removed_turns: int) -> str:
    """Placeholder digest used when the summarizer is unavailable."""
    return FALLBACK_SUMMARY_TEMPLATE.format(pairs=removed_turns // 2)
