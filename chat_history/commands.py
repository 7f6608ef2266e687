"""Slash command handling for the interactive chat.

Commands like /clear, /new, /persona, /think and /load act on a `ChatSession`
and return a message to show the user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat_history.config import REASONING_LEVELS, ReasoningEnabled, parse_reasoning_policy
from chat_history.errors import StoreError
from chat_history.presets import CUSTOM_PRESET_ID, SYSTEM_PROMPT_PRESETS, get_preset

if TYPE_CHECKING:
    from chat_history.session import ChatSession


def parse_slash_command(text: str) -> tuple[str, list[str]] | None:
    """Parse a slash command from text.

    Args:
        text: The input text to parse

    Returns:
        Tuple of (command, args) if it's a slash command, None otherwise

    """
    text = text.strip()
    if not text.startswith("/"):
        return None

    parts = text[1:].split()
    if not parts:
        return None

    command = parts[0].lower()
    args = parts[1:]
    return command, args


async def handle_slash_command(
    command: str,
    args: list[str],
    session: ChatSession,
) -> str:
    """Execute a slash command and return a response message."""
    if command == "help":
        return _handle_help()

    if command == "clear":
        count = session.clear_history()
        return f"Cleared {count} turns from conversation history"

    if command == "new":
        session.new_conversation()
        return "Started a new conversation"

    if command == "persona":
        return _handle_persona(args, session)

    if command == "think":
        return _handle_think(args, session)

    if command == "tokens":
        return _handle_tokens(session)

    if command == "load":
        return await _handle_load(args, session)

    return f"Unknown command: /{command}. Type /help for available commands."


def _handle_help() -> str:
    """Show help message."""
    levels = "|".join(REASONING_LEVELS)
    return f"""\
Available commands:
  /clear                  Clear conversation history
  /new                    Start a new conversation
  /persona                List personas
  /persona <id> [prompt]  Switch persona (clears history)
  /think off|{levels}
                          Set the reasoning level
  /tokens                 Show token usage
  /load <id>              Load a stored conversation
  /help                   Show this help message

Ctrl+C or Ctrl+D exits."""


def _handle_persona(args: list[str], session: ChatSession) -> str:
    if not args:
        lines = ["Available personas:"]
        for preset in SYSTEM_PROMPT_PRESETS:
            marker = "✓" if preset.id == session.preset_id else " "
            lines.append(f"  {marker} {preset.id} ({preset.name})")
        return "\n".join(lines)

    preset_id = args[0].lower()
    if get_preset(preset_id).id != preset_id:
        return f"Unknown persona: {preset_id}. Use /persona to see available personas."
    custom_prompt = " ".join(args[1:]) or None
    if preset_id == CUSTOM_PRESET_ID and not custom_prompt:
        return "Usage: /persona custom <system prompt>"
    session.switch_persona(preset_id, custom_prompt)
    return f"Switched to {get_preset(preset_id).name}; history cleared"


def _handle_think(args: list[str], session: ChatSession) -> str:
    if not args:
        policy = session.generation_config.reasoning
        current = policy.level if isinstance(policy, ReasoningEnabled) else "off"
        return f"Reasoning: {current}. Use /think off or /think <level>"
    try:
        policy = parse_reasoning_policy(args[0])
    except ValueError as e:
        return str(e)
    session.set_reasoning(policy)
    if isinstance(policy, ReasoningEnabled):
        return f"Reasoning set to {policy.level}"
    return "Reasoning disabled"


def _handle_tokens(session: ChatSession) -> str:
    manager = session.manager
    used = manager.token_count
    budget = manager.token_budget
    summary = "yes" if manager.has_summary else "no"
    return (
        f"Tokens: {used:,} / {budget:,} ({used / budget:.0%}), "
        f"{len(manager)} turns, summary: {summary}"
    )


async def _handle_load(args: list[str], session: ChatSession) -> str:
    if not args:
        return "Usage: /load <conversation id>"
    try:
        conversation = await session.load_conversation(args[0])
    except StoreError as e:
        return str(e)
    return f"Loaded '{conversation.title or conversation.id}' ({len(conversation.turns)} turns)"
