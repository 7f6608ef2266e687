"""System prompt presets.

The table is built once at import time and never mutated. It only feeds the
generation config; conversation history does not depend on it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

DEFAULT_PRESET_ID = "default"
CUSTOM_PRESET_ID = "custom"


class SystemPromptPreset(BaseModel):
    """A named system prompt the user can switch to."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    prompt: str
    description: str | None = None


SYSTEM_PROMPT_PRESETS: tuple[SystemPromptPreset, ...] = (
    SystemPromptPreset(
        id=DEFAULT_PRESET_ID,
        name="Default assistant",
        prompt="You are a friendly, helpful assistant. Answer clearly and concisely.",
        description="General-purpose conversation",
    ),
    SystemPromptPreset(
        id="programmer",
        name="Programming expert",
        prompt=(
            "You are a senior full-stack engineer fluent in many languages and frameworks. "
            "Give clear code examples, explain the underlying principles, follow best "
            "practices for performance and maintainability, and point out pitfalls."
        ),
        description="Technical Q&A",
    ),
    SystemPromptPreset(
        id="writer",
        name="Copywriter",
        prompt=(
            "You are a creative copywriter who writes articles, ad copy and social media "
            "posts. Adapt your tone to the occasion and make the text engaging."
        ),
        description="Creative writing",
    ),
    SystemPromptPreset(
        id="translator",
        name="Translator",
        prompt=(
            "You are a professional translator. Translate the user's text faithfully, "
            "keeping tone and formatting, and note idioms that do not carry over."
        ),
        description="Translation between languages",
    ),
    SystemPromptPreset(
        id=CUSTOM_PRESET_ID,
        name="Custom",
        prompt="",
        description="Use your own system prompt",
    ),
)

_PRESETS_BY_ID = {preset.id: preset for preset in SYSTEM_PROMPT_PRESETS}


def get_preset(preset_id: str) -> SystemPromptPreset:
    """Return the preset with ``preset_id``, or the default preset if unknown."""
    return _PRESETS_BY_ID.get(preset_id, SYSTEM_PROMPT_PRESETS[0])


def resolve_system_prompt(preset_id: str, custom_prompt: str | None = None) -> str:
    """Return the system prompt for a preset, honouring a custom prompt."""
    if preset_id == CUSTOM_PRESET_ID:
        if custom_prompt and custom_prompt.strip():
            return custom_prompt.strip()
        return SYSTEM_PROMPT_PRESETS[0].prompt
    return get_preset(preset_id).prompt
