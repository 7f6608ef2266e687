"""Default settings for chat history management."""

from __future__ import annotations

# --- History limits ---
DEFAULT_MAX_TURN_PAIRS = 20
DEFAULT_TOKEN_BUDGET = 100_000
DEFAULT_SUMMARY_TRIGGER_TOKENS = 80_000

# --- Summarization ---
SUMMARY_MAX_CHARS = 200  # Requested digest length, not enforced locally
SUMMARY_INPUT_CHARS = 200  # Per-turn truncation when rendering a transcript
SUMMARY_MAX_OUTPUT_TOKENS = 512
SUMMARY_TEMPERATURE = 0.3
SUMMARY_SEPARATOR = "\n\n"

# --- Token estimation ---
# Empirical ratio for mixed-language text, used when the counter is unreachable.
CHARS_TO_TOKENS_FACTOR = 1.5

# --- Generation defaults ---
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MAX_OUTPUT_TOKENS = 4096
DEFAULT_TEMPERATURE = 1.0
DEFAULT_TOP_P = 0.9
DEFAULT_REQUEST_TIMEOUT = 120.0

# --- Conversation store ---
TITLE_MAX_CHARS = 50
