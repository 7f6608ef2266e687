"""Pydantic models for history, provider and generation settings, and config file loading."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from rich.console import Console

from chat_history import constants

console = Console()

# --- Config File Loading ---

CONFIG_PATH = Path.home() / ".config" / "chat-history" / "config.toml"
CONFIG_PATH_2 = Path("chat-history.toml")


def _replace_dashed_keys(cfg: dict[str, Any]) -> dict[str, Any]:
    """Replace dashed keys with underscores in the config options."""
    return {k.replace("-", "_"): v for k, v in cfg.items()}


def load_config(config_path_str: str | None = None) -> dict[str, Any]:
    """Load the TOML configuration file, normalising dashed keys in every section."""
    if config_path_str:
        config_path = Path(config_path_str).expanduser()
    elif CONFIG_PATH.exists():
        config_path = CONFIG_PATH
    elif CONFIG_PATH_2.exists():
        config_path = CONFIG_PATH_2
    else:
        return {}

    if config_path.exists():
        with config_path.open("rb") as f:
            cfg = tomllib.load(f)
            return {
                k: _replace_dashed_keys(v) if isinstance(v, dict) else v for k, v in cfg.items()
            }

    # Report error only if an explicit path was given
    if config_path_str:
        console.print(
            f"[bold red]Config file not found at {config_path_str}[/bold red]",
        )
    return {}


# --- History ---


class HistoryConfig(BaseModel):
    """Trimming policy for one conversation's history."""

    model_config = ConfigDict(frozen=True)

    max_turn_pairs: int = Field(constants.DEFAULT_MAX_TURN_PAIRS, ge=1)
    token_budget: int = Field(constants.DEFAULT_TOKEN_BUDGET, ge=1)
    summary_trigger_tokens: int = Field(constants.DEFAULT_SUMMARY_TRIGGER_TOKENS, ge=1)
    strict_pairing: bool = False
    summary_max_chars: int = Field(constants.SUMMARY_MAX_CHARS, ge=1)
    summary_input_chars: int = Field(constants.SUMMARY_INPUT_CHARS, ge=1)

    @model_validator(mode="after")
    def _trigger_within_budget(self) -> HistoryConfig:
        if self.summary_trigger_tokens > self.token_budget:
            msg = (
                f"summary_trigger_tokens ({self.summary_trigger_tokens}) must not exceed "
                f"token_budget ({self.token_budget})"
            )
            raise ValueError(msg)
        return self


# --- Reasoning ---

ReasoningLevel = Literal["minimal", "low", "medium", "high"]
REASONING_LEVELS: tuple[str, ...] = ("minimal", "low", "medium", "high")


class ReasoningDisabled(BaseModel):
    """The model should not produce reasoning output."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["disabled"] = "disabled"


class ReasoningEnabled(BaseModel):
    """The model may reason at the given effort level before answering."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["enabled"] = "enabled"
    level: ReasoningLevel = "medium"


ReasoningPolicy = Annotated[ReasoningDisabled | ReasoningEnabled, Field(discriminator="kind")]


def parse_reasoning_policy(value: str) -> ReasoningDisabled | ReasoningEnabled:
    """Parse a user-facing reasoning setting such as ``off`` or ``high``."""
    normalized = value.strip().lower()
    if normalized in {"off", "none", "disabled", "false"}:
        return ReasoningDisabled()
    if normalized in REASONING_LEVELS:
        return ReasoningEnabled(level=normalized)  # type: ignore[arg-type]
    msg = f"Unknown reasoning level: {value!r}. Use off or one of {', '.join(REASONING_LEVELS)}"
    raise ValueError(msg)


# --- Provider and Generation ---


class ProviderConfig(BaseModel):
    """Connection settings for an OpenAI-compatible API."""

    openai_base_url: str = constants.DEFAULT_OPENAI_BASE_URL
    api_key: str | None = None
    model: str = constants.DEFAULT_MODEL
    request_timeout: float = Field(constants.DEFAULT_REQUEST_TIMEOUT, gt=0)
    # Replay earlier reasoning as `reasoning_content`; only some servers accept it.
    send_reasoning_content: bool = False

    @model_validator(mode="after")
    def _normalize(self) -> ProviderConfig:
        self.openai_base_url = self.openai_base_url.rstrip("/")
        if self.api_key is None:
            self.api_key = os.environ.get("OPENAI_API_KEY") or "not-needed"
        return self


class GenerationConfig(BaseModel):
    """Per-request settings for the main generation call."""

    model_config = ConfigDict(frozen=True)

    system_prompt: str | None = None
    reasoning: ReasoningPolicy = Field(default_factory=ReasoningEnabled)
    max_output_tokens: int = Field(constants.DEFAULT_MAX_OUTPUT_TOKENS, ge=1)
    temperature: float = Field(constants.DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    top_p: float = Field(constants.DEFAULT_TOP_P, gt=0.0, le=1.0)


class StoreConfig(BaseModel):
    """Location of the on-disk conversation store."""

    path: Path = Path("~/.local/share/chat-history/conversations")

    @property
    def resolved_path(self) -> Path:
        return self.path.expanduser()


class Settings(BaseModel):
    """All settings, grouped by config file section."""

    history: HistoryConfig = Field(default_factory=HistoryConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def from_mapping(cls, cfg: dict[str, Any]) -> Settings:
        """Build settings from a loaded config mapping; missing sections use defaults."""
        generation = dict(cfg.get("generation", {}))
        if isinstance(generation.get("reasoning"), str):
            generation["reasoning"] = parse_reasoning_policy(generation["reasoning"])
        return cls(
            history=HistoryConfig(**cfg.get("history", {})),
            provider=ProviderConfig(**cfg.get("provider", {})),
            generation=GenerationConfig(**generation),
            store=StoreConfig(**cfg.get("store", {})),
        )
