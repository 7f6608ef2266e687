"""Backends for OpenAI-compatible APIs: token counting, summarization and streaming."""

from __future__ import annotations

import base64
import json
import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel

from chat_history import constants
from chat_history._prompts import HISTORY_SUMMARY_PROMPT, SUMMARY_SYSTEM_PROMPT
from chat_history.config import ReasoningEnabled
from chat_history.entities import AttachmentSegment, ReplyFragment
from chat_history.errors import CountingError, GenerationError, SummarizationError
from chat_history.services.base import ModelGenerator

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    import tiktoken

    from chat_history.config import GenerationConfig, ProviderConfig
    from chat_history.entities import Turn

LOGGER = logging.getLogger(__name__)

# Chat formatting adds a few tokens per message on top of the content.
TOKENS_PER_TURN = 4
# Flat cost charged for each inline image.
TOKENS_PER_ATTACHMENT = 258


# --- Token counting ---


@lru_cache(maxsize=4)
def _get_encoding(model: str) -> tiktoken.Encoding:
    """Get tiktoken encoding for a model, with caching.

    Falls back to cl100k_base for unknown models (covers most modern LLMs).
    """
    import tiktoken  # noqa: PLC0415

    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


class TiktokenCounter:
    """Count tokens locally with tiktoken."""

    def __init__(self, model: str = constants.DEFAULT_MODEL) -> None:
        self.model = model

    async def count(self, turns: Sequence[Turn]) -> int:
        """Count text tokens plus per-turn and per-attachment overhead."""
        try:
            enc = _get_encoding(self.model)
            total = 0
            for turn in turns:
                total += TOKENS_PER_TURN
                for segment in turn.segments:
                    if isinstance(segment, AttachmentSegment):
                        total += TOKENS_PER_ATTACHMENT
                    else:
                        # LLM outputs may contain special tokens that we want to count normally
                        total += len(enc.encode(segment.text, disallowed_special=()))
        except Exception as e:
            msg = f"Token counting failed: {e}"
            raise CountingError(msg) from e
        return total


# --- Summarization ---


class SummaryOutput(BaseModel):
    """Structured output for summary generation."""

    summary: str


class LLMSummarizer:
    """Summarize removed history with a pydantic-ai agent."""

    def __init__(
        self,
        provider: ProviderConfig,
        *,
        max_output_tokens: int = constants.SUMMARY_MAX_OUTPUT_TOKENS,
        temperature: float = constants.SUMMARY_TEMPERATURE,
    ) -> None:
        self.provider = provider
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    async def summarize(
        self,
        turns: Sequence[Turn],  # noqa: ARG002
        *,
        transcript: str,
        max_chars: int,
    ) -> str:
        """Call the LLM to summarize ``transcript``.

        Raises:
            SummarizationError: If the LLM call fails.

        """
        from pydantic_ai import Agent  # noqa: PLC0415
        from pydantic_ai.models.openai import OpenAIChatModel  # noqa: PLC0415
        from pydantic_ai.providers.openai import OpenAIProvider  # noqa: PLC0415
        from pydantic_ai.settings import ModelSettings  # noqa: PLC0415

        provider = OpenAIProvider(
            api_key=self.provider.api_key,
            base_url=self.provider.openai_base_url,
        )
        model = OpenAIChatModel(
            model_name=self.provider.model,
            provider=provider,
            settings=ModelSettings(
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
            ),
        )
        agent = Agent(
            model=model,
            system_prompt=SUMMARY_SYSTEM_PROMPT,
            output_type=SummaryOutput,
            retries=2,
        )
        prompt = HISTORY_SUMMARY_PROMPT.format(transcript=transcript, max_chars=max_chars)

        try:
            result = await agent.run(prompt)
            return result.output.summary.strip()
        except Exception as e:
            msg = f"Summarization failed: {e}"
            raise SummarizationError(msg) from e


# --- Streaming generation ---


def _attachment_url(segment: AttachmentSegment) -> str:
    encoded = base64.b64encode(segment.data).decode("ascii")
    return f"data:{segment.media_type};base64,{encoded}"


def turn_to_message(turn: Turn, *, include_reasoning: bool = False) -> dict[str, Any]:
    """Convert a turn into an OpenAI chat message.

    Reasoning is dropped unless ``include_reasoning`` is set, in which case a
    model turn carries it in the non-standard `reasoning_content` field.
    """
    role = "user" if turn.role == "user" else "assistant"
    message: dict[str, Any] = {"role": role}
    if turn.has_attachments:
        parts: list[dict[str, Any]] = []
        for segment in turn.segments:
            if isinstance(segment, AttachmentSegment):
                parts.append({"type": "image_url", "image_url": {"url": _attachment_url(segment)}})
            elif not segment.is_reasoning:
                parts.append({"type": "text", "text": segment.text})
        message["content"] = parts
    else:
        message["content"] = turn.answer_text
    if include_reasoning and turn.role == "model" and turn.reasoning_text:
        message["reasoning_content"] = turn.reasoning_text
    return message


def build_payload(
    turns: Sequence[Turn],
    config: GenerationConfig,
    model: str,
    *,
    include_reasoning: bool = False,
) -> dict[str, Any]:
    """Build a streaming chat completion request body."""
    messages: list[dict[str, Any]] = []
    if config.system_prompt:
        messages.append({"role": "system", "content": config.system_prompt})
    messages.extend(turn_to_message(turn, include_reasoning=include_reasoning) for turn in turns)
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "stream": True,
        "max_tokens": config.max_output_tokens,
        "temperature": config.temperature,
        "top_p": config.top_p,
    }
    if isinstance(config.reasoning, ReasoningEnabled):
        payload["reasoning_effort"] = config.reasoning.level
    return payload


def parse_sse_line(line: str) -> dict[str, Any] | None:
    """Parse one Server-Sent Events line into a JSON chunk, if it carries one."""
    if not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if not data or data == "[DONE]":
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        LOGGER.debug("Ignoring malformed SSE line: %s", line)
        return None


def fragments_from_chunk(chunk: dict[str, Any]) -> list[ReplyFragment]:
    """Extract reasoning and answer fragments from a streamed chunk."""
    choices = chunk.get("choices") or [{}]
    delta = choices[0].get("delta") or {}
    fragments: list[ReplyFragment] = []
    reasoning = delta.get("reasoning_content") or delta.get("reasoning")
    if reasoning:
        fragments.append(ReplyFragment(text=reasoning, is_reasoning=True))
    content = delta.get("content")
    if content:
        fragments.append(ReplyFragment(text=content))
    return fragments


class OpenAIStreamingGenerator(ModelGenerator):
    """Stream replies from an OpenAI-compatible chat completions endpoint."""

    def __init__(self, provider: ProviderConfig) -> None:
        self.provider = provider

    async def stream(
        self,
        turns: Sequence[Turn],
        config: GenerationConfig,
    ) -> AsyncIterator[ReplyFragment]:
        """Yield reply fragments as they arrive.

        Raises:
            GenerationError: On transport errors or a non-200 response.

        """
        url = f"{self.provider.openai_base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self.provider.api_key}"}
        payload = build_payload(
            turns,
            config,
            self.provider.model,
            include_reasoning=self.provider.send_reasoning_content,
        )
        LOGGER.info("Streaming reply for %d turns from %s", len(turns), self.provider.model)
        try:
            async with (
                httpx.AsyncClient(timeout=self.provider.request_timeout) as client,
                client.stream("POST", url, json=payload, headers=headers) as response,
            ):
                if response.status_code != 200:  # noqa: PLR2004
                    error_text = await response.aread()
                    msg = (
                        f"Generation failed with status {response.status_code}: "
                        f"{error_text.decode(errors='ignore')}"
                    )
                    raise GenerationError(msg)
                async for line in response.aiter_lines():
                    chunk = parse_sse_line(line)
                    if chunk is None:
                        continue
                    for fragment in fragments_from_chunk(chunk):
                        yield fragment
        except httpx.HTTPError as e:
            msg = f"Generation request failed: {e}"
            raise GenerationError(msg) from e
