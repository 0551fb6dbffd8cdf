"""Model invokers. One completion request per batch, raw envelope back."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from src.config import ANTHROPIC, OPENAI, Settings
from src.processing.types import UpstreamError

logger = logging.getLogger(__name__)

_TEMPERATURE = 0
_JSON_OBJECT = {"type": "json_object"}


@runtime_checkable
class ModelInvoker(Protocol):
    """Interface for a completion API call."""

    async def invoke(
        self, credential: str, model: str, system_prompt: str, user_prompt: str
    ) -> str:
        """Send one request and return the raw response body.

        Raises:
            UpstreamError: on any non-success response.
        """
        ...


# ── OpenAI ─────────────────────────────────────────────────────────────────────


class OpenAIInvoker:
    """Calls OpenAI chat completions in JSON-object mode.

    SDK retries are switched off: a failed call fails the batch.
    """

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        self._client = client
        self._client_key: str | None = None

    def _client_for(self, credential: str) -> AsyncOpenAI:
        if self._client is None or (
            self._client_key is not None and self._client_key != credential
        ):
            self._client = AsyncOpenAI(api_key=credential, max_retries=0)
            self._client_key = credential
        return self._client

    async def invoke(
        self, credential: str, model: str, system_prompt: str, user_prompt: str
    ) -> str:
        client = self._client_for(credential)
        try:
            response = await client.chat.completions.with_raw_response.create(
                model=model,
                temperature=_TEMPERATURE,
                response_format=_JSON_OBJECT,  # type: ignore[arg-type]
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.APIStatusError as exc:
            logger.error("OpenAI request failed with status %d", exc.status_code)
            raise UpstreamError(exc.status_code, exc.response.text) from exc
        except openai.APIConnectionError as exc:
            logger.error("OpenAI request failed before a response: %s", exc)
            raise UpstreamError(None, str(exc)) from exc
        return response.text


# ── Anthropic ──────────────────────────────────────────────────────────────────


class AnthropicInvoker:
    """Calls the Anthropic Messages API with the instruction as ``system``."""

    def __init__(self, max_tokens: int, client: AsyncAnthropic | None = None) -> None:
        self._max_tokens = max_tokens
        self._client = client
        self._client_key: str | None = None

    def _client_for(self, credential: str) -> AsyncAnthropic:
        if self._client is None or (
            self._client_key is not None and self._client_key != credential
        ):
            self._client = AsyncAnthropic(api_key=credential, max_retries=0)
            self._client_key = credential
        return self._client

    async def invoke(
        self, credential: str, model: str, system_prompt: str, user_prompt: str
    ) -> str:
        client = self._client_for(credential)
        try:
            response = await client.messages.with_raw_response.create(
                model=model,
                max_tokens=self._max_tokens,
                temperature=_TEMPERATURE,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIStatusError as exc:
            logger.error("Anthropic request failed with status %d", exc.status_code)
            raise UpstreamError(exc.status_code, exc.response.text) from exc
        except anthropic.APIConnectionError as exc:
            logger.error("Anthropic request failed before a response: %s", exc)
            raise UpstreamError(None, str(exc)) from exc
        return response.text


def create_invoker(settings: Settings) -> ModelInvoker:
    """Return the invoker for ``settings.provider``."""
    if settings.provider == ANTHROPIC:
        return AnthropicInvoker(max_tokens=settings.max_tokens)
    if settings.provider == OPENAI:
        return OpenAIInvoker()
    raise ValueError(f"Unknown model provider {settings.provider!r}")
