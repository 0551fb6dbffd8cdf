"""Tests for the OpenAI and Anthropic model invokers."""

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from src.config import Settings
from src.processing.invoker import (
    AnthropicInvoker,
    ModelInvoker,
    OpenAIInvoker,
    create_invoker,
)
from src.processing.types import UpstreamError

_OPENAI_URL = "https://api.openai.com/v1/chat/completions"
_ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


# ── Helpers ────────────────────────────────────────────────────────────────────


def raw_response(text: str) -> MagicMock:
    r = MagicMock()
    r.text = text
    return r


def status_error(cls: type, url: str, status: int, body: str) -> Exception:
    request = httpx.Request("POST", url)
    response = httpx.Response(status, request=request, text=body)
    return cls(f"Error code: {status}", response=response, body=None)


def openai_client(**create_kwargs: object) -> MagicMock:
    client = MagicMock()
    client.chat.completions.with_raw_response.create = AsyncMock(**create_kwargs)
    return client


def anthropic_client(**create_kwargs: object) -> MagicMock:
    client = MagicMock()
    client.messages.with_raw_response.create = AsyncMock(**create_kwargs)
    return client


# ── OpenAIInvoker ───────────────────────────────────────────────────────────────


class TestOpenAIInvoker:
    async def test_returns_raw_body(self) -> None:
        client = openai_client(return_value=raw_response('{"choices": []}'))
        invoker = OpenAIInvoker(client=client)

        body = await invoker.invoke("sk", "gpt-4o-mini", "sys", "user")

        assert body == '{"choices": []}'

    async def test_request_contract(self) -> None:
        client = openai_client(return_value=raw_response("{}"))
        invoker = OpenAIInvoker(client=client)

        await invoker.invoke("sk", "gpt-4o-mini", "Return JSON.", "Emails: []")

        create = client.chat.completions.with_raw_response.create
        create.assert_awaited_once()
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"] == [
            {"role": "system", "content": "Return JSON."},
            {"role": "user", "content": "Emails: []"},
        ]

    async def test_status_error_becomes_upstream_error(self) -> None:
        exc = status_error(openai.RateLimitError, _OPENAI_URL, 429, '{"error": "slow down"}')
        invoker = OpenAIInvoker(client=openai_client(side_effect=exc))

        with pytest.raises(UpstreamError) as exc_info:
            await invoker.invoke("sk", "m", "s", "u")

        assert exc_info.value.status == 429
        assert exc_info.value.body == '{"error": "slow down"}'

    async def test_connection_error_has_no_status(self) -> None:
        exc = openai.APIConnectionError(request=httpx.Request("POST", _OPENAI_URL))
        invoker = OpenAIInvoker(client=openai_client(side_effect=exc))

        with pytest.raises(UpstreamError) as exc_info:
            await invoker.invoke("sk", "m", "s", "u")

        assert exc_info.value.status is None

    async def test_single_call_no_retry(self) -> None:
        exc = status_error(openai.InternalServerError, _OPENAI_URL, 500, "oops")
        client = openai_client(side_effect=exc)
        invoker = OpenAIInvoker(client=client)

        with pytest.raises(UpstreamError):
            await invoker.invoke("sk", "m", "s", "u")

        assert client.chat.completions.with_raw_response.create.await_count == 1

    async def test_builds_client_without_sdk_retries(self) -> None:
        with patch("src.processing.invoker.AsyncOpenAI") as factory:
            factory.return_value = openai_client(return_value=raw_response("{}"))
            invoker = OpenAIInvoker()
            await invoker.invoke("sk-1", "m", "s", "u")
            await invoker.invoke("sk-1", "m", "s", "u")

        factory.assert_called_once_with(api_key="sk-1", max_retries=0)


# ── AnthropicInvoker ────────────────────────────────────────────────────────────


class TestAnthropicInvoker:
    async def test_request_contract(self) -> None:
        client = anthropic_client(return_value=raw_response('{"content": []}'))
        invoker = AnthropicInvoker(max_tokens=512, client=client)

        body = await invoker.invoke("sk", "claude-haiku-4-5-20251001", "sys", "user")

        assert body == '{"content": []}'
        kwargs = client.messages.with_raw_response.create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["max_tokens"] == 512
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]

    async def test_status_error_becomes_upstream_error(self) -> None:
        exc = status_error(anthropic.InternalServerError, _ANTHROPIC_URL, 529, "overloaded")
        invoker = AnthropicInvoker(max_tokens=512, client=anthropic_client(side_effect=exc))

        with pytest.raises(UpstreamError) as exc_info:
            await invoker.invoke("sk", "m", "s", "u")

        assert exc_info.value.status == 529
        assert exc_info.value.body == "overloaded"


# ── create_invoker ──────────────────────────────────────────────────────────────


class TestCreateInvoker:
    def test_openai_default(self) -> None:
        invoker = create_invoker(Settings())
        assert isinstance(invoker, OpenAIInvoker)
        assert isinstance(invoker, ModelInvoker)

    def test_anthropic(self) -> None:
        assert isinstance(create_invoker(Settings(provider="anthropic")), AnthropicInvoker)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError):
            create_invoker(Settings(provider="gemini"))
