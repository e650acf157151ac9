"""Tests for the LLM gateway — httpx MockTransport for Sensay, mocked SDK for OpenAI."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from codeclarity.schemas.config import ProviderSettings
from codeclarity.schemas.conversation import BuiltPrompt, PromptMode
from codeclarity.shared import llm_client
from codeclarity.shared.errors import (
    ConfigurationMissing,
    MalformedUpstream,
    NotFound,
    RateLimitedOrUnavailable,
    Unauthorized,
    UnknownGatewayError,
)
from codeclarity.shared.llm_client import DryRunClient, LLMGateway
from codeclarity.shared.normalizer import normalize_analysis

PROMPT = BuiltPrompt(mode=PromptMode.CHAT, system="You are a mentor.", user="What is x?")


def _text_response(text: str | None):
    message = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


def _sensay_gateway(settings: ProviderSettings, handler) -> tuple[LLMGateway, list[httpx.Request]]:
    """Gateway whose HTTP calls go to ``handler``; returns the recorded requests too."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return LLMGateway(settings, http_client=http), seen


def _status_error(cls, status: int, headers: dict[str, str] | None = None):
    request = httpx.Request("POST", "https://models.github.ai/inference/chat/completions")
    response = httpx.Response(status, request=request, headers=headers)
    return cls(message=f"Error code: {status}", response=response, body=None)


class TestConfigurationMissing:
    @pytest.mark.asyncio
    async def test_no_transport_call_when_unconfigured(self) -> None:
        gateway, seen = _sensay_gateway(ProviderSettings(), lambda r: httpx.Response(200))
        with pytest.raises(ConfigurationMissing) as exc_info:
            await gateway.complete(PROMPT)
        assert seen == []
        assert "SENSAY_API_KEY" in exc_info.value.missing
        assert "SENSAY_REPLICA_ID" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_placeholder_values_count_as_missing(self) -> None:
        settings = ProviderSettings(
            api_key="real-key",
            replica_id="YOUR_SENSAY_REPLICA_ID_HERE",
            user_id="user-1",
        )
        gateway, seen = _sensay_gateway(settings, lambda r: httpx.Response(200))
        with pytest.raises(ConfigurationMissing) as exc_info:
            await gateway.complete(PROMPT)
        assert exc_info.value.missing == ["SENSAY_REPLICA_ID"]
        assert seen == []

    @pytest.mark.asyncio
    async def test_openai_without_token(self, mock_openai: AsyncMock) -> None:
        gateway = LLMGateway(
            ProviderSettings(provider="openai", api_key="dummy-token-placeholder"),
            openai_client=mock_openai,
        )
        with pytest.raises(ConfigurationMissing):
            await gateway.complete(PROMPT)
        mock_openai.chat.completions.create.assert_not_called()


class TestSensay:
    @pytest.mark.asyncio
    async def test_request_shape_and_content(self, sensay_settings: ProviderSettings) -> None:
        gateway, seen = _sensay_gateway(
            sensay_settings, lambda r: httpx.Response(200, json={"content": "Hello there"}),
        )
        result = await gateway.complete(PROMPT)

        assert result == "Hello there"
        request = seen[0]
        assert str(request.url) == "https://api.sensay.io/v1/replicas/replica-1/chat/completions"
        assert request.headers["X-ORGANIZATION-SECRET"] == "org-secret-123"
        assert request.headers["X-USER-ID"] == "user-1"
        assert request.headers["X-API-Version"] == "2025-03-25"
        assert json.loads(request.content) == {"content": PROMPT.as_text()}

    @pytest.mark.asyncio
    async def test_choices_shape(self, sensay_settings: ProviderSettings) -> None:
        body = {"choices": [{"message": {"content": "From choices"}}]}
        gateway, _ = _sensay_gateway(sensay_settings, lambda r: httpx.Response(200, json=body))
        assert await gateway.complete(PROMPT) == "From choices"

    @pytest.mark.asyncio
    async def test_unauthorized_is_redacted(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(
            sensay_settings,
            lambda r: httpx.Response(401, json={"error": "Invalid secret org-secret-123"}),
        )
        with pytest.raises(Unauthorized) as exc_info:
            await gateway.complete(PROMPT)
        assert "org-secret-123" not in exc_info.value.user_message
        assert "org-secret-123" not in exc_info.value.detail
        assert "Invalid secret" in exc_info.value.user_message
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_not_found_reads_nested_message(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(
            sensay_settings,
            lambda r: httpx.Response(404, json={"error": {"message": "Replica not found"}}),
        )
        with pytest.raises(NotFound) as exc_info:
            await gateway.complete(PROMPT)
        assert "Replica not found" in exc_info.value.user_message

    @pytest.mark.asyncio
    async def test_rate_limited_reads_retry_after(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(
            sensay_settings,
            lambda r: httpx.Response(429, headers={"Retry-After": "12"}, json={"message": "slow down"}),
        )
        with pytest.raises(RateLimitedOrUnavailable) as exc_info:
            await gateway.complete(PROMPT)
        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.detail == "slow down"

    @pytest.mark.asyncio
    async def test_server_error_with_text_body(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(sensay_settings, lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(RateLimitedOrUnavailable) as exc_info:
            await gateway.complete(PROMPT)
        assert exc_info.value.detail == "bad gateway"

    @pytest.mark.asyncio
    async def test_other_status_is_unknown(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(sensay_settings, lambda r: httpx.Response(422, text=""))
        with pytest.raises(UnknownGatewayError) as exc_info:
            await gateway.complete(PROMPT)
        assert "422" in exc_info.value.user_message
        assert "Unprocessable" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_connection_failure(self, sensay_settings: ProviderSettings) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway, _ = _sensay_gateway(sensay_settings, refuse)
        with pytest.raises(RateLimitedOrUnavailable):
            await gateway.complete(PROMPT)

    @pytest.mark.asyncio
    async def test_unreadable_body_is_malformed(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(sensay_settings, lambda r: httpx.Response(200, text="<html>oops"))
        with pytest.raises(MalformedUpstream) as exc_info:
            await gateway.complete(PROMPT)
        assert "<html>oops" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_empty_content_is_malformed(self, sensay_settings: ProviderSettings) -> None:
        gateway, _ = _sensay_gateway(sensay_settings, lambda r: httpx.Response(200, json={"content": "  "}))
        with pytest.raises(MalformedUpstream):
            await gateway.complete(PROMPT)


class TestRetries:
    @pytest.mark.asyncio
    async def test_single_attempt_by_default(self, sensay_settings: ProviderSettings) -> None:
        gateway, seen = _sensay_gateway(sensay_settings, lambda r: httpx.Response(503))
        with pytest.raises(RateLimitedOrUnavailable):
            await gateway.complete(PROMPT)
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_retries_transient_failures_when_enabled(
        self, sensay_settings: ProviderSettings, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        sleep = AsyncMock()
        monkeypatch.setattr(llm_client.asyncio, "sleep", sleep)
        responses = iter([httpx.Response(503), httpx.Response(200, json={"content": "ok"})])
        settings = sensay_settings.model_copy(update={"max_retries": 2})
        gateway, seen = _sensay_gateway(settings, lambda r: next(responses))

        assert await gateway.complete(PROMPT) == "ok"
        assert len(seen) == 2
        sleep.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_auth_errors_are_not_retried(
        self, sensay_settings: ProviderSettings, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(llm_client.asyncio, "sleep", AsyncMock())
        settings = sensay_settings.model_copy(update={"max_retries": 3})
        gateway, seen = _sensay_gateway(settings, lambda r: httpx.Response(403, json={"error": "no"}))
        with pytest.raises(Unauthorized):
            await gateway.complete(PROMPT)
        assert len(seen) == 1


class TestOpenAI:
    @pytest.mark.asyncio
    async def test_sends_system_and_user_messages(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock,
    ) -> None:
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)
        assert await gateway.complete(PROMPT) == "Hello!"

        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o"
        assert kwargs["messages"] == [
            {"role": "system", "content": PROMPT.system},
            {"role": "user", "content": PROMPT.user},
        ]
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_json_mode_returns_object(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock,
    ) -> None:
        mock_openai.chat.completions.create = AsyncMock(
            return_value=_text_response('{"language": "Python"}')
        )
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)

        result = await gateway.complete(PROMPT, json_mode=True)

        assert result == {"language": "Python"}
        kwargs = mock_openai.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_json_mode_keeps_non_json_text(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock,
    ) -> None:
        mock_openai.chat.completions.create = AsyncMock(return_value=_text_response("plain"))
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)
        assert await gateway.complete(PROMPT, json_mode=True) == "plain"

    @pytest.mark.asyncio
    async def test_empty_content_is_malformed(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock,
    ) -> None:
        mock_openai.chat.completions.create = AsyncMock(return_value=_text_response(None))
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)
        with pytest.raises(MalformedUpstream):
            await gateway.complete(PROMPT)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (_status_error(openai.AuthenticationError, 401), Unauthorized),
            (_status_error(openai.PermissionDeniedError, 403), Unauthorized),
            (_status_error(openai.NotFoundError, 404), NotFound),
            (_status_error(openai.RateLimitError, 429), RateLimitedOrUnavailable),
            (_status_error(openai.InternalServerError, 500), RateLimitedOrUnavailable),
            (_status_error(openai.BadRequestError, 400), UnknownGatewayError),
        ],
    )
    async def test_sdk_errors_are_classified(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock, error, expected,
    ) -> None:
        mock_openai.chat.completions.create = AsyncMock(side_effect=error)
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)
        with pytest.raises(expected) as exc_info:
            await gateway.complete(PROMPT)
        assert exc_info.value.status_code == error.status_code

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after_header(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock,
    ) -> None:
        mock_openai.chat.completions.create = AsyncMock(
            side_effect=_status_error(openai.RateLimitError, 429, headers={"retry-after": "7"})
        )
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)
        with pytest.raises(RateLimitedOrUnavailable) as exc_info:
            await gateway.complete(PROMPT)
        assert exc_info.value.retry_after == 7.0

    @pytest.mark.asyncio
    async def test_connection_error(
        self, openai_settings: ProviderSettings, mock_openai: AsyncMock,
    ) -> None:
        request = httpx.Request("POST", "https://models.github.ai/inference/chat/completions")
        mock_openai.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=request)
        )
        gateway = LLMGateway(openai_settings, openai_client=mock_openai)
        with pytest.raises(RateLimitedOrUnavailable):
            await gateway.complete(PROMPT)


class TestDryRunClient:
    @pytest.mark.asyncio
    async def test_canned_analysis_normalizes(self) -> None:
        client = DryRunClient()
        prompt = BuiltPrompt(mode=PromptMode.FULL_ANALYSIS, system="s", user="u")

        raw = await client.complete(prompt)
        analysis = normalize_analysis(raw)

        assert client.calls == [prompt]
        assert analysis.language == "Python"
        assert not analysis.parse_failed
        assert len(analysis.bug_suggestions) == 1
        assert len(analysis.alternative_suggestions) == 1
        assert [link.query for link in analysis.learn_more_links] == [
            "Python functions tutorial",
            "Python type hints tutorial",
        ]

    @pytest.mark.asyncio
    async def test_canned_reply_per_mode(self) -> None:
        client = DryRunClient()
        chat = await client.complete(PROMPT)
        insight = await client.complete(BuiltPrompt(mode=PromptMode.INSIGHT, system="s", user="u"))
        assert "dry-run" in chat
        assert "Key concepts" in insight
