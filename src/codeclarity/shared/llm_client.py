"""Async LLM gateway — one completion call against the configured provider.

Two providers are supported:

- ``sensay`` — a Sensay replica's chat-completions endpoint, called with
  ``httpx``.  The whole prompt goes in a single ``content`` field.
- ``openai`` — any OpenAI-compatible chat-completions API through the
  ``openai`` SDK (GitHub Models by default), with separate system and user
  messages and optional JSON mode.

The gateway holds no state between calls.  Failures are raised as the
classified errors in ``codeclarity.shared.errors``; credentials are checked
before any network traffic and are never echoed back in an error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    InternalServerError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)

from codeclarity.schemas.config import ProviderSettings
from codeclarity.schemas.conversation import BuiltPrompt, PromptMode
from codeclarity.shared.errors import (
    ConfigurationMissing,
    GatewayError,
    MalformedUpstream,
    NotFound,
    RateLimitedOrUnavailable,
    Unauthorized,
    UnknownGatewayError,
)
from codeclarity.shared.normalizer import completion_text

logger = logging.getLogger(__name__)

Completion = str | dict[str, Any]
"""Raw provider output: completion text, or a parsed object in JSON mode."""


class CompletionClient(Protocol):
    """Anything the agents can send a prompt to (``LLMGateway``, ``DryRunClient``)."""

    async def complete(self, prompt: BuiltPrompt, *, json_mode: bool = False) -> Completion: ...


MAX_TOKENS = 4096

# LLM completions routinely take longer than httpx's 5 s default.
_HTTP_TIMEOUT = 120.0

# Backoff floor for the optional retries on 429 / 5xx / connection errors
_RETRY_BASE_DELAY = 2  # seconds

_TRANSIENT_MESSAGE = (
    "The AI provider is busy or unreachable right now. Please try again in a moment."
)


def _parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Read a ``Retry-After`` header in seconds, or None if absent/unparseable."""
    try:
        if retry_after := headers.get("retry-after"):  # type: ignore[union-attr]
            return float(retry_after)
    except (AttributeError, TypeError, ValueError):
        pass
    return None


def _redact(text: str, secrets: list[str]) -> str:
    for secret in secrets:
        text = text.replace(secret, "***")
    return text


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from a non-2xx body, JSON or not."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return json.dumps(body)


def _classify_status(status: int, detail: str) -> GatewayError:
    """Map an HTTP status onto the gateway error taxonomy."""
    if status in (401, 403):
        return Unauthorized(
            f"The AI provider rejected the credentials: {detail}",
            detail=detail, status_code=status,
        )
    if status == 404:
        return NotFound(
            f"The AI provider could not find the requested model or replica: {detail}",
            detail=detail, status_code=status,
        )
    if status in (408, 429) or status >= 500:
        return RateLimitedOrUnavailable(_TRANSIENT_MESSAGE, detail=detail, status_code=status)
    return UnknownGatewayError(
        f"The AI provider returned HTTP {status}: {detail}",
        detail=detail, status_code=status,
    )


class LLMGateway:
    """Thin async adapter around one configured provider.

    ``complete`` makes a single attempt by default.  Setting
    ``max_retries`` in the provider settings enables bounded exponential
    backoff, for ``RateLimitedOrUnavailable`` only.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        openai_client: Any | None = None,
    ) -> None:
        self.settings = settings
        self._http = http_client
        self._openai = openai_client

    async def complete(self, prompt: BuiltPrompt, *, json_mode: bool = False) -> Completion:
        """Send one prompt and return the raw completion.

        Raises ``ConfigurationMissing`` before any network call when a
        credential or identifier is unset or still a placeholder.
        """
        missing = self.settings.missing_settings()
        if missing:
            logger.warning(
                "Provider %r is not configured (missing: %s)",
                self.settings.provider, ", ".join(missing),
            )
            raise ConfigurationMissing(missing)

        if self.settings.provider == "sensay":
            call = self._sensay_completion
        else:
            call = self._openai_completion
        return await self._call_with_retry(call, prompt, json_mode=json_mode)

    async def _call_with_retry(
        self,
        call: Callable[..., Awaitable[Completion]],
        prompt: BuiltPrompt,
        *,
        json_mode: bool,
    ) -> Completion:
        """Run ``call``, retrying transient failures up to ``max_retries`` times.

        Waits at least as long as the provider's ``Retry-After`` (when it
        sends one), uses exponential backoff as a floor, and adds ±25% jitter.
        """
        attempts = self.settings.max_retries + 1
        for attempt in range(attempts):
            try:
                return await call(prompt, json_mode=json_mode)
            except RateLimitedOrUnavailable as exc:
                if attempt == attempts - 1:
                    raise
                backoff = _RETRY_BASE_DELAY * (2 ** attempt)
                base_delay = max(exc.retry_after or 0.0, backoff)
                jitter = random.uniform(-0.25 * base_delay, 0.25 * base_delay)
                delay = max(1.0, base_delay + jitter)
                logger.warning(
                    "Provider unavailable, retrying in %.1fs (attempt %d/%d): %s",
                    delay, attempt + 1, attempts, exc.detail or exc.user_message,
                )
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Sensay replica endpoint
    # ------------------------------------------------------------------

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=_HTTP_TIMEOUT) as http:
            return await http.post(url, **kwargs)

    async def _sensay_completion(self, prompt: BuiltPrompt, *, json_mode: bool) -> Completion:
        s = self.settings
        secrets = s.secrets()
        url = f"{s.base_url}/replicas/{s.replica_id}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "X-ORGANIZATION-SECRET": s.api_key.get_secret_value(),
            "X-USER-ID": s.user_id,
            "X-API-Version": s.api_version,
        }

        logger.info("Calling Sensay replica %s (%s)", s.replica_id, prompt.mode.value)
        try:
            response = await self._post(url, headers=headers, json={"content": prompt.as_text()})
        except httpx.TransportError as exc:
            raise RateLimitedOrUnavailable(
                _TRANSIENT_MESSAGE, detail=_redact(f"{type(exc).__name__}: {exc}", secrets),
            ) from None
        except httpx.HTTPError as exc:
            detail = _redact(str(exc), secrets)
            raise UnknownGatewayError(f"Unexpected transport error: {detail}", detail=detail) from None

        logger.info("Sensay responded with HTTP %d", response.status_code)

        if not response.is_success:
            detail = _redact(_error_detail(response), secrets)
            logger.error("Sensay error response (HTTP %d): %s", response.status_code, detail)
            error = _classify_status(response.status_code, detail)
            if isinstance(error, RateLimitedOrUnavailable):
                error.retry_after = _parse_retry_after(response.headers)
            raise error

        try:
            body = response.json()
        except ValueError:
            raise MalformedUpstream(
                "The AI provider returned a response that could not be read.",
                detail=_redact(response.text[:300], secrets),
                status_code=response.status_code,
            ) from None

        content = completion_text(body)
        if content is None:
            logger.error("Unexpected Sensay response shape: %s", _redact(str(body)[:300], secrets))
            raise MalformedUpstream(
                "The AI provider returned an empty response.",
                detail=_redact(json.dumps(body)[:300], secrets),
                status_code=response.status_code,
            )
        return content

    # ------------------------------------------------------------------
    # OpenAI-compatible chat completions
    # ------------------------------------------------------------------

    def _openai_client(self) -> Any:
        if self._openai is None:
            # The SDK retries twice by default; retries are ours to decide.
            self._openai = AsyncOpenAI(
                api_key=self.settings.api_key.get_secret_value(),
                base_url=self.settings.base_url,
                max_retries=0,
            )
        return self._openai

    async def _openai_completion(self, prompt: BuiltPrompt, *, json_mode: bool) -> Completion:
        s = self.settings
        secrets = s.secrets()
        kwargs: dict[str, Any] = {
            "model": s.model,
            "max_tokens": MAX_TOKENS,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.info("Calling %s at %s (%s)", s.model, s.base_url, prompt.mode.value)
        try:
            response = await self._openai_client().chat.completions.create(**kwargs)
        except (AuthenticationError, PermissionDeniedError) as exc:
            detail = _redact(str(exc), secrets)
            raise Unauthorized(
                f"The AI provider rejected the credentials: {detail}",
                detail=detail, status_code=exc.status_code,
            ) from None
        except NotFoundError as exc:
            detail = _redact(str(exc), secrets)
            raise NotFound(
                f"The AI provider could not find model {s.model!r}: {detail}",
                detail=detail, status_code=exc.status_code,
            ) from None
        except (RateLimitError, InternalServerError) as exc:
            error = RateLimitedOrUnavailable(
                _TRANSIENT_MESSAGE, detail=_redact(str(exc), secrets), status_code=exc.status_code,
            )
            error.retry_after = _parse_retry_after(exc.response.headers)
            raise error from None
        except APIConnectionError as exc:
            raise RateLimitedOrUnavailable(
                _TRANSIENT_MESSAGE, detail=_redact(f"{type(exc).__name__}: {exc}", secrets),
            ) from None
        except APIStatusError as exc:
            detail = _redact(str(exc), secrets)
            raise UnknownGatewayError(
                f"The AI provider returned HTTP {exc.status_code}: {detail}",
                detail=detail, status_code=exc.status_code,
            ) from None

        usage = getattr(response, "usage", None)
        if usage:
            logger.debug(
                "Token usage: %d in / %d out",
                getattr(usage, "prompt_tokens", 0), getattr(usage, "completion_tokens", 0),
            )

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None
        if not isinstance(content, str) or not content.strip():
            raise MalformedUpstream("The AI provider returned an empty response.")

        if json_mode:
            try:
                parsed = json.loads(content)
            except json.JSONDecodeError:
                return content
            if isinstance(parsed, dict):
                return parsed
        return content


# ======================================================================
# Dry-run client: canned completions, no API calls
# ======================================================================

_DRY_RUN_COMPLETIONS: dict[PromptMode, str] = {
    PromptMode.FULL_ANALYSIS: (
        "**Detected Language**: Python\n"
        "**Comprehensive Analysis**: ### What it does\n"
        "Defines `add`, which returns the sum of its two arguments.\n\n"
        "### Summary\n"
        "A minimal, pure helper function.\n"
        "**Style & Formatting Suggestions**:\n"
        "- Put the function body on its own line.\n"
        "- Add type hints for the parameters and the return value.\n"
        "**Code Smell Detection**: None found\n"
        "**Security Vulnerability Checks**: None found\n"
        "**Potential Bug Identification & Fix Suggestions**: "
        '[{"bug": "Mixing str and int arguments raises TypeError at runtime.", '
        '"fix_suggestion": "Validate or annotate the argument types."}]\n'
        "**Alternative Code Approaches**: "
        '[{"description": "Use operator.add.", "code": "from operator import add"}]\n'
        "**General Warnings & Suggestions**: []\n"
        "**Syntax Errors**: []\n"
        "**Learn More Links**:\n"
        "- Python functions tutorial\n"
        "- Python type hints tutorial\n"
    ),
    PromptMode.CHAT: (
        "This is a dry-run reply. With a configured provider the mentor would "
        "answer your question here.\n\n"
        "- Python functions tutorial\n"
    ),
    PromptMode.INSIGHT: (
        "**Key concepts**: functions, arguments, return values.\n\n"
        "**Areas for deeper understanding**: duck typing and operator overloading."
    ),
}


class DryRunClient:
    """Drop-in replacement for ``LLMGateway`` that makes zero API calls.

    Returns a canned completion per prompt mode; the full-analysis one is
    section-labeled prose so the normalizer's markdown path gets exercised.
    """

    def __init__(self) -> None:
        self.calls: list[BuiltPrompt] = []

    async def complete(self, prompt: BuiltPrompt, *, json_mode: bool = False) -> Completion:
        self.calls.append(prompt)
        logger.info("[dry-run] %s completion (%d prompt chars)", prompt.mode.value, len(prompt.as_text()))
        return _DRY_RUN_COMPLETIONS[prompt.mode]
