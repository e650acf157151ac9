"""Error taxonomy shared by the gateway, the session and the CLI.

Every error carries a short ``user_message`` that is safe to show.  Longer
diagnostics (``detail``) go to the log only.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INPUT_EMPTY = "input_empty"
    CONFIGURATION_MISSING = "configuration_missing"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    RATE_LIMITED_OR_UNAVAILABLE = "rate_limited_or_unavailable"
    MALFORMED_UPSTREAM = "malformed_upstream"
    UNKNOWN = "unknown"


class CodeClarityError(Exception):
    """Base class for every error surfaced to the presentation layer."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, user_message: str, *, detail: str = "") -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.detail = detail


class InputEmpty(CodeClarityError):
    """Blank code or question; rejected before any request is sent."""

    kind = ErrorKind.INPUT_EMPTY


class GatewayError(CodeClarityError):
    """A failed provider call, classified by ``kind``."""

    def __init__(
        self,
        user_message: str,
        *,
        detail: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(user_message, detail=detail)
        self.status_code = status_code


class ConfigurationMissing(GatewayError):
    kind = ErrorKind.CONFIGURATION_MISSING

    def __init__(self, missing: list[str]) -> None:
        names = ", ".join(missing)
        super().__init__(
            f"Configuration missing: set {names} (in the environment or a .env file)."
        )
        self.missing = list(missing)


class Unauthorized(GatewayError):
    kind = ErrorKind.UNAUTHORIZED


class NotFound(GatewayError):
    kind = ErrorKind.NOT_FOUND


class RateLimitedOrUnavailable(GatewayError):
    kind = ErrorKind.RATE_LIMITED_OR_UNAVAILABLE
    retry_after: float | None = None  # seconds, from a Retry-After header


class MalformedUpstream(GatewayError):
    kind = ErrorKind.MALFORMED_UPSTREAM


class UnknownGatewayError(GatewayError):
    kind = ErrorKind.UNKNOWN
