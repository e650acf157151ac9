"""Configuration schema — provider selection and credentials."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, SecretStr, field_validator, model_validator

SENSAY_BASE_URL = "https://api.sensay.io/v1"
SENSAY_API_VERSION = "2025-03-25"
GITHUB_MODELS_BASE_URL = "https://models.github.ai/inference"
DEFAULT_MODEL = "openai/gpt-4o"

# Values people leave behind from .env templates.
_PLACEHOLDER_RE = re.compile(
    r"^(?:your[_\- ].*|.*[_\- ]here|.*placeholder.*|changeme|change[_\- ]me|x{3,}|<.*>|\.\.\.)$",
    re.IGNORECASE,
)


def is_placeholder(value: str | None) -> bool:
    """True for empty values and obvious template placeholders."""
    if value is None:
        return True
    value = value.strip()
    return not value or bool(_PLACEHOLDER_RE.match(value))


class ProviderSettings(BaseModel):
    """Which LLM backend to call and the credentials it needs.

    Credentials are ``SecretStr`` so they never show up in reprs or logs.
    Missing values are allowed here; the gateway refuses to run until
    ``missing_settings()`` comes back empty.
    """

    provider: Literal["sensay", "openai"] = "sensay"
    api_key: SecretStr = SecretStr("")

    # Sensay replica endpoint
    replica_id: str = ""
    user_id: str = ""
    api_version: str = SENSAY_API_VERSION

    # OpenAI-compatible endpoint
    model: str = DEFAULT_MODEL

    base_url: str = ""
    max_retries: int = 0

    @field_validator("max_retries")
    @classmethod
    def check_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_retries must be >= 0")
        return value

    @model_validator(mode="after")
    def fill_base_url(self) -> "ProviderSettings":
        if not self.base_url:
            self.base_url = SENSAY_BASE_URL if self.provider == "sensay" else GITHUB_MODELS_BASE_URL
        self.base_url = self.base_url.rstrip("/")
        return self

    def secrets(self) -> list[str]:
        """Credential values to redact from any outgoing message."""
        key = self.api_key.get_secret_value()
        return [key] if key else []

    def setting_status(self) -> dict[str, bool]:
        """Required environment setting name -> whether it holds a real value."""
        key = self.api_key.get_secret_value()
        if self.provider == "sensay":
            values = {
                "SENSAY_API_KEY": key,
                "SENSAY_REPLICA_ID": self.replica_id,
                "SENSAY_USER_ID": self.user_id,
                "SENSAY_API_VERSION": self.api_version,
            }
        else:
            values = {"GITHUB_TOKEN": key, "CODECLARITY_MODEL": self.model}
        return {name: not is_placeholder(value) for name, value in values.items()}

    def missing_settings(self) -> list[str]:
        """Names of the required settings that are unset or placeholders."""
        return [name for name, ok in self.setting_status().items() if not ok]


class AppConfig(BaseModel):
    """Top-level configuration loaded from the environment and an optional YAML file."""

    provider: ProviderSettings = ProviderSettings()
