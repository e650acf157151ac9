"""Config loader — reads an optional YAML file and overlays environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from codeclarity.schemas.config import AppConfig

# Environment variable -> ProviderSettings field.  Later names win when
# several map to the same field (GITHUB_TOKEN beats OPENAI_API_KEY).
_ENV_FIELDS: dict[str, tuple[str, ...]] = {
    "provider": ("CODECLARITY_PROVIDER",),
    "replica_id": ("SENSAY_REPLICA_ID",),
    "user_id": ("SENSAY_USER_ID",),
    "api_version": ("SENSAY_API_VERSION",),
    "model": ("CODECLARITY_MODEL",),
    "max_retries": ("CODECLARITY_MAX_RETRIES",),
}

_BASE_URL_ENV = {"sensay": "SENSAY_BASE_URL", "openai": "CODECLARITY_BASE_URL"}
_API_KEY_ENV = {"sensay": ("SENSAY_API_KEY",), "openai": ("OPENAI_API_KEY", "GITHUB_TOKEN")}


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must be a YAML mapping, got {type(raw).__name__}")
    return raw


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Build the app config from an optional YAML file plus the environment.

    Environment values override the file.  Raises ``FileNotFoundError`` if
    ``path`` is given but doesn't exist, ``ValueError`` if the YAML is not a
    mapping, and ``pydantic.ValidationError`` if a value is invalid.
    Missing credentials are *not* an error here; the gateway reports them
    as ``ConfigurationMissing`` when a request is made.
    """
    env = os.environ if environ is None else environ
    raw = _read_yaml(Path(path)) if path is not None else {}

    provider = raw.get("provider") or {}
    if not isinstance(provider, dict):
        raise ValueError("'provider' must be a mapping")
    provider = dict(provider)

    for field, names in _ENV_FIELDS.items():
        for name in names:
            value = env.get(name)
            if value:
                provider[field] = value.strip()

    kind = provider.get("provider", "sensay")
    for name in _API_KEY_ENV.get(kind, ()):
        if env.get(name):
            provider["api_key"] = env[name].strip()

    base_url_env = _BASE_URL_ENV.get(kind)
    if base_url_env and env.get(base_url_env):
        provider["base_url"] = env[base_url_env].strip()

    return AppConfig(**{**raw, "provider": provider})
