"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from codeclarity.schemas.config import ProviderSettings
from codeclarity.shared.llm_client import DryRunClient

SAMPLE_CODE = "def add(a, b): return a + b"


def make_text_response(text: str | None):
    """Create a mock OpenAI chat-completions response."""
    message = SimpleNamespace(content=text, tool_calls=None)
    choice = SimpleNamespace(message=message)
    return SimpleNamespace(choices=[choice], usage=None)


@pytest.fixture
def sensay_settings() -> ProviderSettings:
    return ProviderSettings(
        provider="sensay",
        api_key="org-secret-123",
        replica_id="replica-1",
        user_id="user-1",
    )


@pytest.fixture
def openai_settings() -> ProviderSettings:
    return ProviderSettings(provider="openai", api_key="ghp_token_456")


@pytest.fixture
def mock_openai() -> AsyncMock:
    """An AsyncOpenAI stand-in; set ``chat.completions.create`` per test."""
    client = AsyncMock()
    client.chat.completions.create = AsyncMock(return_value=make_text_response("Hello!"))
    return client


@pytest.fixture
def dry_run_client() -> DryRunClient:
    return DryRunClient()


@pytest.fixture
def tmp_config(tmp_path: Path) -> Path:
    """Write a minimal provider config YAML and return its path."""
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        """\
provider:
  provider: sensay
  replica_id: "replica-from-file"
  user_id: "user-from-file"
  max_retries: 2
"""
    )
    return cfg
