"""Base agent ABC — one prompt, one completion, one parse."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from codeclarity.agents.prompt_builder import build_prompt
from codeclarity.schemas.conversation import PromptMode, PromptRequest
from codeclarity.shared.llm_client import Completion, CompletionClient

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """Abstract base class for the request agents.

    Subclasses set:
    - ``mode`` — which prompt to build
    - ``name`` — human-readable agent name for logs and progress display
    - ``parse_output(raw)`` — turns the raw completion into the agent's result

    Parsing never asks the model to try again; malformed output is the
    parser's problem and degrades there.
    """

    mode: PromptMode
    json_mode: bool = False

    def __init__(self, client: CompletionClient) -> None:
        self.client = client

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for progress display."""

    @abstractmethod
    def parse_output(self, raw: Completion) -> Any:
        """Parse the provider's raw completion."""

    async def run(self, *, code_snippet: str = "", user_text: str = "") -> Any:
        """Build the prompt, call the provider once and parse the result.

        Gateway errors propagate unchanged.
        """
        request = PromptRequest(code_snippet=code_snippet, user_text=user_text, mode=self.mode)
        prompt = build_prompt(request)
        raw = await self.client.complete(prompt, json_mode=self.json_mode)
        logger.debug("Agent %s raw output:\n%s", self.name, str(raw)[:500])
        return self.parse_output(raw)
