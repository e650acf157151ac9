"""Insight agent — key concepts, challenges and patterns behind a snippet."""

from __future__ import annotations

from codeclarity.agents.base import BaseAgent
from codeclarity.schemas.conversation import PromptMode
from codeclarity.shared.llm_client import Completion
from codeclarity.shared.normalizer import normalize_chat_reply


class InsightAgent(BaseAgent):
    mode = PromptMode.INSIGHT

    @property
    def name(self) -> str:
        return "Deeper Insight"

    def parse_output(self, raw: Completion) -> str:
        return normalize_chat_reply(raw)
