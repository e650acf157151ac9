"""Mentor agent — answers follow-up questions, optionally about a snippet."""

from __future__ import annotations

from codeclarity.agents.base import BaseAgent
from codeclarity.schemas.conversation import PromptMode
from codeclarity.shared.llm_client import Completion
from codeclarity.shared.normalizer import normalize_chat_reply


class MentorAgent(BaseAgent):
    """Replies are free text and are used verbatim."""

    mode = PromptMode.CHAT

    @property
    def name(self) -> str:
        return "Mentor"

    def parse_output(self, raw: Completion) -> str:
        return normalize_chat_reply(raw)
