"""Analysis agent — full structured review of a snippet."""

from __future__ import annotations

from codeclarity.agents.base import BaseAgent
from codeclarity.schemas.analysis import CodeAnalysis
from codeclarity.schemas.conversation import PromptMode
from codeclarity.shared.llm_client import Completion
from codeclarity.shared.normalizer import normalize_analysis


class AnalysisAgent(BaseAgent):
    mode = PromptMode.FULL_ANALYSIS

    @property
    def name(self) -> str:
        return "Code Analysis"

    def parse_output(self, raw: Completion) -> CodeAnalysis:
        return normalize_analysis(raw)

    async def run(self, *, code_snippet: str = "", user_text: str = "") -> CodeAnalysis:
        return await super().run(code_snippet=code_snippet, user_text=user_text)
