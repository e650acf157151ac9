"""Prompt builder — turns a ``PromptRequest`` into system and user text.

Pure and synchronous.  Callers check for blank input before building.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from codeclarity.agents.analysis import prompts as analysis_prompts
from codeclarity.agents.insight import prompts as insight_prompts
from codeclarity.agents.mentor import prompts as mentor_prompts
from codeclarity.schemas.conversation import BuiltPrompt, PromptMode, PromptRequest

_BACKTICK_RUN_RE = re.compile(r"`+")


def fence_code(code: str) -> str:
    """Wrap ``code`` in a fence longer than any backtick run inside it."""
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(code)), default=0)
    fence = "`" * max(3, longest + 1)
    return f"{fence}\n{code}\n{fence}"


def _full_analysis(request: PromptRequest) -> BuiltPrompt:
    return BuiltPrompt(
        mode=request.mode,
        system=analysis_prompts.SYSTEM_PROMPT,
        user=analysis_prompts.USER_TEMPLATE.format(fenced_code=fence_code(request.code_snippet)),
    )


def _chat(request: PromptRequest) -> BuiltPrompt:
    if request.code_snippet.strip():
        user = mentor_prompts.CODE_QUESTION_TEMPLATE.format(
            fenced_code=fence_code(request.code_snippet), message=request.user_text,
        )
    else:
        user = mentor_prompts.GENERAL_QUESTION_TEMPLATE.format(message=request.user_text)
    return BuiltPrompt(mode=request.mode, system=mentor_prompts.SYSTEM_PROMPT, user=user)


def _insight(request: PromptRequest) -> BuiltPrompt:
    return BuiltPrompt(
        mode=request.mode,
        system=insight_prompts.SYSTEM_PROMPT,
        user=insight_prompts.USER_TEMPLATE.format(fenced_code=fence_code(request.code_snippet)),
    )


_BUILDERS: dict[PromptMode, Callable[[PromptRequest], BuiltPrompt]] = {
    PromptMode.FULL_ANALYSIS: _full_analysis,
    PromptMode.CHAT: _chat,
    PromptMode.INSIGHT: _insight,
}


def build_prompt(request: PromptRequest) -> BuiltPrompt:
    return _BUILDERS[request.mode](request)
