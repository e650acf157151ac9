"""Tests for the mentor and insight agents."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from codeclarity.agents.insight.agent import InsightAgent
from codeclarity.agents.mentor.agent import MentorAgent
from codeclarity.schemas.conversation import PromptMode


@pytest.mark.asyncio
async def test_mentor_reply_used_verbatim() -> None:
    client = AsyncMock()
    client.complete = AsyncMock(return_value="Closures capture variables.\n\n- python closures\n")

    reply = await MentorAgent(client).run(user_text="What is a closure?")

    assert reply == "Closures capture variables.\n\n- python closures\n"
    assert client.complete.call_args.args[0].mode is PromptMode.CHAT


@pytest.mark.asyncio
async def test_mentor_object_reply_uses_content() -> None:
    client = AsyncMock()
    client.complete = AsyncMock(return_value={"content": "From an object"})
    assert await MentorAgent(client).run(user_text="hi") == "From an object"


@pytest.mark.asyncio
async def test_insight_prompt_and_reply() -> None:
    client = AsyncMock()
    client.complete = AsyncMock(return_value="**Key concepts**: recursion")

    insight = await InsightAgent(client).run(code_snippet="def f(n): return f(n - 1)")

    assert insight == "**Key concepts**: recursion"
    prompt = client.complete.call_args.args[0]
    assert prompt.mode is PromptMode.INSIGHT
    assert "def f(n)" in prompt.user
