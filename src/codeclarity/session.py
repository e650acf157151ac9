"""Session façade — the surface a presentation layer talks to.

A session owns one mentor conversation, the latest analysis and insight,
and a loading/error flag per request track (analysis, chat, insight).
Responses that arrive after ``reset_conversation`` are returned to the
caller but never applied to session state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from codeclarity.agents.analysis.agent import AnalysisAgent
from codeclarity.agents.insight.agent import InsightAgent
from codeclarity.agents.mentor.agent import MentorAgent
from codeclarity.schemas.analysis import CodeAnalysis
from codeclarity.schemas.conversation import Role
from codeclarity.shared.conversation import ConversationState
from codeclarity.shared.errors import CodeClarityError, InputEmpty, MalformedUpstream
from codeclarity.shared.llm_client import CompletionClient
from codeclarity.shared.normalizer import raw_fallback

logger = logging.getLogger(__name__)


@dataclass
class RequestTrack:
    """Loading and last-error state for one kind of request."""

    loading: bool = False
    error: CodeClarityError | None = None


class CodeClaritySession:
    """Full analysis, mentor chat and insight requests over one client."""

    def __init__(self, client: CompletionClient) -> None:
        self.conversation = ConversationState()
        self.current_analysis: CodeAnalysis | None = None
        self.current_insight: str | None = None
        self.analysis_track = RequestTrack()
        self.chat_track = RequestTrack()
        self.insight_track = RequestTrack()
        self._analysis_agent = AnalysisAgent(client)
        self._mentor_agent = MentorAgent(client)
        self._insight_agent = InsightAgent(client)

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation != self.conversation.generation:
            logger.debug(
                "Discarding %s response from generation %d (now %d)",
                what, generation, self.conversation.generation,
            )
            return True
        return False

    async def request_full_analysis(self, code: str) -> CodeAnalysis:
        """Analyze ``code`` and make it the session's current snippet.

        Raises ``InputEmpty`` for blank code and propagates gateway errors,
        except a malformed provider payload, which degrades to the raw
        fallback analysis.
        """
        if not code.strip():
            raise InputEmpty("Please enter some code to analyze.")

        generation = self.conversation.generation
        track = self.analysis_track
        track.loading, track.error = True, None
        try:
            analysis = await self._analysis_agent.run(code_snippet=code)
        except MalformedUpstream as exc:
            logger.warning("Unreadable analysis payload, showing it raw: %s", exc.user_message)
            analysis = raw_fallback(exc.detail)
        except CodeClarityError as exc:
            if generation == self.conversation.generation:
                track.error = exc
            raise
        finally:
            track.loading = False

        if self._is_stale(generation, "analysis"):
            return analysis

        self.current_analysis = analysis
        self.current_insight = None
        self.conversation.set_code_context(code)
        if analysis.parse_failed:
            logger.info("Analysis shown unformatted (%d chars)", len(analysis.explanation_markdown))
        return analysis

    async def send_chat_message(self, text: str, code_context: str | None = None) -> str:
        """Ask the mentor ``text`` about ``code_context`` (default: current snippet).

        Both turns are appended only once the reply has arrived.
        """
        if not text.strip():
            raise InputEmpty("Please enter a message for the mentor.")

        context = self.conversation.current_code_context() if code_context is None else code_context
        generation = self.conversation.generation
        track = self.chat_track
        track.loading, track.error = True, None
        try:
            reply = await self._mentor_agent.run(code_snippet=context, user_text=text)
        except CodeClarityError as exc:
            if generation == self.conversation.generation:
                track.error = exc
            raise
        finally:
            track.loading = False

        if self._is_stale(generation, "chat"):
            return reply

        if code_context is not None and code_context.strip():
            self.conversation.set_code_context(code_context)
        self.conversation.add(Role.USER, text)
        self.conversation.add(Role.ASSISTANT, reply)
        return reply

    async def request_insight(self, code: str | None = None) -> str:
        """Ask for key concepts, challenges and patterns behind a snippet."""
        snippet = self.conversation.current_code_context() if code is None else code
        if not snippet.strip():
            raise InputEmpty("No code snippet available for deeper insights.")

        generation = self.conversation.generation
        track = self.insight_track
        track.loading, track.error = True, None
        try:
            insight = await self._insight_agent.run(code_snippet=snippet)
        except CodeClarityError as exc:
            if generation == self.conversation.generation:
                track.error = exc
            raise
        finally:
            track.loading = False

        if self._is_stale(generation, "insight"):
            return insight

        self.current_insight = insight
        return insight

    def reset_conversation(self) -> None:
        """Forget turns, snippet, analysis and insight. Never fails."""
        self.conversation.reset()
        self.current_analysis = None
        self.current_insight = None
        for track in (self.analysis_track, self.chat_track, self.insight_track):
            track.error = None
