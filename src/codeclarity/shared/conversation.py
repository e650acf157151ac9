"""In-memory mentor conversation: ordered turns plus the current code context."""

from __future__ import annotations

import logging

from codeclarity.schemas.conversation import ConversationTurn, Role

logger = logging.getLogger(__name__)


class ConversationState:
    """Append-only list of turns, cleared as a whole by ``reset``.

    ``generation`` increases on every reset.  A caller that records it
    before awaiting a response can tell afterwards whether the
    conversation it was answering still exists.
    """

    def __init__(self) -> None:
        self._turns: list[ConversationTurn] = []
        self._code_context = ""
        self._generation = 0

    @property
    def turns(self) -> tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    @property
    def generation(self) -> int:
        return self._generation

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    def add(self, role: Role, content: str) -> ConversationTurn:
        turn = ConversationTurn(role=role, content=content)
        self.append(turn)
        return turn

    def reset(self) -> None:
        self._turns.clear()
        self._code_context = ""
        self._generation += 1
        logger.debug("Conversation reset (generation %d)", self._generation)

    def current_code_context(self) -> str:
        return self._code_context

    def set_code_context(self, code: str) -> None:
        self._code_context = code
