"""Models for mentor chat turns and outbound prompt requests."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationTurn(BaseModel):
    """One message in the mentor chat.

    ``id`` is random so two turns with identical text stay distinct.
    ``content`` is raw model or user text and must be escaped before it is
    rendered as markup.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: Role
    content: str
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class PromptMode(str, Enum):
    FULL_ANALYSIS = "full-analysis"
    CHAT = "chat"
    INSIGHT = "insight"


class PromptRequest(BaseModel):
    """Describes one outbound call; built and consumed within a single request."""

    code_snippet: str = ""
    user_text: str = ""
    mode: PromptMode


class BuiltPrompt(BaseModel):
    """Final instruction text, split into system and user parts."""

    mode: PromptMode
    system: str
    user: str

    def as_text(self) -> str:
        """Join both parts for providers that take a single content string."""
        return f"{self.system}\n\n{self.user}"
