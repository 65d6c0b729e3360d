"""Core domain models.

The engine, the adapters and the context stores all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardDescriptor(BaseModel):
    """A character card as handed over by the card store. Never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str  # persona text, used as the system prompt
    goal: str


class Message(BaseModel):
    role: Role
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ConversationContext(BaseModel):
    """Everything remembered about one conversation between turns."""

    key: str
    card_id: str
    messages: list[Message] = Field(default_factory=list)  # append-only
    goal_achieved: bool = False  # monotonic
    turn_count: int = 0
    version: int = 0  # bumped on every successful write

    def with_turn(
        self, user: Message, assistant: Message, goal_achieved: bool
    ) -> ConversationContext:
        """Return the context as it stands after one more completed turn.

        The receiver is left untouched, so an abandoned turn leaves nothing
        half-written behind.
        """
        return ConversationContext(
            key=self.key,
            card_id=self.card_id,
            messages=[*self.messages, user, assistant],
            goal_achieved=self.goal_achieved or goal_achieved,
            turn_count=self.turn_count + 1,
            version=self.version + 1,
        )


class TurnRequest(BaseModel):
    conversation_key: str
    card: CardDescriptor
    user_message: str


class TurnResult(BaseModel):
    """The full response contract. Inputs are echoed back verbatim."""

    card_id: str
    card_description: str
    card_goal: str
    user_message: str
    ai_response: str
    is_goal_achieved: bool


class AdapterResult(BaseModel):
    text: str
    provider_id: str
