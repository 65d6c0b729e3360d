"""Tests for cardplay.models."""

import pytest
from pydantic import ValidationError

from cardplay.models import (
    CardDescriptor,
    ConversationContext,
    Message,
    TurnRequest,
    TurnResult,
)


class TestCardDescriptor:
    def test_required_fields(self) -> None:
        card = CardDescriptor(id="quill", description="A chemist.", goal="Explain.")
        assert card.id == "quill"
        assert card.description == "A chemist."
        assert card.goal == "Explain."

    def test_is_frozen(self) -> None:
        card = CardDescriptor(id="quill", description="A chemist.", goal="Explain.")
        with pytest.raises(ValidationError):
            card.goal = "Something else"


class TestMessage:
    def test_timestamp_defaults_to_utc_now(self) -> None:
        m = Message(role="user", text="hi")
        assert m.timestamp.tzinfo is not None

    def test_invalid_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Message(role="narrator", text="x")


class TestConversationContext:
    def _context(self) -> ConversationContext:
        return ConversationContext(key="quill:s1", card_id="quill")

    def test_defaults(self) -> None:
        ctx = self._context()
        assert ctx.messages == []
        assert ctx.goal_achieved is False
        assert ctx.turn_count == 0
        assert ctx.version == 0

    def test_with_turn_appends_both_messages(self) -> None:
        ctx = self._context()
        user = Message(role="user", text="Hello")
        reply = Message(role="assistant", text="Greetings")
        after = ctx.with_turn(user, reply, goal_achieved=False)
        assert [m.text for m in after.messages] == ["Hello", "Greetings"]
        assert after.turn_count == 1
        assert after.version == 1

    def test_with_turn_leaves_original_untouched(self) -> None:
        ctx = self._context()
        before = ctx.model_dump_json()
        ctx.with_turn(Message(role="user", text="a"), Message(role="assistant", text="b"), True)
        assert ctx.model_dump_json() == before

    def test_goal_flag_never_reverts(self) -> None:
        ctx = self._context()
        achieved = ctx.with_turn(
            Message(role="user", text="a"), Message(role="assistant", text="b"), True
        )
        later = achieved.with_turn(
            Message(role="user", text="c"), Message(role="assistant", text="d"), False
        )
        assert later.goal_achieved is True

    def test_serialise_roundtrip(self) -> None:
        ctx = self._context().with_turn(
            Message(role="user", text="a"), Message(role="assistant", text="b"), False
        )
        assert ConversationContext.model_validate_json(ctx.model_dump_json()) == ctx


class TestTurnContracts:
    def test_request_carries_card(self) -> None:
        card = CardDescriptor(id="quill", description="d", goal="g")
        req = TurnRequest(conversation_key="k", card=card, user_message="hi")
        assert req.card.id == "quill"

    def test_result_wire_fields(self) -> None:
        result = TurnResult(
            card_id="quill", card_description="d", card_goal="g",
            user_message="hi", ai_response="hello", is_goal_achieved=False,
        )
        assert set(result.model_dump()) == {
            "card_id", "card_description", "card_goal",
            "user_message", "ai_response", "is_goal_achieved",
        }
