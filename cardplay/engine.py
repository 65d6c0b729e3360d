"""Turn engine — runs one conversation turn end-to-end.

Turn flow (states in capitals):
  1. LOADING     Validate the request, take the per-key lock, load or create
                 the conversation context, check it belongs to this card.
  2. GENERATING  Render the persona prompt and ask the adapter registry for
                 the character's reply.
  3. EVALUATING  Ask the goal evaluator — unless the goal is already achieved,
                 in which case it stays achieved and the check is skipped.
  4. PERSISTING  Append the user and character messages, OR in the goal flag,
                 bump turn count and version, write the context back.
  5. DONE        Return the TurnResult.

Any failure moves the turn to FAILED. Nothing is written unless PERSISTING is
reached, so a failed turn can be resent unchanged.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from cardplay.context import ContextStore
from cardplay.errors import CardNotFound, ContextCardMismatch, InvalidInput, TurnTimeout
from cardplay.goals import GoalEvaluator
from cardplay.models import (
    CardDescriptor,
    ConversationContext,
    Message,
    TurnRequest,
    TurnResult,
)
from cardplay.policy import Disposition, ErrorPolicy
from cardplay.prompts import DEFAULT_PERSONA_PROMPT, persona_prompt
from cardplay.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    LOADING = "loading"
    GENERATING = "generating"
    EVALUATING = "evaluating"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


CardLookup = Callable[[str], Any]
TransitionHook = Callable[[str, TurnState], None]


class TurnEngine:
    """Orchestrates turns against a shared context store.

    Args:
        registry:             Ranked provider adapters.
        store:                Conversation context store (shared, per-key locked).
        evaluator:            Goal evaluator.
        card_lookup:          ``get_card(id)`` of the card store, sync or async.
                              Only needed for play_card_turn().
        adapter_timeout:      Seconds each adapter may take.
        turn_timeout:         Seconds the whole turn may take.
        max_history_messages: Only the newest N stored messages are sent to
                              the model, starting at a user message. None
                              sends everything.
        persona_template:     Handlebars template for the system prompt.
        on_transition:        Called with (conversation_key, state) on every
                              state change.
    """

    def __init__(
        self,
        *,
        registry: AdapterRegistry,
        store: ContextStore,
        evaluator: GoalEvaluator,
        card_lookup: CardLookup | None = None,
        adapter_timeout: float = 30.0,
        turn_timeout: float = 120.0,
        max_history_messages: int | None = None,
        persona_template: str = DEFAULT_PERSONA_PROMPT,
        policy: ErrorPolicy | None = None,
        on_transition: TransitionHook | None = None,
    ) -> None:
        if adapter_timeout <= 0 or turn_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if turn_timeout < adapter_timeout:
            raise ValueError(
                f"turn_timeout ({turn_timeout}s) must not be below adapter_timeout ({adapter_timeout}s)"
            )
        if turn_timeout < registry.budget(adapter_timeout):
            logger.warning(
                "turn_timeout %.1fs is below the registry budget %.1fs; "
                "late fallbacks will be cut off by the turn deadline",
                turn_timeout, registry.budget(adapter_timeout),
            )
        self._registry = registry
        self._store = store
        self._evaluator = evaluator
        self._card_lookup = card_lookup
        self._adapter_timeout = adapter_timeout
        self._turn_timeout = turn_timeout
        self._max_history = max_history_messages
        self._persona_template = persona_template
        self._policy = policy or ErrorPolicy()
        self._on_transition = on_transition

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def play_turn(self, request: TurnRequest) -> TurnResult:
        """Run one turn and return its result, or raise a TurnError."""
        key = request.conversation_key
        card = request.card
        self._enter(key, TurnState.LOADING)
        try:
            if not request.user_message.strip():
                raise InvalidInput("user_message must not be empty")

            async with self._store.lock(key):
                context = await self._store.get(key)
                if context is None:
                    context = ConversationContext(key=key, card_id=card.id)
                elif context.card_id != card.id:
                    raise ContextCardMismatch(key, context.card_id, card.id)

                user_msg = Message(role="user", text=request.user_message)
                try:
                    reply_msg, achieved = await asyncio.wait_for(
                        self._generate_and_evaluate(key, card, context, user_msg),
                        self._turn_timeout,
                    )
                except asyncio.TimeoutError as e:
                    raise TurnTimeout(self._turn_timeout) from e

                self._enter(key, TurnState.PERSISTING)
                updated = context.with_turn(user_msg, reply_msg, achieved)
                await self._store.upsert(key, updated)
        except BaseException as e:
            self._enter(key, TurnState.FAILED, e)
            raise

        self._enter(key, TurnState.DONE)
        logger.info(
            "turn done key=%s card=%s turn=%d goal_achieved=%s",
            key, card.id, updated.turn_count, updated.goal_achieved,
        )
        return TurnResult(
            card_id=card.id,
            card_description=card.description,
            card_goal=card.goal,
            user_message=request.user_message,
            ai_response=reply_msg.text,
            is_goal_achieved=updated.goal_achieved,
        )

    async def play_card_turn(
        self, conversation_key: str, card_id: str, user_message: str
    ) -> TurnResult:
        """Look the card up by id, then run play_turn()."""
        if self._card_lookup is None:
            raise RuntimeError("TurnEngine was built without a card_lookup")
        card = self._card_lookup(card_id)
        if inspect.isawaitable(card):
            card = await card
        if card is None:
            raise CardNotFound(card_id)
        return await self.play_turn(
            TurnRequest(conversation_key=conversation_key, card=card, user_message=user_message)
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _generate_and_evaluate(
        self,
        key: str,
        card: CardDescriptor,
        context: ConversationContext,
        user_msg: Message,
    ) -> tuple[Message, bool]:
        self._enter(key, TurnState.GENERATING)
        system_prompt = persona_prompt(card, self._persona_template)
        result = await self._registry.complete(
            system_prompt,
            self._window(context.messages),
            user_msg.text,
            self._adapter_timeout,
        )
        reply = Message(role="assistant", text=result.text)
        logger.debug("turn reply key=%s provider=%s len=%d", key, result.provider_id, len(result.text))

        self._enter(key, TurnState.EVALUATING)
        if context.goal_achieved:
            return reply, True
        transcript = [*context.messages, user_msg, reply]
        try:
            achieved = await self._evaluator.evaluate(card.goal, transcript)
        except Exception as e:
            if self._policy.for_evaluation(e) is not Disposition.DEGRADE:
                raise
            logger.warning("goal evaluation failed key=%s, counting as not achieved: %s", key, e)
            achieved = False
        return reply, achieved

    def _window(self, messages: Sequence[Message]) -> Sequence[Message]:
        if self._max_history is None:
            return messages
        if self._max_history <= 0:
            return []
        window = messages[-self._max_history:]
        # Chat formats expect the history to open with a user message.
        if window and window[0].role == "assistant":
            window = window[1:]
        return window

    def _enter(self, key: str, state: TurnState, error: BaseException | None = None) -> None:
        if error is None:
            logger.debug("turn key=%s state=%s", key, state.value)
        else:
            logger.debug("turn key=%s state=%s error=%r", key, state.value, error)
        if self._on_transition is not None:
            self._on_transition(key, state)
