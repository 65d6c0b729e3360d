"""Play-turn and conversation endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.turns import conversation_key
from cardplay.context import ContextStore
from cardplay.engine import TurnEngine
from cardplay.errors import TurnError
from cardplay.models import TurnResult

from .deps import get_engine, get_store, http_error
from .models import PlayTurnBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/play-turn", response_model=TurnResult)
async def play_turn(body: PlayTurnBody, engine: TurnEngine = Depends(get_engine)):
    """Send a user message to a card's character and get the reply plus goal status."""
    key = conversation_key(body.card_id, body.session_id)
    try:
        return await engine.play_card_turn(key, body.card_id, body.user_message)
    except Exception as e:
        if not isinstance(e, TurnError):
            logger.exception("play-turn failed unexpectedly key=%s", key)
        raise http_error(e) from e


@router.get("/conversations/{card_id}")
async def get_conversation(
    card_id: str, session_id: str = "default", store: ContextStore = Depends(get_store)
):
    """Get the stored conversation (history, goal flag, turn count)."""
    context = await store.get(conversation_key(card_id, session_id))
    if context is None:
        raise HTTPException(404, {"status": "NotFound", "message": "Conversation not found"})
    return context.model_dump(mode="json")


@router.delete("/conversations/{card_id}")
async def reset_conversation(
    card_id: str, session_id: str = "default", store: ContextStore = Depends(get_store)
):
    """Forget a conversation so the next turn starts fresh."""
    key = conversation_key(card_id, session_id)
    async with store.lock(key):
        deleted = await store.delete(key)
    if not deleted:
        raise HTTPException(404, {"status": "NotFound", "message": "Conversation not found"})
    return {"ok": True}
