"""Shared endpoint dependencies and error mapping."""

import logging

from fastapi import Depends, HTTPException, Request

from backend import storage
from backend.turns import build_engine
from cardplay.context import ContextStore
from cardplay.engine import TurnEngine
from cardplay.errors import TurnError
from cardplay.policy import ErrorPolicy

logger = logging.getLogger(__name__)

_policy = ErrorPolicy()


def http_error(exc: BaseException) -> HTTPException:
    """Map any failure onto one of the public statuses."""
    kind, status = _policy.public_status(exc)
    message = str(exc) if isinstance(exc, TurnError) else "Unexpected error"
    return HTTPException(status, {"status": kind, "message": message})


def get_store(request: Request) -> ContextStore:
    return request.app.state.context_store


def get_engine(request: Request, store: ContextStore = Depends(get_store)) -> TurnEngine:
    """A TurnEngine for the current settings, around the app's shared store.

    The engine is kept on app.state and rebuilt only when the settings change.
    """
    config = storage.get_config()
    cached = getattr(request.app.state, "turn_engine", None)
    if cached is not None and cached[0] == config:
        return cached[1]
    try:
        engine = build_engine(config, store)
    except TurnError as e:
        raise http_error(e) from e
    except ValueError as e:
        logger.error("invalid turn engine settings: %s", e)
        raise HTTPException(500, {"status": "InternalError", "message": str(e)}) from e
    request.app.state.turn_engine = (config, engine)
    return engine
