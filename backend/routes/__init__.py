"""FastAPI API endpoints under /api.

Endpoint groups: play-turn, conversations (inspect/reset), settings,
health, check-connection.
"""

from fastapi import APIRouter

from .play import router as play_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(play_router)
