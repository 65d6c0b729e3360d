"""Health check, settings, and connection check endpoints."""

from fastapi import APIRouter

from backend import storage

from .models import CheckConnectionBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/check-connection")
async def check_connection(body: CheckConnectionBody):
    """Ask a configured connection for a short reply to see whether it answers."""
    from cardplay.errors import TurnError
    from cardplay.registry import build_adapter

    try:
        adapter = build_adapter(body.model_dump())
        result = await adapter.complete("Reply with OK.", [], "ping", body.timeout)
    except (TurnError, ValueError) as e:
        return {"ok": False, "error": str(e)}
    return {"ok": True, "provider_id": result.provider_id}


@router.get("/settings")
async def get_settings():
    """Get global app settings (connections, goal evaluator, timeouts, retry)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update global app settings (partial merge)."""
    return storage.update_config(body)
