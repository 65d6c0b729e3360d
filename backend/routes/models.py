"""Pydantic request models for API endpoints."""

from pydantic import BaseModel


class PlayTurnBody(BaseModel):
    card_id: str
    user_message: str
    session_id: str = "default"


class CheckConnectionBody(BaseModel):
    name: str = "check"
    provider_url: str = ""
    api_key: str = ""
    provider_format: str = "openai"
    model: str = ""
    timeout: float = 10.0
