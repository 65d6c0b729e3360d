"""Card file storage (read side of the external card store)."""

import json
from pathlib import Path
from typing import Any

from cardplay.models import CardDescriptor

from .core import cards_dir, slugify


def _card_path(card_id: str) -> Path:
    return cards_dir() / f"{slugify(card_id)}.json"


def get_card(card_id: str) -> dict[str, Any] | None:
    """Load a card by id. Returns None if it does not exist."""
    path = _card_path(card_id)
    if not path.is_file():
        return None
    card = json.loads(path.read_text())
    if card.get("id") != card_id:
        return None
    return card


def get_card_descriptor(card_id: str) -> CardDescriptor | None:
    """The card as the turn engine sees it (id, persona, goal)."""
    card = get_card(card_id)
    if card is None:
        return None
    return CardDescriptor(id=card["id"], description=card["description"], goal=card["goal"])


def save_card(card: dict[str, Any]) -> dict[str, Any]:
    """Write a card (upsert by id)."""
    _card_path(card["id"]).write_text(json.dumps(card, indent=2))
    return card


def create_card(title: str, description: str, goal: str) -> dict[str, Any]:
    """Create a card whose id is the slug of its title."""
    card = {"id": slugify(title), "title": title, "description": description, "goal": goal}
    return save_card(card)
