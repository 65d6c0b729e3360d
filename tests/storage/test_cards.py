"""Tests for card storage."""

from backend import storage
from cardplay.models import CardDescriptor


def test_get_card_missing():
    assert storage.get_card("nobody") is None
    assert storage.get_card_descriptor("nobody") is None


def test_create_and_get_card():
    card = storage.create_card("Professor Quill", "A chemist.", "Explain reactions.")
    assert card["id"] == "professor-quill"
    loaded = storage.get_card("professor-quill")
    assert loaded == card


def test_card_descriptor():
    storage.create_card("Professor Quill", "A chemist.", "Explain reactions.")
    descriptor = storage.get_card_descriptor("professor-quill")
    assert descriptor == CardDescriptor(
        id="professor-quill", description="A chemist.", goal="Explain reactions."
    )


def test_lookup_by_unslugged_id_misses():
    storage.create_card("Professor Quill", "A chemist.", "Explain reactions.")
    assert storage.get_card("Professor Quill") is None


def test_save_card_upserts():
    storage.create_card("Tobin", "Keeper.", "Hear a story.")
    storage.save_card({"id": "tobin", "title": "Tobin", "description": "Grumpy keeper.",
                       "goal": "Hear a story."})
    assert storage.get_card("tobin")["description"] == "Grumpy keeper."
    assert len(list(storage.cards_dir().glob("*.json"))) == 1
