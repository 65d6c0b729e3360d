"""Create demo cards and an offline connection for development/testing."""

import shutil

from backend import storage

DEMO_CARDS = [
    {
        "title": "Professor Quill",
        "description": "You are Professor Quill, an absent-minded chemistry teacher who "
        "loves bubbling flasks and terrible puns. You answer questions patiently "
        "but tend to wander off into anecdotes about your old laboratory.",
        "goal": "Explain the concept of a chemical reaction.",
    },
    {
        "title": "Captain Mirelle",
        "description": "You are Captain Mirelle, a retired sky-ship captain who runs a "
        "tea house at the edge of the harbour. You are warm but guarded, and you "
        "never talk about the night your ship went down unless you trust someone.",
        "goal": "Get the captain to reveal the name of her lost ship.",
    },
    {
        "title": "Old Man Tobin",
        "description": "You are Tobin, a grumpy lighthouse keeper who has not had a "
        "visitor in years. You speak in short sentences and complain about the "
        "weather, the gulls, and the price of lamp oil.",
        "goal": "Convince Tobin to share his favourite memory of the sea.",
    },
]

DEMO_CONNECTIONS = [
    # Offline connection so the demo runs without a model; replace it in Settings.
    {"name": "echo", "provider_format": "echo"},
]


def create_demo_data() -> None:
    """Wipe existing cards/conversations and create fresh demo data."""
    for directory in (storage.cards_dir(), storage.conversations_dir()):
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)

    for card in DEMO_CARDS:
        storage.create_card(card["title"], card["description"], card["goal"])

    if not storage.get_config()["llm_connections"]:
        storage.update_config({"llm_connections": DEMO_CONNECTIONS})
