"""File-based JSON storage.

Data layout:
  data/
    cards/               Character cards, one file per card
      <id>.json          {id, title, description (persona), goal}
    conversations/       Conversation contexts, managed by cardplay's
      <sha1>.json        JsonContextStore (one file per conversation key)
    config.json          App settings (LLM connections, goal evaluator, timeouts)

Card ids are slugs: title → Unicode normalize → strip non-ASCII → lowercase →
replace non-alnum runs with hyphen → strip leading/trailing hyphens.

Config: get_config() returns defaults merged with stored values.
update_config() applies partial updates — llm_connections replaced wholesale,
goal_evaluator/timeouts/retry merged key-by-key, scalars overwritten.
"""

# Re-export all public symbols so `from backend import storage` keeps working.

from .core import (  # noqa: F401
    cards_dir,
    conversations_dir,
    data_dir,
    init_storage,
    slugify,
)

from .cards import (  # noqa: F401
    create_card,
    get_card,
    get_card_descriptor,
    save_card,
)

from .config import (  # noqa: F401
    get_config,
    update_config,
)
