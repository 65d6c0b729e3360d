"""Global app configuration (LLM connections, goal evaluator, timeouts, retry)."""

import json
from pathlib import Path
from typing import Any

from .core import data_dir

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connections": [],
    "goal_evaluator": {
        "strategy": "heuristic",
        "min_ratio": 0.6,
        "connection": "",  # judge connection name; empty → main connections
        "timeout": 15,
    },
    "timeouts": {
        "adapter": 30,
        "turn": 120,
    },
    "retry": {
        "attempts": 3,
        "backoff": 0.5,
        "max_backoff": 8.0,
    },
    "max_history_messages": None,  # None → full history
    "persona_prompt": "",  # empty → built-in template
}

# Sections merged key-by-key; everything else is replaced wholesale.
_DICT_SECTIONS = ("goal_evaluator", "timeouts", "retry")


def _config_path() -> Path:
    return data_dir() / "config.json"


def _defaults() -> dict[str, Any]:
    return json.loads(json.dumps(_CONFIG_DEFAULTS))


def _merge(config: dict[str, Any], fields: dict[str, Any]) -> None:
    for name, value in fields.items():
        if name not in config:
            continue
        if name in _DICT_SECTIONS:
            if isinstance(value, dict):
                config[name].update(value)
        else:
            config[name] = value


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = _defaults()
    path = _config_path()
    if path.is_file():
        _merge(config, json.loads(path.read_text()))
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config()
    _merge(config, fields)
    _config_path().write_text(json.dumps(config, indent=2))
    return config
