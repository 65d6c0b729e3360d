"""Turn engine wiring: settings → adapters, evaluator, engine."""

import logging
from typing import Any

from cardplay.context import ContextStore
from cardplay.engine import TurnEngine
from cardplay.goals import build_evaluator
from cardplay.policy import ErrorPolicy, RetryConfig
from cardplay.prompts import DEFAULT_PERSONA_PROMPT
from cardplay.registry import AdapterRegistry, build_registry

from backend import storage

logger = logging.getLogger(__name__)


def conversation_key(card_id: str, session_id: str) -> str:
    """Key for one player's conversation with one card."""
    return f"{card_id}:{session_id}"


def _judge_registry(
    config: dict[str, Any], main: AdapterRegistry, retry: RetryConfig, policy: ErrorPolicy
) -> AdapterRegistry:
    """Registry the model judge should use: its own connection, or the main one."""
    name = config["goal_evaluator"].get("connection", "")
    if not name:
        return main
    for conn in config["llm_connections"]:
        if conn.get("name") == name:
            return build_registry([conn], retry=retry, policy=policy)
    logger.warning("goal judge connection %r not found, using the main connections", name)
    return main


def build_engine(config: dict[str, Any], store: ContextStore) -> TurnEngine:
    """Assemble a TurnEngine from app settings around a shared context store.

    Raises NoProvidersConfigured when no connection is enabled.
    """
    policy = ErrorPolicy()
    retry = RetryConfig(
        attempts=int(config["retry"]["attempts"]),
        backoff=float(config["retry"]["backoff"]),
        max_backoff=float(config["retry"]["max_backoff"]),
    )
    registry = build_registry(config["llm_connections"], retry=retry, policy=policy)
    judge = None
    if config["goal_evaluator"].get("strategy") == "model":
        judge = _judge_registry(config, registry, retry, policy)
    evaluator = build_evaluator(config["goal_evaluator"], judge)

    max_history = config.get("max_history_messages")
    return TurnEngine(
        registry=registry,
        store=store,
        evaluator=evaluator,
        card_lookup=storage.get_card_descriptor,
        adapter_timeout=float(config["timeouts"]["adapter"]),
        turn_timeout=float(config["timeouts"]["turn"]),
        max_history_messages=int(max_history) if max_history is not None else None,
        persona_template=config.get("persona_prompt") or DEFAULT_PERSONA_PROMPT,
        policy=policy,
    )
