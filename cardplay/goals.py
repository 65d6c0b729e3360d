"""Goal evaluation — has the conversation met the card's goal yet?

Evaluators match the protocol:

    async def evaluate(self, goal: str, history: Sequence[Message]) -> bool: ...

`history` already contains the exchange being judged. Evaluators never decide
whether an earlier success still counts; the engine keeps the flag sticky.

    HeuristicEvaluator   — keyword overlap between the goal and the latest
                           character reply. Deterministic and free; the
                           default and fallback strategy.
    ModelJudgeEvaluator  — asks a model for a YES/NO verdict. Any failure of
                           that call counts as "not achieved".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any, Protocol

from cardplay.llm import ProviderAdapter
from cardplay.models import Message
from cardplay.prompts import (
    DEFAULT_JUDGE_PROMPT,
    DEFAULT_JUDGE_QUESTION,
    build_context,
    render_prompt,
)
from cardplay.registry import AdapterRegistry

logger = logging.getLogger(__name__)


class GoalEvaluator(Protocol):
    async def evaluate(self, goal: str, history: Sequence[Message]) -> bool: ...


# ---------------------------------------------------------------------------
# Heuristic
# ---------------------------------------------------------------------------

_STOPWORDS = frozenset(
    "a an and are as at be by for from has have how in into is it its of on or "
    "that the their them they this to was were what when where which who why "
    "will with you your about some any".split()
)

# Verbs that say what to do rather than what the reply should contain.
_DIRECTIVES = frozenset(
    "explain describe tell get make convince persuade find out learn ask "
    "discover reveal admit share give teach show help let".split()
)

_WORD_RE = re.compile(r"\w+(?:'\w+)?")


def goal_terms(goal: str) -> list[str]:
    """Content words of a goal, casefolded, in order, without duplicates.

    "Explain the concept of a chemical reaction." → ["concept", "chemical", "reaction"]
    """
    terms: list[str] = []
    for word in _WORD_RE.findall(goal.casefold()):
        if len(word) < 3 or word in _STOPWORDS or word in _DIRECTIVES:
            continue
        if word not in terms:
            terms.append(word)
    return terms


def latest_reply(history: Sequence[Message]) -> str | None:
    for message in reversed(history):
        if message.role == "assistant":
            return message.text
    return None


class HeuristicEvaluator:
    """Goal met when enough goal terms appear in the latest reply.

    Args:
        min_ratio: Fraction of goal terms (0–1] that must occur,
                   case-insensitively, as substrings of the reply.
    """

    def __init__(self, min_ratio: float = 0.6) -> None:
        if not 0 < min_ratio <= 1:
            raise ValueError(f"min_ratio must be in (0, 1], got {min_ratio}")
        self.min_ratio = min_ratio

    async def evaluate(self, goal: str, history: Sequence[Message]) -> bool:
        reply = latest_reply(history)
        terms = goal_terms(goal)
        if not reply or not terms:
            return False
        text = reply.casefold()
        hits = [t for t in terms if t in text]
        achieved = len(hits) / len(terms) >= self.min_ratio
        logger.debug("heuristic goal check hits=%s terms=%s achieved=%s", hits, terms, achieved)
        return achieved


# ---------------------------------------------------------------------------
# Model-assisted
# ---------------------------------------------------------------------------

class ModelJudgeEvaluator:
    """Secondary model call that answers YES or NO.

    Args:
        judge:      Adapter or registry to ask.
        timeout:    Seconds allowed for the verdict.
        system_prompt / question_template: Handlebars templates; the
                    question sees ``goal`` and ``msgs``.
    """

    def __init__(
        self,
        judge: ProviderAdapter | AdapterRegistry,
        timeout: float = 15.0,
        system_prompt: str = DEFAULT_JUDGE_PROMPT,
        question_template: str = DEFAULT_JUDGE_QUESTION,
    ) -> None:
        self._judge = judge
        self._timeout = timeout
        self._system_prompt = system_prompt
        self._question_template = question_template

    async def evaluate(self, goal: str, history: Sequence[Message]) -> bool:
        try:
            question = render_prompt(
                self._question_template, build_context(messages=history, goal=goal)
            )
            result = await self._judge.complete(self._system_prompt, [], question, self._timeout)
        except Exception as e:
            logger.warning("goal judge failed, counting goal as not achieved: %s", e)
            return False
        verdict = parse_verdict(result.text)
        logger.debug("goal judge provider=%s verdict=%s", result.provider_id, verdict)
        return verdict


def parse_verdict(text: str) -> bool:
    """True only for a reply that opens with YES."""
    words = _WORD_RE.findall(text.casefold())
    return bool(words) and words[0] == "yes"


# ---------------------------------------------------------------------------
# Selection from settings
# ---------------------------------------------------------------------------

def build_evaluator(
    settings: dict[str, Any],
    judge: ProviderAdapter | AdapterRegistry | None = None,
) -> GoalEvaluator:
    """Evaluator for the ``goal_evaluator`` settings block.

    ``{"strategy": "heuristic", "min_ratio": 0.6}`` or
    ``{"strategy": "model", "timeout": 15}``; the model strategy needs a judge.
    """
    strategy = settings.get("strategy", "heuristic")
    if strategy == "heuristic":
        return HeuristicEvaluator(min_ratio=float(settings.get("min_ratio", 0.6)))
    if strategy == "model":
        if judge is None:
            logger.warning("model goal judge has no connection, using the heuristic instead")
            return HeuristicEvaluator(min_ratio=float(settings.get("min_ratio", 0.6)))
        return ModelJudgeEvaluator(
            judge,
            timeout=float(settings.get("timeout", 15.0)),
            system_prompt=settings.get("system_prompt") or DEFAULT_JUDGE_PROMPT,
            question_template=settings.get("question_template") or DEFAULT_JUDGE_QUESTION,
        )
    raise ValueError(f"Unknown goal evaluator strategy {strategy!r}")
