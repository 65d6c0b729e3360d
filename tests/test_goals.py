"""Tests for goal evaluation strategies."""

import pytest

from cardplay.errors import AdapterTimeout
from cardplay.goals import (
    HeuristicEvaluator,
    ModelJudgeEvaluator,
    build_evaluator,
    goal_terms,
    parse_verdict,
)
from cardplay.models import Message
from cardplay.registry import AdapterRegistry

GOAL = "Explain the concept of a chemical reaction."


def _exchange(reply: str, question: str = "Can you explain what a catalyst is?") -> list[Message]:
    return [Message(role="user", text=question), Message(role="assistant", text=reply)]


# ── goal_terms ───────────────────────────────────────────


def test_goal_terms_drop_stopwords_and_directives():
    assert goal_terms(GOAL) == ["concept", "chemical", "reaction"]


def test_goal_terms_dedupe_and_lowercase():
    assert goal_terms("Find the SHIP, the ship's name!") == ["ship", "ship's", "name"]


def test_goal_terms_of_empty_goal():
    assert goal_terms("") == []


def test_goal_terms_keep_accented_words():
    assert goal_terms("Get the chef to name the café.") == ["chef", "name", "café"]


async def test_heuristic_hit_in_non_latin_script():
    goal = "Объясни понятие химической реакции."
    assert goal_terms(goal) == ["объясни", "понятие", "химической", "реакции"]
    history = _exchange("Химической реакции? Понятие простое: вещества превращаются в новые.")
    assert await HeuristicEvaluator().evaluate(goal, history) is True


# ── HeuristicEvaluator ───────────────────────────────────


async def test_heuristic_miss():
    evaluator = HeuristicEvaluator()
    history = _exchange("A catalyst speeds things up without being used up itself.")
    assert await evaluator.evaluate(GOAL, history) is False


async def test_heuristic_hit_is_case_insensitive():
    evaluator = HeuristicEvaluator()
    history = _exchange("A CHEMICAL REACTION rearranges atoms into new substances.")
    assert await evaluator.evaluate(GOAL, history) is True


async def test_heuristic_respects_ratio():
    history = _exchange("Every chemical has a story.")  # 1 of 3 terms
    assert await HeuristicEvaluator(min_ratio=0.6).evaluate(GOAL, history) is False
    assert await HeuristicEvaluator(min_ratio=0.3).evaluate(GOAL, history) is True


async def test_heuristic_only_looks_at_latest_reply():
    history = [
        *_exchange("A chemical reaction is a change of substances."),
        *_exchange("Anyway, lovely weather.", question="And the weather?"),
    ]
    assert await HeuristicEvaluator().evaluate(GOAL, history) is False


async def test_heuristic_ignores_user_messages():
    history = [Message(role="user", text="Tell me about chemical reaction concepts")]
    assert await HeuristicEvaluator().evaluate(GOAL, history) is False


async def test_heuristic_goal_without_terms_is_never_met():
    history = _exchange("Anything at all.")
    assert await HeuristicEvaluator().evaluate("Explain it to me.", history) is False


def test_heuristic_ratio_validated():
    with pytest.raises(ValueError):
        HeuristicEvaluator(min_ratio=0)
    with pytest.raises(ValueError):
        HeuristicEvaluator(min_ratio=1.5)


# ── ModelJudgeEvaluator ──────────────────────────────────


@pytest.mark.parametrize(
    "text, verdict",
    [("YES", True), ("Yes.", True), ("yes, clearly", True),
     ("NO", False), ("No, not yet", False), ("", False), ("Maybe yes", False)],
)
def test_parse_verdict(text, verdict):
    assert parse_verdict(text) is verdict


async def test_judge_yes(scripted):
    judge = scripted("judge", ["YES"])
    evaluator = ModelJudgeEvaluator(judge, timeout=3.0)
    assert await evaluator.evaluate(GOAL, _exchange("It is a rearrangement of atoms.")) is True


async def test_judge_sees_goal_and_transcript(scripted):
    judge = scripted("judge", ["NO"])
    evaluator = ModelJudgeEvaluator(judge, timeout=3.0)
    assert await evaluator.evaluate(GOAL, _exchange("Catalysts are neat.")) is False
    system_prompt, history, question, timeout = judge.calls[0]
    assert "YES or NO" in system_prompt
    assert history == []
    assert GOAL in question
    assert "User: Can you explain what a catalyst is?" in question
    assert "Character: Catalysts are neat." in question
    assert timeout == 3.0


async def test_judge_failure_degrades_to_not_achieved(scripted):
    judge = scripted("judge", [AdapterTimeout("slow")])
    evaluator = ModelJudgeEvaluator(judge)
    assert await evaluator.evaluate(GOAL, _exchange("A chemical reaction!")) is False


async def test_judge_registry_exhausted_degrades(scripted):
    registry = AdapterRegistry([scripted("a", [AdapterTimeout("slow")])])
    evaluator = ModelJudgeEvaluator(registry)
    assert await evaluator.evaluate(GOAL, _exchange("A chemical reaction!")) is False


async def test_judge_bad_template_degrades(scripted):
    judge = scripted("judge", ["YES"])
    evaluator = ModelJudgeEvaluator(judge, question_template="{{> missing_partial}}")
    assert await evaluator.evaluate(GOAL, _exchange("x")) is False
    assert judge.calls == []


# ── build_evaluator ──────────────────────────────────────


def test_build_heuristic():
    evaluator = build_evaluator({"strategy": "heuristic", "min_ratio": 0.5})
    assert isinstance(evaluator, HeuristicEvaluator)
    assert evaluator.min_ratio == 0.5


def test_build_model(scripted):
    evaluator = build_evaluator({"strategy": "model", "timeout": 4}, scripted("judge"))
    assert isinstance(evaluator, ModelJudgeEvaluator)


def test_build_model_without_judge_falls_back():
    assert isinstance(build_evaluator({"strategy": "model"}), HeuristicEvaluator)


def test_build_unknown_strategy():
    with pytest.raises(ValueError, match="Unknown goal evaluator"):
        build_evaluator({"strategy": "vibes"})
