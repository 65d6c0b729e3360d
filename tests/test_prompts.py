"""Tests for Handlebars prompt rendering: compilation, context building,
the `last` helper, and error handling."""

import pytest

from cardplay.models import CardDescriptor, Message
from cardplay.prompts import (
    DEFAULT_JUDGE_QUESTION,
    PromptError,
    build_context,
    persona_prompt,
    render_prompt,
)

CARD = CardDescriptor(
    id="quill",
    description="You are Professor Quill, a chemist who's fond of puns.",
    goal="Explain the concept of a chemical reaction.",
)


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


def test_last_helper_takes_tail():
    tpl = "{{#last items 2}}{{this}} {{/last}}"
    assert render_prompt(tpl, {"items": ["a", "b", "c"]}) == "b c "


# ── build_context ────────────────────────────────────────────


def test_build_context_messages():
    ctx = build_context(messages=[
        Message(role="user", text="Hi"),
        Message(role="assistant", text="Hello"),
    ])
    assert [m["speaker"] for m in ctx["msgs"]] == ["User", "Character"]
    assert ctx["msgs"][0]["is_user"] is True
    assert "card" not in ctx
    assert "goal" not in ctx


def test_build_context_card_and_goal():
    ctx = build_context(card=CARD, goal="g")
    assert ctx["card"]["description"] == CARD.description
    assert ctx["goal"] == "g"


# ── persona_prompt ───────────────────────────────────────────


def test_persona_prompt_starts_with_description_unescaped():
    prompt = persona_prompt(CARD)
    assert prompt.startswith("You are Professor Quill, a chemist who's fond of puns.")
    assert "Stay in character" in prompt


def test_persona_prompt_custom_template():
    assert persona_prompt(CARD, "Persona: {{card.id}}") == "Persona: quill"


def test_judge_question_lists_transcript():
    ctx = build_context(
        messages=[Message(role="user", text="What's a reaction?"),
                  Message(role="assistant", text="Atoms <rearranging>.")],
        goal=CARD.goal,
    )
    question = render_prompt(DEFAULT_JUDGE_QUESTION, ctx)
    assert "Goal: Explain the concept of a chemical reaction." in question
    assert "User: What's a reaction?\nCharacter: Atoms <rearranging>.\n" in question
