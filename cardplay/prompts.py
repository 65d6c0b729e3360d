"""Handlebars prompt rendering for the persona and the goal judge."""

from collections.abc import Callable, Sequence
from typing import Any

import pybars

from cardplay.models import CardDescriptor, Message

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


DEFAULT_PERSONA_PROMPT = (
    "{{{card.description}}}\n\n"
    "Stay in character at all times. Reply to the user in a few sentences, "
    "speaking as this character."
)

DEFAULT_JUDGE_PROMPT = (
    "You are a strict referee for a role-play conversation. You decide whether "
    "the conversation has met its goal. Answer with a single word: YES or NO."
)

DEFAULT_JUDGE_QUESTION = (
    "Goal: {{{goal}}}\n\n"
    "Transcript:\n"
    "{{#last msgs 20}}{{speaker}}: {{{text}}}\n{{/last}}\n"
    "Has the goal been achieved? Answer YES or NO."
)


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}} — iterate over the last N items."""
    result = []
    for item in list(items)[-int(count):]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def build_context(
    card: CardDescriptor | None = None,
    messages: Sequence[Message] = (),
    goal: str | None = None,
) -> dict[str, Any]:
    """Assemble template variables for render_prompt().

    ``msgs`` carries one entry per message with a display ``speaker`` so the
    transcript can be laid out without template logic.
    """
    ctx: dict[str, Any] = {
        "msgs": [
            {
                "role": m.role,
                "text": m.text,
                "speaker": "User" if m.role == "user" else "Character",
                "is_user": m.role == "user",
            }
            for m in messages
        ],
    }
    if card is not None:
        ctx["card"] = {"id": card.id, "description": card.description, "goal": card.goal}
    if goal is not None:
        ctx["goal"] = goal
    return ctx


def persona_prompt(card: CardDescriptor, template: str = DEFAULT_PERSONA_PROMPT) -> str:
    """System prompt for the character described by ``card``."""
    return render_prompt(template, build_context(card=card)).strip()
