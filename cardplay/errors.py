"""Failure taxonomy for the turn engine.

Every class carries the externally visible ``kind`` it surfaces as, and
whether the failure is ``retryable``. The request layer only ever sees one of
four kinds:

    NotFound             — unknown card or conversation
    InvalidInput         — empty message, card/context mismatch
    UpstreamUnavailable  — providers exhausted or the turn timed out
    InternalError        — anything else
"""

from __future__ import annotations

from typing import Literal

PublicKind = Literal["NotFound", "InvalidInput", "UpstreamUnavailable", "InternalError"]


class TurnError(RuntimeError):
    """Base class for all failures raised by the turn engine."""

    kind: PublicKind = "InternalError"
    retryable: bool = False


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class InvalidInput(TurnError):
    """The request was rejected before any provider call."""

    kind = "InvalidInput"


class ContextCardMismatch(InvalidInput):
    """The conversation key is already bound to a different card."""

    def __init__(self, conversation_key: str, bound_card_id: str, card_id: str) -> None:
        super().__init__(
            f"Conversation {conversation_key!r} belongs to card {bound_card_id!r}, "
            f"not {card_id!r}"
        )
        self.conversation_key = conversation_key
        self.bound_card_id = bound_card_id
        self.card_id = card_id


class CardNotFound(TurnError):
    kind = "NotFound"

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card {card_id!r} not found")
        self.card_id = card_id


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------

class ProviderError(TurnError):
    """A language-model backend could not produce a reply."""

    kind = "UpstreamUnavailable"

    def __init__(
        self,
        message: str,
        *,
        provider_id: str = "",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider_id = provider_id
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Rate limiting, 5xx or a broken connection. Worth retrying."""

    retryable = True

    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class AdapterTimeout(ProviderError):
    retryable = True


class EmptyResponse(ProviderError):
    """The backend answered, but with nothing usable."""

    retryable = True


class RejectedRequest(ProviderError):
    """Malformed request, bad credentials or rejected content.

    Structural rather than provider-specific, so it is neither retried nor
    failed over.
    """

    kind = "InternalError"


class AllProvidersExhausted(ProviderError):
    def __init__(self, failures: list[ProviderError]) -> None:
        summary = "; ".join(f"{f.provider_id or '?'}: {f}" for f in failures)
        super().__init__(f"All providers failed ({summary})")
        self.failures = failures


class NoProvidersConfigured(ProviderError):
    def __init__(self) -> None:
        super().__init__("No LLM connection is configured — add one in Settings")


# ---------------------------------------------------------------------------
# Turn lifecycle errors
# ---------------------------------------------------------------------------

class TurnTimeout(TurnError):
    kind = "UpstreamUnavailable"
    retryable = True

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Turn did not complete within {timeout}s")
        self.timeout = timeout


class StaleContext(TurnError):
    """Compare-and-swap on the conversation version failed."""

    def __init__(self, conversation_key: str, expected: int, found: int) -> None:
        super().__init__(
            f"Conversation {conversation_key!r} changed underneath this turn "
            f"(expected version {expected}, found {found})"
        )
        self.conversation_key = conversation_key
        self.expected = expected
        self.found = found
