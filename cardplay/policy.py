"""Error policy — decides retry vs. failover vs. propagate vs. degrade.

Adapters ask ``within_adapter`` after each failed attempt, the registry asks
``across_adapters`` after each failed adapter, and the engine asks
``for_evaluation`` when a goal evaluator blows up. The request layer uses
``public_status`` to turn any exception into one of the four public kinds.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cardplay.errors import (
    ProviderError,
    PublicKind,
    RejectedRequest,
    TransientProviderError,
    TurnError,
)

HTTP_STATUS: dict[str, int] = {
    "NotFound": 404,
    "InvalidInput": 400,
    "UpstreamUnavailable": 502,
    "InternalError": 500,
}


class Disposition(str, Enum):
    RETRY = "retry"
    FAILOVER = "failover"
    PROPAGATE = "propagate"
    DEGRADE = "degrade"


@dataclass(frozen=True)
class RetryConfig:
    """Bounded exponential backoff for a single adapter."""

    attempts: int = 3
    backoff: float = 0.5
    max_backoff: float = 8.0

    def delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (0-based)."""
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_backoff)
        return min(self.backoff * (2 ** attempt), self.max_backoff)


class ErrorPolicy:
    def __init__(
        self,
        retryable_statuses: tuple[int, ...] = (408, 429, 500, 502, 503, 504),
    ) -> None:
        self.retryable_statuses = retryable_statuses

    def error_for_status(
        self,
        provider_id: str,
        status: int,
        detail: str = "",
        retry_after: float | None = None,
    ) -> ProviderError:
        message = f"LLM backend returned HTTP {status}"
        if detail:
            message = f"{message}: {detail[:200]}"
        if status in self.retryable_statuses:
            return TransientProviderError(
                message,
                provider_id=provider_id,
                status_code=status,
                retry_after=retry_after,
            )
        return RejectedRequest(message, provider_id=provider_id, status_code=status)

    def within_adapter(self, exc: BaseException) -> Disposition:
        if isinstance(exc, TransientProviderError):
            return Disposition.RETRY
        return Disposition.PROPAGATE

    def across_adapters(self, exc: BaseException) -> Disposition:
        if isinstance(exc, ProviderError) and exc.retryable:
            return Disposition.FAILOVER
        return Disposition.PROPAGATE

    def for_evaluation(self, exc: BaseException) -> Disposition:
        # Non-achievement is always a safe answer for the goal check.
        return Disposition.DEGRADE

    def public_status(self, exc: BaseException) -> tuple[PublicKind, int]:
        kind: PublicKind = exc.kind if isinstance(exc, TurnError) else "InternalError"
        return kind, HTTP_STATUS[kind]

