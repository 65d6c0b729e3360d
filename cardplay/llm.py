"""Provider adapters — one language-model backend behind a uniform contract.

Every adapter matches the protocol:

    async def complete(system_prompt, history, user_message, timeout) -> AdapterResult

`system_prompt` is the rendered persona, `history` the stored conversation
(oldest first) and `user_message` the new line from the user. The adapter
owns request formatting, response parsing, its own retry/backoff, and the
timeout for the whole call.

Two implementations are provided:

    HttpAdapter  — real HTTP client, supports OpenAI-compatible chat,
                   Anthropic messages and KoboldCpp text completion.
                   Selected by provider_format.
    EchoAdapter  — replies by echoing the user message. Useful for
                   smoke-testing the wiring without a running model.

Production code builds adapters from config via cardplay.registry.
Tests use scripted stubs (see conftest.py) instead.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from typing import Any, Literal, Protocol

import httpx

from cardplay.errors import (
    AdapterTimeout,
    EmptyResponse,
    ProviderError,
    TransientProviderError,
)
from cardplay.models import AdapterResult, Message
from cardplay.policy import Disposition, ErrorPolicy, RetryConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol — every adapter must match this signature
# ---------------------------------------------------------------------------

class ProviderAdapter(Protocol):
    provider_id: str

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[Message],
        user_message: str,
        timeout: float,
    ) -> AdapterResult: ...


# ---------------------------------------------------------------------------
# HttpAdapter — connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "anthropic", "koboldcpp"]

ANTHROPIC_VERSION = "2023-06-01"


class HttpAdapter:
    """Async HTTP adapter for chat and text-completion backends.

    Supported formats:
      "openai"     — POST /v1/chat/completions  {"model", "messages": [...]}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "anthropic"  — POST /v1/messages  {"model", "system", "messages", "max_tokens"}
                     Response: {"content": [{"type": "text", "text": "..."}]}
      "koboldcpp"  — POST /api/v1/generate  {"prompt": <flattened transcript>}
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_id:     Name used in logs and in AdapterResult.provider_id.
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         API key, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier (openai and anthropic formats).
        timeout:         Upper bound for a single HTTP attempt, in seconds.
        max_tokens:      Reply length cap sent to the backend.
        retry:           Backoff schedule for transient failures.
        policy:          Error classification.
    """

    def __init__(
        self,
        provider_id: str,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 60.0,
        max_tokens: int = 512,
        retry: RetryConfig | None = None,
        policy: ErrorPolicy | None = None,
    ) -> None:
        self.provider_id = provider_id
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens
        self._retry = retry or RetryConfig()
        self._policy = policy or ErrorPolicy()

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._format == "anthropic":
            headers["anthropic-version"] = ANTHROPIC_VERSION
            if self._api_key:
                headers["x-api-key"] = self._api_key
        elif self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(
        self, system_prompt: str, history: Sequence[Message], user_message: str
    ) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        turns = [{"role": m.role, "content": m.text} for m in history]
        turns.append({"role": "user", "content": user_message})

        if self._format == "anthropic":
            body: dict[str, Any] = {
                "system": system_prompt,
                "messages": turns,
                "max_tokens": self._max_tokens,
            }
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/messages", body

        if self._format == "koboldcpp":
            lines = [system_prompt, ""]
            lines.extend(
                f"{'User' if m.role == 'user' else 'Character'}: {m.text}" for m in history
            )
            lines.append(f"User: {user_message}")
            lines.append("Character:")
            body = {"prompt": "\n".join(lines), "max_length": self._max_tokens}
            return f"{self._base_url}/api/v1/generate", body

        # openai (default)
        body = {
            "messages": [{"role": "system", "content": system_prompt}, *turns],
            "max_tokens": self._max_tokens,
        }
        if self._model:
            body["model"] = self._model
        return f"{self._base_url}/v1/chat/completions", body

    def _parse_response(self, data: Any) -> str:
        """Extract the reply text, refusing empty or unrecognised bodies."""
        text: Any = None
        try:
            if self._format == "anthropic":
                text = "".join(
                    block.get("text", "")
                    for block in data["content"]
                    if block.get("type") == "text"
                )
            elif self._format == "koboldcpp":
                text = data["results"][0]["text"]
            else:
                text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, AttributeError):
            raise EmptyResponse(
                f"Unexpected response format from {self._format} backend",
                provider_id=self.provider_id,
            ) from None

        if not isinstance(text, str) or not text.strip():
            raise EmptyResponse(
                f"{self._format} backend returned an empty reply",
                provider_id=self.provider_id,
            )
        return text.strip()

    async def _send(self, url: str, body: dict, timeout: float) -> Any:
        """One HTTP attempt, with transport failures mapped onto the taxonomy."""
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise AdapterTimeout(
                f"LLM backend timed out after {timeout}s", provider_id=self.provider_id
            ) from e
        except httpx.HTTPStatusError as e:
            raise self._policy.error_for_status(
                self.provider_id,
                e.response.status_code,
                e.response.text,
                _retry_after(e.response),
            ) from e
        except httpx.TransportError as e:
            raise TransientProviderError(
                f"Cannot connect to LLM backend at {self._base_url}",
                provider_id=self.provider_id,
            ) from e

        try:
            return resp.json()
        except ValueError as e:
            raise EmptyResponse(
                "LLM backend returned a body that is not JSON", provider_id=self.provider_id
            ) from e

    async def _complete_with_retry(self, url: str, body: dict, timeout: float) -> str:
        attempt_timeout = min(self._timeout, timeout)
        attempt = 0
        while True:
            try:
                data = await self._send(url, body, attempt_timeout)
                return self._parse_response(data)
            except ProviderError as e:
                attempt += 1
                if (
                    attempt >= self._retry.attempts
                    or self._policy.within_adapter(e) is not Disposition.RETRY
                ):
                    raise
                retry_after = getattr(e, "retry_after", None)
                delay = self._retry.delay(attempt - 1, retry_after)
                if retry_after is None:
                    delay *= random.uniform(0.8, 1.2)
                logger.info(
                    "llm retry provider=%s attempt=%d delay=%.2fs error=%s",
                    self.provider_id, attempt, delay, e,
                )
                await asyncio.sleep(delay)

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[Message],
        user_message: str,
        timeout: float,
    ) -> AdapterResult:
        url, body = self._build_request(system_prompt, history, user_message)
        logger.debug(
            "llm call provider=%s url=%s history=%d message_len=%d",
            self.provider_id, url, len(history), len(user_message),
        )
        try:
            text = await asyncio.wait_for(
                self._complete_with_retry(url, body, timeout), timeout
            )
        except asyncio.TimeoutError as e:
            raise AdapterTimeout(
                f"LLM backend did not answer within {timeout}s", provider_id=self.provider_id
            ) from e

        logger.debug("llm response provider=%s len=%d", self.provider_id, len(text))
        return AdapterResult(text=text, provider_id=self.provider_id)


def _retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# EchoAdapter — replies with the user message; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoAdapter:
    """Echoes the user message back. No network calls.

    Lets you verify that the turn wiring (context loading, goal evaluation,
    persistence) works end-to-end without a running model.
    """

    def __init__(self, provider_id: str = "echo") -> None:
        self.provider_id = provider_id

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[Message],
        user_message: str,
        timeout: float,
    ) -> AdapterResult:
        logger.debug("EchoAdapter history=%d message_len=%d", len(history), len(user_message))
        return AdapterResult(text=user_message, provider_id=self.provider_id)
