"""Conversation context stores.

A store keeps one ConversationContext per opaque conversation key. The engine
holds ``store.lock(key)`` for the whole turn, so at most one turn per key is
in flight; different keys never wait on each other. ``upsert`` additionally
compares versions, so a writer that skipped the lock cannot silently
overwrite a newer context.

Two implementations:

    InMemoryContextStore — process-local dict of JSON snapshots.
    JsonContextStore     — one JSON file per key under a directory:

        {base}/
          {sha1(key)}.json   ← ConversationContext, key stored inside
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Protocol

from cardplay.errors import StaleContext
from cardplay.models import ConversationContext

logger = logging.getLogger(__name__)


class ContextStore(Protocol):
    async def get(self, key: str) -> ConversationContext | None: ...

    async def upsert(self, key: str, context: ConversationContext) -> None: ...

    async def delete(self, key: str) -> bool: ...

    def lock(self, key: str): ...


class KeyedLocks:
    """One asyncio.Lock per key, dropped again once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


def _check_version(key: str, stored: ConversationContext | None, new: ConversationContext) -> None:
    found = stored.version if stored is not None else 0
    if new.version != found + 1:
        raise StaleContext(key, new.version - 1, found)


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryContextStore:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._locks = KeyedLocks()

    def lock(self, key: str):
        return self._locks.hold(key)

    async def get(self, key: str) -> ConversationContext | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return ConversationContext.model_validate_json(raw)

    async def upsert(self, key: str, context: ConversationContext) -> None:
        _check_version(key, await self.get(key), context)
        self._data[key] = context.model_dump_json()

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def snapshot(self, key: str) -> str | None:
        """Serialised form of the stored context, exactly as held."""
        return self._data.get(key)


# ---------------------------------------------------------------------------
# JSON files
# ---------------------------------------------------------------------------

class JsonContextStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)
        self._locks = KeyedLocks()

    def _path(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self._base / f"{digest}.json"

    def lock(self, key: str):
        return self._locks.hold(key)

    async def get(self, key: str) -> ConversationContext | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return ConversationContext.model_validate_json(path.read_text())

    async def upsert(self, key: str, context: ConversationContext) -> None:
        _check_version(key, await self.get(key), context)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(context.model_dump_json(indent=2))
        os.replace(tmp, path)
        logger.debug("context saved key=%s version=%d", key, context.version)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        path.unlink()
        return True
