import asyncio
import shutil
from collections.abc import Sequence
from pathlib import Path

import pytest

from backend import storage
from cardplay.errors import ProviderError
from cardplay.models import AdapterResult, Message

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe and re-init data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    storage.init_storage(TEST_DATA_DIR)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


class ScriptedAdapter:
    """Adapter stub that plays back canned replies in order.

    Each script entry is either a reply string or an exception to raise.
    Every call is recorded as (system_prompt, history, user_message, timeout).
    """

    def __init__(self, provider_id: str, script: Sequence[str | BaseException] = (),
                 delay: float = 0.0) -> None:
        self.provider_id = provider_id
        self.script = list(script)
        self.delay = delay
        self.calls: list[tuple[str, list[Message], str, float]] = []

    async def complete(self, system_prompt, history, user_message, timeout) -> AdapterResult:
        self.calls.append((system_prompt, list(history), user_message, timeout))
        if self.delay:
            await asyncio.sleep(self.delay)
        step = self.script.pop(0) if self.script else "..."
        if isinstance(step, BaseException):
            if isinstance(step, ProviderError) and not step.provider_id:
                step.provider_id = self.provider_id
            raise step
        return AdapterResult(text=step, provider_id=self.provider_id)


@pytest.fixture
def scripted():
    """Factory for ScriptedAdapter: scripted("a", ["reply", SomeError()])."""
    return ScriptedAdapter
