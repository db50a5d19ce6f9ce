"""
Shared fixtures for EventCount tests.

Settings create their data and log directories on import, so they are
pointed at a temporary location before any application module loads.
"""

import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="eventcount-tests-")
os.environ.setdefault("EVENTCOUNT_DATA_DIR", os.path.join(_TEST_ROOT, "data"))
os.environ.setdefault("EVENTCOUNT_LOGS_DIR", os.path.join(_TEST_ROOT, "logs"))

import asyncio  # noqa: E402
from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402

from src.events.store import EventStore  # noqa: E402
from src.reminder.scheduler import ReminderService  # noqa: E402
from src.storage.kv_store import MemoryKeyValueStorage  # noqa: E402


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeReminderService(ReminderService):
    """Records reminder calls instead of arming anything."""

    def __init__(self, fail: bool = False, gate: asyncio.Event = None):
        self.calls = []
        self.fail = fail
        self.gate = gate

    async def _record(self, call):
        if self.gate is not None:
            await self.gate.wait()
        self.calls.append(call)
        if self.fail:
            raise RuntimeError(f"reminder service unavailable for {call[0]}")
        return True

    async def request_permission(self) -> bool:
        return await self._record(("permission",))

    async def schedule(self, event_id, title, body, fire_at) -> bool:
        return await self._record(("schedule", event_id, title, body, fire_at))

    async def cancel(self, event_id) -> bool:
        return await self._record(("cancel", event_id))

    def scheduled_ids(self):
        return [call[1] for call in self.calls if call[0] == "schedule"]

    def cancelled_ids(self):
        return [call[1] for call in self.calls if call[0] == "cancel"]


@pytest.fixture
def now():
    return datetime(2026, 1, 17, 9, 0, 0)


@pytest.fixture
def clock(now):
    return FixedClock(now)


@pytest.fixture
def storage():
    return MemoryKeyValueStorage()


@pytest.fixture
def reminders():
    return FakeReminderService()


@pytest.fixture
def store(storage, reminders, clock):
    """Store that has not been initialized (no load, no tick)."""
    return EventStore(storage=storage, reminders=reminders, clock=clock)
