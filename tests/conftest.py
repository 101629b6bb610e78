"""
tests/conftest.py - Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import pytest

from muster.database import MusterDatabase
from muster.events.calendar.event_store import EventRecordStore
from muster.events.calendar.rsvp_registry import RSVPRegistry
from muster.events.reminders.dispatcher import NotificationDispatcher
from muster.events.reminders.scheduler import ReminderScheduler
from tests.fakes import FakeNotifier, FakeRoles

NOW = 1_700_000_000


class FakeClock:
    """Settable clock returning UNIX timestamps."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def event_attrs(
    *,
    title: str = "Raid Night",
    category: str = "public",
    start_at: int = NOW + 7200,
    channel_ref: str = "100",
) -> dict:
    """Attributes for EventRecordStore.create."""
    return {
        "title": title,
        "category": category,
        "start_at": start_at,
        "channel_ref": channel_ref,
        "guild_ref": "1",
        "created_by": "42",
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "events" / "events.sqlite")


@pytest.fixture
def database(db_path):
    """A real sqlitedict database in a temporary directory."""
    db = MusterDatabase(db_path)
    yield db
    db.close()


@pytest.fixture
def store(database, clock) -> EventRecordStore:
    return EventRecordStore(database, clock=clock)


@pytest.fixture
def registry(store) -> RSVPRegistry:
    return RSVPRegistry(store)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def roles() -> FakeRoles:
    return FakeRoles(vfs="<@&11>", gvg="<@&22>")


@pytest.fixture
def dispatcher(registry, notifier) -> NotificationDispatcher:
    return NotificationDispatcher(registry, notifier)


@pytest.fixture
def scheduler(store, registry, dispatcher, notifier, roles, clock):
    return ReminderScheduler(
        store,
        registry,
        dispatcher,
        notifier,
        roles,
        clock=clock,
    )
