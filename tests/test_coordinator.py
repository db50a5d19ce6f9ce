"""
Tests for application wiring and the command-line boundary.
"""

from datetime import datetime, timedelta, timezone

import pytest

import src.main as cli
from config.settings import StoreEvent
from src.core.coordinator import Coordinator
from src.main import main, parse_arguments, validate_title
from src.reminder.scheduler import ReminderScheduler
from src.storage.kv_store import MemoryKeyValueStorage


@pytest.mark.integration
class TestCoordinator:
    """Coordinator lifecycle with an in-memory scheduler."""

    @pytest.mark.asyncio
    async def test_initialize_bootstraps_and_arms_reminders(self):
        scheduler = ReminderScheduler(jobs_url=None)
        coordinator = Coordinator(storage=MemoryKeyValueStorage(), scheduler=scheduler)

        assert await coordinator.initialize()
        await coordinator.store.wait_for_reminders()

        try:
            assert len(coordinator.store.events) == 3
            assert scheduler.get_scheduled_count() == 3
            for event in coordinator.store.events:
                assert scheduler.get_next_run_time(str(event.id)) is not None
        finally:
            await coordinator.stop()

        assert not scheduler.running
        assert not coordinator.store.is_running

    @pytest.mark.asyncio
    async def test_delete_disarms_reminder(self):
        scheduler = ReminderScheduler(jobs_url=None)
        coordinator = Coordinator(storage=MemoryKeyValueStorage(), scheduler=scheduler)
        await coordinator.initialize()

        try:
            store = coordinator.store
            first = store.events[0]
            store.delete_event(first)
            await store.wait_for_reminders()

            assert scheduler.get_next_run_time(str(first.id)) is None
            assert scheduler.get_scheduled_count() == 2
        finally:
            await coordinator.stop()

    @pytest.mark.asyncio
    async def test_fired_reminder_is_published(self):
        coordinator = Coordinator(storage=MemoryKeyValueStorage(),
                                  scheduler=ReminderScheduler(jobs_url=None))
        await coordinator.initialize()
        fired = []
        coordinator.event_bus.subscribe(StoreEvent.REMINDER_FIRED, fired.append)

        try:
            event = coordinator.store.events[0]
            coordinator._on_reminder_triggered(str(event.id), "Event Countdown", "body")
        finally:
            await coordinator.stop()

        assert fired[0]['event'] == event
        assert fired[0]['body'] == "body"


@pytest.mark.unit
class TestCommandLine:
    """Argument parsing and entry validation."""

    @pytest.mark.parametrize("title", ["", "   ", "\t", None])
    def test_blank_titles_rejected(self, title):
        assert validate_title(title) is None

    def test_title_kept_as_entered(self):
        assert validate_title(" Trip ") == " Trip "

    def test_parse_add(self):
        args = parse_arguments(["--add", "Trip", "--at", "2026-12-24 18:00", "--color", "Red"])

        assert args.add == "Trip"
        assert args.at == "2026-12-24 18:00"
        assert args.color == "Red"
        assert args.icon == "calendar"
        assert not args.watch
        assert not args.list

    def test_parse_list(self):
        args = parse_arguments(["--list"])

        assert args.list
        assert not args.watch
        assert args.add is None

    def test_unknown_color_rejected(self):
        with pytest.raises(SystemExit):
            parse_arguments(["--color", "Mauve"])

    @pytest.mark.asyncio
    async def test_blank_title_exits_before_startup(self):
        assert await main(["--add", "  ", "--at", "tomorrow"]) == 1

    @pytest.mark.asyncio
    async def test_add_requires_date(self):
        assert await main(["--add", "Trip"]) == 1

    @pytest.mark.asyncio
    async def test_unparseable_date(self):
        assert await main(["--add", "Trip", "--at", "whenever it suits"]) == 1


@pytest.mark.integration
class TestCommandLineRun:
    """main() against an in-memory coordinator."""

    @pytest.fixture
    def coordinators(self, monkeypatch):
        created = []

        def build():
            coordinator = Coordinator(storage=MemoryKeyValueStorage(),
                                      scheduler=ReminderScheduler(jobs_url=None))
            created.append(coordinator)
            return coordinator

        monkeypatch.setattr(cli, "Coordinator", build)
        monkeypatch.setattr(cli.signal, "signal", lambda signum, handler: None)
        return created

    @pytest.fixture
    def listed(self, monkeypatch):
        calls = []
        monkeypatch.setattr(cli, "list_events", calls.append)
        return calls

    @pytest.mark.asyncio
    async def test_list_flag_lists_events(self, coordinators, listed):
        assert await main(["--list"]) == 0

        assert listed == [coordinators[0].store]

    @pytest.mark.asyncio
    async def test_date_with_offset_is_stored_as_local_time(self, coordinators, listed):
        assert await main(["--add", "Trip", "--at", "2030-12-24 18:00+02:00"]) == 0

        store = coordinators[0].store
        trip = next(event for event in store.events if event.title == "Trip")
        expected = datetime(2030, 12, 24, 18, 0, tzinfo=timezone(timedelta(hours=2)))
        assert trip.date.tzinfo is None
        assert trip.date == expected.astimezone().replace(tzinfo=None)
        assert [e.date for e in store.events] == sorted(e.date for e in store.events)
