"""
Integration tests for the APScheduler-backed ReminderScheduler.
Uses the in-memory job store.
"""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from src.reminder.scheduler import ReminderScheduler, deliver_reminder


@pytest_asyncio.fixture
async def scheduler():
    scheduler = ReminderScheduler(jobs_url=None)
    scheduler.start()
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.mark.integration
class TestReminderScheduler:
    """Scheduling, cancelling and delivering reminders."""

    @pytest.mark.asyncio
    async def test_permission_granted_while_running(self):
        scheduler = ReminderScheduler(jobs_url=None)

        assert await scheduler.request_permission() is False

        scheduler.start()
        try:
            assert await scheduler.request_permission() is True
        finally:
            scheduler.shutdown(wait=False)

    @pytest.mark.asyncio
    async def test_schedule_future_reminder(self, scheduler):
        fire_at = datetime.now() + timedelta(hours=1)

        assert await scheduler.schedule("abc", "Event Countdown", "A is starting now!", fire_at)
        assert scheduler.get_scheduled_count() == 1
        assert scheduler.get_next_run_time("abc") is not None

    @pytest.mark.asyncio
    async def test_past_reminder_is_refused(self, scheduler):
        fire_at = datetime.now() - timedelta(minutes=1)

        assert await scheduler.schedule("abc", "t", "b", fire_at) is False
        assert scheduler.get_scheduled_count() == 0

    @pytest.mark.asyncio
    async def test_rescheduling_replaces_job(self, scheduler):
        soon = datetime.now() + timedelta(hours=1)
        later = datetime.now() + timedelta(hours=5)

        await scheduler.schedule("abc", "t", "b", soon)
        await scheduler.schedule("abc", "t", "b", later)

        assert scheduler.get_scheduled_count() == 1

    @pytest.mark.asyncio
    async def test_cancel(self, scheduler):
        await scheduler.schedule("abc", "t", "b", datetime.now() + timedelta(hours=1))

        assert await scheduler.cancel("abc") is True
        assert await scheduler.cancel("abc") is False
        assert scheduler.get_next_run_time("abc") is None

    @pytest.mark.asyncio
    async def test_delivery_reaches_callback(self, scheduler):
        delivered = []
        scheduler.set_callback(lambda *args: delivered.append(args))

        await deliver_reminder(scheduler.name, "abc", "Event Countdown", "A is starting now!")

        assert delivered == [("abc", "Event Countdown", "A is starting now!")]

    @pytest.mark.asyncio
    async def test_async_callback_and_errors(self, scheduler):
        delivered = []

        async def callback(event_id, title, body):
            delivered.append(event_id)
            raise RuntimeError("speaker unplugged")

        scheduler.set_callback(callback)

        await deliver_reminder(scheduler.name, "abc", "t", "b")

        assert delivered == ["abc"]

    @pytest.mark.asyncio
    async def test_shutdown_detaches_delivery(self):
        delivered = []
        scheduler = ReminderScheduler(callback=lambda *args: delivered.append(args),
                                      jobs_url=None)
        scheduler.start()
        scheduler.shutdown(wait=False)

        await deliver_reminder(scheduler.name, "abc", "t", "b")

        assert delivered == []

    @pytest.mark.asyncio
    async def test_each_reminder_goes_to_its_own_scheduler(self):
        first_delivered, second_delivered = [], []
        first = ReminderScheduler(callback=lambda *args: first_delivered.append(args),
                                  jobs_url=None, name="first")
        second = ReminderScheduler(callback=lambda *args: second_delivered.append(args),
                                   jobs_url=None, name="second")
        first.start()
        second.start()

        try:
            await deliver_reminder("first", "abc", "t", "b")
        finally:
            first.shutdown(wait=False)
            second.shutdown(wait=False)

        assert first_delivered == [("abc", "t", "b")]
        assert second_delivered == []

    @pytest.mark.asyncio
    async def test_job_carries_scheduler_name(self, scheduler):
        await scheduler.schedule("abc", "t", "b", datetime.now() + timedelta(hours=1))

        job = scheduler.scheduler.get_job("reminder_abc")

        assert list(job.args) == [scheduler.name, "abc", "t", "b"]
