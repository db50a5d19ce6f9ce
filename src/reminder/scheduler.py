"""
Reminder service and its APScheduler implementation.
Arms one-shot reminders at event times, with optional job persistence.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.triggers.date import DateTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from config.logging_config import get_logger
from config import settings

logger = get_logger(__name__)

# Delivery handlers of running schedulers, keyed by scheduler name. Persisted
# jobs reference deliver_reminder by module path and carry the name of the
# scheduler that armed them, so a restarted scheduler with the same name
# picks them up.
_delivery_handlers: Dict[str, Callable] = {}


async def deliver_reminder(scheduler_name: str, event_id: str, title: str, body: str) -> None:
    """
    Job function run by the scheduler when a reminder fires.

    Args:
        scheduler_name: Name of the scheduler that armed the reminder
        event_id: Identifier of the event the reminder belongs to
        title: Notification title
        body: Notification body
    """
    handler = _delivery_handlers.get(scheduler_name)
    if handler is None:
        logger.warning(f"Reminder {event_id} fired with no active scheduler {scheduler_name!r}")
        return

    await handler(event_id, title, body)


class ReminderService(ABC):
    """
    Arms and cancels one-shot reminders keyed by event id.
    Implementations report failures through their return value and never raise.
    """

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask the host for permission to deliver reminders."""

    @abstractmethod
    async def schedule(self, event_id: str, title: str, body: str,
                       fire_at: datetime) -> bool:
        """Arm a reminder for event_id at fire_at."""

    @abstractmethod
    async def cancel(self, event_id: str) -> bool:
        """Disarm the reminder for event_id."""


class ReminderScheduler(ReminderService):
    """
    APScheduler wrapper for managing reminder jobs.
    Provides persistence and recovery across restarts when given a job store URL.
    """

    def __init__(self, callback: Optional[Callable] = None,
                 jobs_url: Optional[str] = settings.JOBS_DB_URL,
                 name: str = settings.SCHEDULER_NAME):
        """
        Initialize scheduler.

        Args:
            callback: Function to call when a reminder fires
                     Signature: callback(event_id: str, title: str, body: str),
                     sync or async
            jobs_url: SQLAlchemy URL for the job store (None = in-memory)
            name: Routes fired jobs back to this scheduler; keep it stable
                  across restarts so persisted jobs are still delivered
        """
        self.callback = callback
        self.name = name

        # Configure job store for persistence
        if jobs_url:
            jobstores = {'default': SQLAlchemyJobStore(url=jobs_url)}
        else:
            jobstores = {'default': MemoryJobStore()}

        # Configure scheduler
        self.scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            job_defaults={
                'coalesce': settings.SCHEDULER_COALESCE,
                'max_instances': settings.SCHEDULER_MAX_INSTANCES,
                'misfire_grace_time': settings.SCHEDULER_MISFIRE_GRACE_TIME
            }
        )

        # Add event listeners
        self.scheduler.add_listener(
            self._job_executed,
            EVENT_JOB_EXECUTED
        )
        self.scheduler.add_listener(
            self._job_error,
            EVENT_JOB_ERROR
        )

        logger.info("ReminderScheduler initialized")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        """Start the scheduler. Must be called from within a running event loop."""
        if not self.scheduler.running:
            self.scheduler.start()
            if self.name in _delivery_handlers:
                logger.warning(f"Scheduler {self.name!r} replaces an already running scheduler")
            _delivery_handlers[self.name] = self._deliver
            logger.info("Scheduler started")

            # Log recovered jobs
            jobs = self.scheduler.get_jobs()
            if jobs:
                logger.info(f"Recovered {len(jobs)} scheduled reminders")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: Wait for running jobs to complete
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            if _delivery_handlers.get(self.name) == self._deliver:
                del _delivery_handlers[self.name]
            logger.info("Scheduler shutdown")

    async def request_permission(self) -> bool:
        """
        Reminders are delivered in-process, so permission is granted
        whenever the scheduler is running.
        """
        granted = self.scheduler.running
        if granted:
            logger.info("Reminder permission granted")
        else:
            logger.warning("Reminder permission unavailable: scheduler not running")
        return granted

    async def schedule(self, event_id: str, title: str, body: str,
                       fire_at: datetime) -> bool:
        """
        Schedule a reminder for execution.

        Args:
            event_id: Event identifier
            title: Notification title
            body: Notification body
            fire_at: When to deliver the reminder

        Returns:
            True if scheduled successfully
        """
        if fire_at <= datetime.now():
            logger.warning(
                f"Cannot schedule reminder {event_id} in the past: {fire_at}"
            )
            return False

        try:
            self.scheduler.add_job(
                func=deliver_reminder,
                trigger=DateTrigger(run_date=fire_at),
                id=self._job_id(event_id),
                args=[self.name, event_id, title, body],
                replace_existing=True
            )

            logger.info(
                f"Scheduled reminder {event_id} for "
                f"{fire_at.strftime('%Y-%m-%d %H:%M:%S')}"
            )
            return True

        except Exception as e:
            logger.error(f"Failed to schedule reminder {event_id}: {e}", exc_info=True)
            return False

    async def cancel(self, event_id: str) -> bool:
        """
        Cancel a scheduled reminder.

        Args:
            event_id: Event identifier

        Returns:
            True if a reminder was cancelled
        """
        try:
            self.scheduler.remove_job(self._job_id(event_id))
            logger.info(f"Cancelled reminder {event_id}")
            return True

        except JobLookupError:
            logger.debug(f"No pending reminder for {event_id}")
            return False

        except Exception as e:
            logger.warning(f"Failed to cancel reminder {event_id}: {e}")
            return False

    def get_scheduled_count(self) -> int:
        """
        Get number of currently scheduled reminders.

        Returns:
            Number of scheduled jobs
        """
        return len(self.scheduler.get_jobs())

    def get_next_run_time(self, event_id: str) -> Optional[datetime]:
        """
        Get next run time for a reminder.

        Args:
            event_id: Event identifier

        Returns:
            Next run time or None if not scheduled
        """
        job = self.scheduler.get_job(self._job_id(event_id))

        if job:
            return job.next_run_time

        return None

    def set_callback(self, callback: Callable) -> None:
        """
        Set or update the delivery callback.

        Args:
            callback: Function called with (event_id, title, body)
        """
        self.callback = callback
        logger.debug("Reminder callback set")

    @staticmethod
    def _job_id(event_id: str) -> str:
        return f"reminder_{event_id}"

    async def _deliver(self, event_id: str, title: str, body: str) -> None:
        """
        Deliver a fired reminder (internal).

        Args:
            event_id: Event identifier
            title: Notification title
            body: Notification body
        """
        logger.info(f"Reminder for {event_id}: {title} - {body}")

        if self.callback:
            try:
                result = self.callback(event_id, title, body)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(
                    f"Error in reminder callback for {event_id}: {e}",
                    exc_info=True
                )

    def _job_executed(self, event) -> None:
        """
        Event listener for successful job execution.

        Args:
            event: Job execution event
        """
        logger.debug(f"Job executed: {event.job_id}")

    def _job_error(self, event) -> None:
        """
        Event listener for job errors.

        Args:
            event: Job error event
        """
        logger.error(
            f"Job error: {event.job_id}, "
            f"exception: {event.exception}",
            exc_info=event.exception
        )
