"""
Main application coordinator.
Builds the storage, reminder scheduler and event store, and tears them down
in reverse order.
"""

from typing import Optional

from config.logging_config import get_logger
from config.settings import StoreEvent
from src.core.event_bus import EventBus
from src.events.store import EventStore
from src.reminder.scheduler import ReminderScheduler
from src.storage.kv_store import KeyValueStorage, SqliteKeyValueStorage

logger = get_logger(__name__)


class Coordinator:
    """
    Application coordinator.
    Initializes components in dependency order and wires reminder delivery
    onto the event bus.
    """

    def __init__(self, storage: Optional[KeyValueStorage] = None,
                 scheduler: Optional[ReminderScheduler] = None):
        """
        Initialize coordinator.

        Args:
            storage: Key/value storage (default: SQLite at settings.DB_PATH)
            scheduler: Reminder scheduler (default: persistent job store)
        """
        logger.info("Initializing Coordinator")

        self.event_bus = EventBus()
        self.storage = storage
        self.scheduler = scheduler
        self.store: Optional[EventStore] = None
        self.running = False

    async def initialize(self) -> bool:
        """
        Initialize all components in dependency order.
        Must be awaited inside the event loop that will run the scheduler.

        Returns:
            True if all components initialized successfully
        """
        try:
            logger.info("Initializing components...")

            # 1. Storage
            if self.storage is None:
                self.storage = SqliteKeyValueStorage()

            # 2. Scheduler
            if self.scheduler is None:
                self.scheduler = ReminderScheduler()
            self.scheduler.set_callback(self._on_reminder_triggered)
            self.scheduler.start()

            # 3. Event store
            self.store = EventStore(
                storage=self.storage,
                reminders=self.scheduler,
                bus=self.event_bus
            )
            await self.store.init()

            self.running = True
            logger.info("All components initialized successfully")
            return True

        except Exception as e:
            logger.error(f"Initialization failed: {e}", exc_info=True)
            return False

    async def stop(self) -> None:
        """Stop the coordinator."""
        logger.info("Stopping coordinator...")

        self.running = False

        if self.store:
            await self.store.dispose()

        if self.scheduler:
            self.scheduler.shutdown(wait=False)

        self.event_bus.clear_all()

        logger.info("Coordinator stopped")

    def _on_reminder_triggered(self, event_id: str, title: str, body: str) -> None:
        """
        Callback for fired reminders.

        Args:
            event_id: Event the reminder belongs to
            title: Notification title
            body: Notification body
        """
        event = self.store.get(event_id) if self.store else None
        logger.info(f"Reminder triggered: {body}")

        self.event_bus.publish(
            StoreEvent.REMINDER_FIRED,
            {'event': event, 'event_id': event_id, 'title': title, 'body': body}
        )
