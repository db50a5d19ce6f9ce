"""
Event store.
Owns the ordered event collection, its persistence, and the reminders
derived from it. Observers are notified through the event bus after every
mutation has completed.
"""

import asyncio
import json
import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Set, Tuple, Union

from config.logging_config import get_logger
from config import settings
from config.settings import StoreEvent
from src.core.event_bus import EventBus
from src.events.models import Event, local_naive
from src.reminder.scheduler import ReminderService
from src.storage.kv_store import KeyValueStorage

logger = get_logger(__name__)


class EventStore:
    """
    Canonical collection of countdown events, sorted by date.

    Mutations are synchronous: by the time one returns, the collection is
    re-sorted and persisted and subscribers have been notified. Reminder
    calls are dispatched without being awaited; their failures are only logged.
    """

    def __init__(self, storage: KeyValueStorage, reminders: ReminderService,
                 bus: Optional[EventBus] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 save_key: str = settings.SAVE_KEY,
                 tick_interval: float = settings.TICK_INTERVAL):
        """
        Initialize the store. Nothing is loaded until init() is awaited.

        Args:
            storage: Key/value storage holding the encoded collection
            reminders: Reminder service used for side effects
            bus: Event bus for change notifications (created if None)
            clock: Returns the current local time
            save_key: Storage key for the collection
            tick_interval: Seconds between display clock refreshes
        """
        self.storage = storage
        self.reminders = reminders
        self.bus = bus or EventBus()
        self.clock = clock
        self.save_key = save_key
        self.tick_interval = tick_interval

        self._events: List[Event] = []
        self.current_time: datetime = clock()

        self._initialized = False
        self._tick_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def events(self) -> Tuple[Event, ...]:
        """Snapshot of the collection in date order."""
        return tuple(self._events)

    @property
    def is_running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def __len__(self) -> int:
        return len(self._events)

    # Lifecycle

    async def init(self) -> None:
        """
        Load persisted events (or seed sample events on first run), start the
        display tick, and request reminder permission. If the storage cannot
        be read the store starts empty and writes nothing until the next
        mutation.
        """
        if self._initialized:
            logger.warning("EventStore already initialized")
            return
        self._initialized = True

        self.current_time = self.clock()

        try:
            loaded = self._load()
        except Exception as e:
            # Stored data may still be intact, so neither seed nor save
            logger.error(f"Failed to read saved events: {e}", exc_info=True)
            loaded = []

        if loaded is None:
            logger.info("No saved events, adding sample events")
            self._add_sample_events()
        else:
            self._events = loaded
            self._sort()
            logger.info(f"Loaded {len(self._events)} events")
            self._publish_changed()

        self._tick_task = asyncio.create_task(self._tick_loop())

        self._dispatch(self._guard(self.reminders.request_permission(),
                                   "permission request"))

    async def dispose(self) -> None:
        """Stop the display tick and wait for outstanding reminder calls."""
        if self._tick_task:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

        await self.wait_for_reminders()
        logger.info("EventStore disposed")

    async def wait_for_reminders(self) -> None:
        """Wait until every dispatched reminder call has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # Mutations

    def add_event(self, title: str, date: datetime,
                  color_name: str = settings.DEFAULT_COLOR_NAME,
                  icon_name: str = settings.DEFAULT_ICON_NAME) -> Event:
        """
        Create and store a new event.

        Args:
            title: Display title (any string; validated by the caller)
            date: When the countdown reaches zero; aware values are
                  converted to local time
            color_name: Palette colour name
            icon_name: Icon identifier

        Returns:
            The created Event
        """
        event = Event(title=title, date=local_naive(date),
                      color_name=color_name, icon_name=icon_name)

        self._events.append(event)
        self._sort()
        self._save()
        self._schedule_reminder(event)

        logger.info(f"Added event {event.id}: {event}")
        self._publish_changed(StoreEvent.EVENT_ADDED, event)
        return event

    def update_event(self, existing: Event, title: str, date: datetime,
                     color_name: str, icon_name: str) -> Optional[Event]:
        """
        Replace an event's fields, keeping its id.

        Args:
            existing: Event to update (matched by id)
            title: New title
            date: New date
            color_name: New colour name
            icon_name: New icon identifier

        Returns:
            The replacement Event, or None if no event has that id
        """
        index = self._index_of(existing.id)
        if index is None:
            logger.warning(f"Cannot update unknown event {existing.id}")
            return None

        updated = Event(
            id=existing.id,
            title=title,
            date=local_naive(date),
            color_name=color_name,
            icon_name=icon_name
        )
        self._events[index] = updated
        self._sort()
        self._save()
        self._dispatch(self._replace_reminder(updated))

        logger.info(f"Updated event {updated.id}: {updated}")
        self._publish_changed(StoreEvent.EVENT_UPDATED, updated)
        return updated

    def delete_event(self, event: Event) -> int:
        """
        Delete every record with the event's id.

        Args:
            event: Event to delete (matched by id)

        Returns:
            Number of records removed
        """
        remaining = [e for e in self._events if e.id != event.id]
        removed = len(self._events) - len(remaining)

        if removed == 0:
            logger.warning(f"Cannot delete unknown event {event.id}")
            return 0

        self._events = remaining
        self._save()
        self._cancel_reminder(event)

        logger.info(f"Deleted event {event.id}")
        self._publish_changed(StoreEvent.EVENT_DELETED, [event])
        return removed

    def delete_events_at(self, positions: Iterable[int]) -> List[Event]:
        """
        Delete events by their position in the current date order.

        Args:
            positions: Indexes into events; out-of-range values are ignored

        Returns:
            The removed events, in their former order
        """
        targets = {p for p in positions if 0 <= p < len(self._events)}
        if not targets:
            return []

        removed = [e for i, e in enumerate(self._events) if i in targets]
        self._events = [e for i, e in enumerate(self._events) if i not in targets]
        self._save()

        for event in removed:
            self._cancel_reminder(event)

        logger.info(f"Deleted {len(removed)} events by position")
        self._publish_changed(StoreEvent.EVENT_DELETED, removed)
        return removed

    # Queries

    def get(self, event_id: Union[uuid.UUID, str]) -> Optional[Event]:
        try:
            index = self._index_of(uuid.UUID(str(event_id)))
        except ValueError:
            return None
        return self._events[index] if index is not None else None

    def upcoming_events(self, now: Optional[datetime] = None) -> List[Event]:
        """Events whose date is still ahead, soonest first."""
        now = now or self.clock()
        return [e for e in self._events if e.date > now]

    def past_events(self, now: Optional[datetime] = None) -> List[Event]:
        now = now or self.clock()
        return [e for e in self._events if e.date <= now]

    def next_event(self, now: Optional[datetime] = None) -> Optional[Event]:
        upcoming = self.upcoming_events(now)
        return upcoming[0] if upcoming else None

    # Observation

    def subscribe(self, callback: Callable[[Tuple[Event, ...]], None]) -> Callable[[], None]:
        """
        Register for collection changes.

        Args:
            callback: Called with the new events tuple after each change

        Returns:
            Function that removes the subscription
        """
        return self.bus.subscribe(StoreEvent.EVENTS_CHANGED, callback)

    def subscribe_tick(self, callback: Callable[[datetime], None]) -> Callable[[], None]:
        """Register for display clock updates; callback receives the new time."""
        return self.bus.subscribe(StoreEvent.TICK, callback)

    # Internals

    def _index_of(self, event_id: uuid.UUID) -> Optional[int]:
        for index, event in enumerate(self._events):
            if event.id == event_id:
                return index
        return None

    def _sort(self) -> None:
        self._events.sort(key=lambda e: e.date)

    def _publish_changed(self, topic: Optional[StoreEvent] = None, data=None) -> None:
        if topic is not None:
            self.bus.publish(topic, data)
        self.bus.publish(StoreEvent.EVENTS_CHANGED, self.events)

    def _add_sample_events(self) -> None:
        """Seed the collection for first-time users."""
        now = self.clock()

        for title, days, hour, minute, color_name, icon_name in settings.SAMPLE_EVENTS:
            day = now + timedelta(days=days)
            date = day.replace(hour=hour, minute=minute, second=0, microsecond=0)
            self.add_event(title=title, date=date, color_name=color_name, icon_name=icon_name)

    async def _tick_loop(self) -> None:
        """Refresh the display clock until cancelled."""
        logger.debug("Countdown tick started")

        try:
            while True:
                await asyncio.sleep(self.tick_interval)
                self.current_time = self.clock()
                self.bus.publish(StoreEvent.TICK, self.current_time)

        except asyncio.CancelledError:
            logger.debug("Countdown tick cancelled")
            raise

    # Persistence

    def _save(self) -> None:
        """Write the whole collection under the save key."""
        try:
            payload = json.dumps([event.to_dict() for event in self._events])
            self.storage.store(self.save_key, payload.encode("utf-8"))
            logger.debug(f"Saved {len(self._events)} events")

        except Exception as e:
            logger.error(f"Failed to save events: {e}", exc_info=True)

    def _load(self) -> Optional[List[Event]]:
        """
        Read the persisted collection.

        Returns:
            Decoded events, or None when nothing usable is stored

        Raises:
            Exception: Whatever the storage raises when it cannot be read
        """
        data = self.storage.load(self.save_key)

        if data is None:
            return None

        try:
            records = json.loads(data.decode("utf-8"))
            if not isinstance(records, list):
                raise ValueError(f"expected a list of events, got {type(records).__name__}")
            events = [Event.from_dict(record) for record in records]

        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Saved events could not be decoded: {e}")
            return None

        # Keep the first record for any repeated id
        seen: Set[uuid.UUID] = set()
        unique = []
        for event in events:
            if event.id not in seen:
                seen.add(event.id)
                unique.append(event)
        return unique

    # Reminders

    def _schedule_reminder(self, event: Event) -> None:
        if event.date <= self.clock():
            logger.debug(f"Not scheduling reminder for past event {event.id}")
            return

        self._dispatch(self._guard(self._schedule_call(event), f"schedule for {event.id}"))

    def _cancel_reminder(self, event: Event) -> None:
        self._dispatch(self._guard(self.reminders.cancel(str(event.id)),
                                   f"cancel for {event.id}"))

    async def _replace_reminder(self, event: Event) -> None:
        await self._guard(self.reminders.cancel(str(event.id)), f"cancel for {event.id}")

        if event.date > self.clock():
            await self._guard(self._schedule_call(event), f"schedule for {event.id}")

    def _schedule_call(self, event: Event):
        return self.reminders.schedule(
            str(event.id),
            settings.REMINDER_TITLE,
            settings.REMINDER_BODY_TEMPLATE.format(title=event.title),
            event.date
        )

    @staticmethod
    async def _guard(call, description: str) -> None:
        """Await a reminder call, logging failures instead of raising them."""
        try:
            result = await call
        except Exception as e:
            logger.error(f"Reminder {description} failed: {e}", exc_info=True)
            return

        if result is False:
            logger.warning(f"Reminder {description} was not applied")

    def _dispatch(self, coro) -> None:
        """Run a reminder coroutine without making the caller wait for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop, run it to completion
            asyncio.run(coro)
            return

        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
