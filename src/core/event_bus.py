"""
Event bus for pub/sub messaging between components.
Subscribers are plain callables invoked synchronously on publish, so a
subscriber sees a change as soon as the publishing operation completes.
"""

from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass
from datetime import datetime
from config.logging_config import get_logger
from config.settings import StoreEvent

logger = get_logger(__name__)

Subscriber = Callable[[Any], None]


@dataclass
class BusMessage:
    """Published message data structure."""
    topic: StoreEvent
    data: Any
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()


class EventBus:
    """
    Synchronous event bus using the observer pattern.
    A failing subscriber is logged and does not prevent delivery to the others.
    """

    def __init__(self):
        """Initialize the event bus."""
        self.subscribers: Dict[StoreEvent, List[Subscriber]] = {}
        self.all_subscribers: List[Callable[[BusMessage], None]] = []
        logger.debug("EventBus initialized")

    def subscribe(self, topic: Optional[StoreEvent],
                  callback: Callable) -> Callable[[], None]:
        """
        Subscribe to a topic.

        Args:
            topic: Topic to subscribe to (None = all topics; the callback
                   then receives the BusMessage instead of its data)
            callback: Called with the published data

        Returns:
            Function that removes the subscription
        """
        if topic is None:
            self.all_subscribers.append(callback)
            logger.debug("New subscriber added for ALL topics")
        else:
            self.subscribers.setdefault(topic, []).append(callback)
            logger.debug(f"New subscriber added for {topic.value}")

        return lambda: self.unsubscribe(topic, callback)

    def unsubscribe(self, topic: Optional[StoreEvent], callback: Callable) -> None:
        """
        Unsubscribe from a topic.

        Args:
            topic: Topic the callback was registered for (None = all)
            callback: Callback to remove
        """
        if topic is None:
            if callback in self.all_subscribers:
                self.all_subscribers.remove(callback)
                logger.debug("Subscriber removed from ALL topics")
        elif callback in self.subscribers.get(topic, []):
            self.subscribers[topic].remove(callback)
            logger.debug(f"Subscriber removed from {topic.value}")

    def publish(self, topic: StoreEvent, data: Any = None) -> None:
        """
        Publish a message to all subscribers of the topic.

        Args:
            topic: Message topic
            data: Payload handed to topic subscribers
        """
        message = BusMessage(topic=topic, data=data)

        if topic is not StoreEvent.TICK:
            logger.debug(f"Publishing message: {topic.value}")

        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self.subscribers.get(topic, [])):
            self._deliver(callback, data, topic)

        for callback in list(self.all_subscribers):
            self._deliver(callback, message, topic)

    def subscriber_count(self, topic: Optional[StoreEvent] = None) -> int:
        if topic is None:
            return len(self.all_subscribers)
        return len(self.subscribers.get(topic, []))

    def clear_all(self) -> None:
        """Clear all subscribers (for cleanup)."""
        self.subscribers.clear()
        self.all_subscribers.clear()
        logger.debug("All event bus subscribers cleared")

    @staticmethod
    def _deliver(callback: Callable, payload: Any, topic: StoreEvent) -> None:
        try:
            callback(payload)
        except Exception as e:
            logger.error(f"Subscriber error for {topic.value}: {e}", exc_info=True)
