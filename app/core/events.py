# File: app/core/events.py

from typing import Dict, Any, Callable, List, Optional, Type, Union
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, date
import threading
import uuid
import logging

logger = logging.getLogger(__name__)


# --- Base DomainEvent ---
@dataclass(eq=False)
class DomainEvent:
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)


# --- Schedule Event Definitions ---
@dataclass(eq=False)
class ScheduleCreated(DomainEvent):
    schedule_id: str = "";
    group_id: str = "";
    schedule_type: str = ""


@dataclass(eq=False)
class ScheduleUpdated(DomainEvent):
    schedule_id: str = "";
    group_id: str = "";
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class ScheduleDeleted(DomainEvent):
    schedule_id: str = "";
    group_id: str = ""


@dataclass(eq=False)
class OccurrenceEdited(DomainEvent):
    """Event fired when a single occurrence or a series tail is edited."""
    schedule_id: str = "";
    original_date: Optional[date] = None;
    new_date: Optional[date] = None;
    scope: str = "this";
    new_schedule_id: Optional[str] = None


# --- Dispatch Event Definitions ---
@dataclass(eq=False)
class ScheduleDispatched(DomainEvent):
    """Event fired when a schedule's message was handed to the sender."""
    schedule_id: str = "";
    group_id: str = "";
    fire_date: Optional[date] = None;
    delivery: Dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class ScheduleDispatchFailed(DomainEvent):
    """Event fired when sending for a schedule failed; it is retried next tick."""
    schedule_id: str = "";
    group_id: str = "";
    fire_date: Optional[date] = None;
    error: str = ""


# --- Event Bus Class ---
class EventBus:
    """
    Central event bus for domain events.

    Handlers are plain callables invoked synchronously on the publishing
    thread. Handler errors are logged and never reach the publisher.

    Usage:
        global_event_bus.subscribe(ScheduleDispatched, handle_dispatched)
        global_event_bus.publish(ScheduleDispatched(schedule_id="..."))
    """

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, event: DomainEvent) -> None:
        """
        Publish an event synchronously to all registered handlers.

        Args:
            event: The domain event to publish
        """
        event_type = type(event).__name__
        logger.debug(f"Publishing event {event_type} ID {event.event_id}")
        with self._lock:
            subscribers_copy = list(self.subscribers.get(event_type, []))
        for handler in subscribers_copy:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in handler {getattr(handler, '__name__', repr(handler))} "
                    f"for {event_type} ID {event.event_id}: {e}",
                    exc_info=True,
                )

    def subscribe(self, event_type: Union[str, Type[DomainEvent]], handler: Callable) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: Event class or event type name string
            handler: Callable to handle the event
        """
        event_type_name = event_type.__name__ if isinstance(event_type, type) else str(event_type)
        with self._lock:
            self.subscribers[event_type_name].append(handler)
        logger.debug(f"Subscribed handler {getattr(handler, '__name__', repr(handler))} to {event_type_name}")

    def clear_subscriptions(self) -> None:
        """Clear all event subscriptions."""
        with self._lock:
            self.subscribers.clear()
        logger.debug("Cleared all event subscriptions")


# Global event bus instance - use this throughout the application
global_event_bus = EventBus()
