"""Event system for FormKeeper.

This module provides the event record and the event bus that the kernel and
all plugins use to communicate without direct coupling. Every significant
action on a form (registration, value change, validation, submission, reset)
is published as a typed FormEvent.

Emission is synchronous and re-entrant: a handler may emit further events,
which are delivered before the outer emission continues.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from .types import EventType

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FormEvent:
    """A single event emitted on the form event bus.

    Attributes:
        type: Event kind from the EventType enum
        payload: Kind-specific data (e.g. path, value, previous_value)
        ts: UTC timestamp when the event was created

    Examples:
        >>> event = FormEvent(
        ...     type=EventType.CHANGE,
        ...     payload={"path": "email", "value": "a@b.com", "previous_value": ""},
        ... )
        >>> event.payload["path"]
        'email'
    """
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        """Normalize string event kinds to EventType."""
        if isinstance(self.type, str) and not isinstance(self.type, EventType):
            object.__setattr__(self, "type", EventType(self.type))

    def get(self, key: str, default: Any = None) -> Any:
        """Shortcut for payload lookups."""
        return self.payload.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Returns:
            Dictionary with the event type, ISO 8601 timestamp and payload.
        """
        return {
            "type": self.type.value,
            "ts": self.ts.isoformat(),
            "payload": dict(self.payload),
        }


def make_event(event_type: Union[EventType, str], **payload: Any) -> FormEvent:
    """Build a FormEvent from keyword payload entries."""
    return FormEvent(type=event_type, payload=payload)


EventHandler = Callable[[FormEvent], None]
"""Type alias for event handler callbacks.

Handlers are called synchronously in subscription order. Exceptions raised
by a handler are logged and never reach other handlers or the emitter.
"""

Unsubscribe = Callable[[], None]


class EventBus:
    """Publish/subscribe hub for form events.

    Features:
    - Per-kind subscriptions returning an unsubscribe callable
    - Synchronous dispatch in subscription order
    - Error isolation (a failing handler is logged and skipped)

    Examples:
        >>> bus = EventBus()
        >>> seen = []
        >>> unsubscribe = bus.on(EventType.BLUR, lambda e: seen.append(e.payload["path"]))
        >>> bus.emit(make_event(EventType.BLUR, path="email"))
        >>> seen
        ['email']
        >>> unsubscribe()
        >>> bus.listener_count(EventType.BLUR)
        0
    """

    def __init__(self):
        """Initialize the bus with an empty listener registry."""
        self._listeners: Dict[EventType, List[EventHandler]] = {}

    def on(self, event_type: Union[EventType, str], handler: EventHandler) -> Unsubscribe:
        """Subscribe to an event kind.

        Subscribing the same handler twice to one kind has no effect.

        Args:
            event_type: Event kind to listen for
            handler: Callback invoked with each matching event

        Returns:
            Callable that removes this subscription
        """
        event_type = EventType(event_type)
        handlers = self._listeners.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

        def unsubscribe() -> None:
            self.off(event_type, handler)

        return unsubscribe

    def off(self, event_type: Union[EventType, str], handler: EventHandler) -> None:
        """Unsubscribe a handler from an event kind.

        Removing a handler that is not subscribed is a no-op.
        """
        handlers = self._listeners.get(EventType(event_type))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to every current subscriber of its kind.

        Args:
            event: Event to dispatch
        """
        handlers = self._listeners.get(event.type)
        if not handlers:
            return

        # Handlers may subscribe or unsubscribe while we iterate
        for handler in list(handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Error in event handler for %s", event.type.value)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()

    def listener_count(self, event_type: Optional[Union[EventType, str]] = None) -> int:
        """Get count of registered listeners.

        Args:
            event_type: If provided, count listeners for this kind only.
                        If None, count all listeners.
        """
        if event_type is not None:
            return len(self._listeners.get(EventType(event_type), []))
        return sum(len(handlers) for handlers in self._listeners.values())


__all__ = [
    "FormEvent",
    "EventHandler",
    "Unsubscribe",
    "EventBus",
    "make_event",
]
