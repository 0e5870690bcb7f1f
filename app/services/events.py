"""In-process domain events emitted by the meeting manager."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Callable, DefaultDict, List, Type

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AttendeeMarkedPresent:
    meeting_id: str
    user_id: str
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ActionItemCompleted:
    meeting_id: str
    action_item_id: str
    assignee_id: str
    occurred_at: datetime = field(default_factory=_now)


EventHandler = Callable[[object], None]


class EventBus:
    """Synchronous publish/subscribe keyed on the event class."""

    def __init__(self):
        self._handlers: DefaultDict[Type, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: object) -> int:
        """
        Deliver the event to every subscriber of its type.

        Returns the number of handlers that completed. A failing handler is
        logged and does not stop the others; the state change that produced
        the event has already been committed.
        """
        delivered = 0
        for handler in list(self._handlers.get(type(event), ())):
            try:
                handler(event)
                delivered += 1
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Event handler %r failed for %s", handler, type(event).__name__
                )
        return delivered
