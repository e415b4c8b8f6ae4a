"""
Booking transition events.

BookingLifecycle publishes one event per committed transition. Message
delivery (WhatsApp, e-mail) lives outside the engine and subscribes here.
A failing subscriber is logged and does not affect the committed booking
or the other subscribers.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class BookingEventType(str, Enum):
    CREATED = "booking_created"
    DRAFT_CREATED = "draft_created"
    DRAFT_FINALIZED = "draft_finalized"
    RESCHEDULED = "booking_rescheduled"
    SERVICES_EDITED = "services_edited"
    CONFIRMED = "booking_confirmed"
    EXECUTED = "session_executed"
    DELIVERED = "material_delivered"
    CANCELLED = "booking_cancelled"
    RETENTION_ACCEPTED = "retention_accepted"
    TIP_ADDED = "tip_added"
    KEY_STATE_CHANGED = "key_state_changed"
    REASSIGNED = "photographer_reassigned"
    STATUS_FORCED = "status_forced"


@dataclass(frozen=True)
class BookingEvent:
    type: BookingEventType
    booking_id: str
    actor: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[BookingEvent], None]


class EventPublisher:
    """In-process fan-out to subscribers, optionally filtered by event type.

    ``published`` keeps only the last ``history_limit`` events.
    """

    def __init__(self, history_limit: int = 1000) -> None:
        self._subscribers: list[tuple[Subscriber, frozenset[BookingEventType]]] = []
        self.published: deque[BookingEvent] = deque(maxlen=history_limit)

    def subscribe(self, callback: Subscriber, *types: BookingEventType) -> None:
        self._subscribers.append((callback, frozenset(types)))

    def publish(self, event: BookingEvent) -> None:
        self.published.append(event)
        logger.info("Event %s for booking %s by %s", event.type.value, event.booking_id, event.actor)
        for callback, types in self._subscribers:
            if types and event.type not in types:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber failed for %s on booking %s", event.type.value, event.booking_id)
