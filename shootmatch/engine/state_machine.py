"""
Finite state machine for booking status.

Every status change goes through an explicit (from, trigger) -> to entry.
Anything not listed is rejected with the list of triggers valid from the
current status. Admin force-sets bypass the table on purpose and are
handled by BookingLifecycle.force_status.

Usage:
    sm = BookingStateMachine()
    sm.next_status(BookingStatus.CONFIRMED, BookingTrigger.SESSION_EXECUTED)
    # -> BookingStatus.EXECUTED
"""

import logging
from dataclasses import dataclass
from enum import Enum

from shootmatch.errors import InvalidTransitionError
from shootmatch.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)


class BookingTrigger(str, Enum):
    """Events that move a booking between statuses."""

    DRAFT_FINALIZED_PENDING = "draft_finalized_pending"
    DRAFT_FINALIZED_CONFIRMED = "draft_finalized_confirmed"
    PAYMENT_CONFIRMED = "payment_confirmed"
    SESSION_EXECUTED = "session_executed"
    MATERIAL_DELIVERED = "material_delivered"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""

    from_status: BookingStatus
    to_status: BookingStatus
    trigger: BookingTrigger


class BookingStateMachine:
    """Stateless transition table shared by every booking."""

    TRANSITIONS: list[Transition] = [
        # --- Draft completion (invite link) ---
        Transition(BookingStatus.DRAFT, BookingStatus.PENDING,
                   BookingTrigger.DRAFT_FINALIZED_PENDING),
        Transition(BookingStatus.DRAFT, BookingStatus.CONFIRMED,
                   BookingTrigger.DRAFT_FINALIZED_CONFIRMED),

        # --- Payment ---
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED,
                   BookingTrigger.PAYMENT_CONFIRMED),

        # --- Execution and delivery ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.EXECUTED,
                   BookingTrigger.SESSION_EXECUTED),
        Transition(BookingStatus.EXECUTED, BookingStatus.DELIVERED,
                   BookingTrigger.MATERIAL_DELIVERED),

        # --- Cancellation ---
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED,
                   BookingTrigger.CANCELLED),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
                   BookingTrigger.CANCELLED),
    ]

    def next_status(self, current: BookingStatus, trigger: BookingTrigger) -> BookingStatus:
        """
        Resolve a transition.

        Raises:
            InvalidTransitionError: If no transition exists for the pair.
        """
        for t in self.TRANSITIONS:
            if t.from_status == current and t.trigger == trigger:
                logger.debug(
                    "Status transition: %s -> %s (trigger: %s)",
                    current.value, t.to_status.value, trigger.value,
                )
                return t.to_status

        valid = [t.value for t in self.valid_triggers(current)]
        raise InvalidTransitionError(
            f"No valid transition from '{current.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}",
            code="INVALID_TRANSITION",
            details={"status": current.value, "trigger": trigger.value},
        )

    def valid_triggers(self, current: BookingStatus) -> list[BookingTrigger]:
        """Return all triggers valid from ``current``."""
        return [t.trigger for t in self.TRANSITIONS if t.from_status == current]

    def can_transition(self, current: BookingStatus, trigger: BookingTrigger) -> bool:
        return trigger in self.valid_triggers(current)

    def is_terminal(self, status: BookingStatus) -> bool:
        return not self.valid_triggers(status)
