"""
Who may do what to a booking.

Staff (admin, editor and the system itself) may perform every action,
including force-setting a status and creating drafts. Clients and brokers
act only on their own agency's bookings, and only while those are still
in the future and open. Photographers may mark their own session as
executed and track keys, nothing else.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from shootmatch.errors import AuthorizationError
from shootmatch.schemas.booking_schema import LOCKED_FOR_EDIT_STATUSES, Booking
from shootmatch.utils import time_to_minutes

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    CLIENT = "client"
    BROKER = "broker"
    PHOTOGRAPHER = "photographer"
    SYSTEM = "system"


STAFF_ROLES = frozenset({Role.ADMIN, Role.EDITOR, Role.SYSTEM})


class BookingAction(str, Enum):
    CREATE = "create"
    CREATE_DRAFT = "create_draft"
    FINALIZE_DRAFT = "finalize_draft"
    RESCHEDULE = "reschedule"
    EDIT_SERVICES = "edit_services"
    OVERRIDE_PRICE = "override_price"
    CANCEL = "cancel"
    COMPLETE = "complete"
    DELIVER = "deliver"
    CONFIRM_PAYMENT = "confirm_payment"
    TIP = "tip"
    KEY_STATE = "key_state"
    REASSIGN = "reassign"
    FORCE_STATUS = "force_status"


_CUSTOMER_ACTIONS = frozenset({
    BookingAction.CREATE,
    BookingAction.FINALIZE_DRAFT,
    BookingAction.RESCHEDULE,
    BookingAction.EDIT_SERVICES,
    BookingAction.CANCEL,
    BookingAction.TIP,
})

# Customer actions that only make sense before the session happens.
_FUTURE_ONLY = frozenset({
    BookingAction.RESCHEDULE,
    BookingAction.EDIT_SERVICES,
    BookingAction.CANCEL,
})

_PHOTOGRAPHER_ACTIONS = frozenset({BookingAction.COMPLETE, BookingAction.KEY_STATE})


@dataclass(frozen=True)
class Actor:
    """The party triggering an operation.

    ``client_id`` is the agency a client or broker acts for; for a client
    it defaults to the client's own id.
    """

    role: Role
    id: str = ""
    client_id: Optional[str] = None
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.role.value

    @property
    def agency_id(self) -> Optional[str]:
        if self.client_id:
            return self.client_id
        return self.id if self.role == Role.CLIENT else None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @classmethod
    def system(cls) -> "Actor":
        return cls(role=Role.SYSTEM, id="system", name="system")


def slot_is_future(day: date, start_time: str, now: datetime) -> bool:
    """True when the slot on ``day`` at ``start_time`` starts after ``now``."""
    minutes = time_to_minutes(start_time)
    start = datetime.combine(day, time(hour=minutes // 60, minute=minutes % 60))
    return start > now


def _is_future(booking: Booking, now: datetime) -> bool:
    if not booking.is_scheduled:
        return True
    return slot_is_future(booking.date, booking.start_time, now)


def _deny(actor: Actor, action: BookingAction, reason: str) -> AuthorizationError:
    logger.warning("Denied %s for %s %s: %s", action.value, actor.role.value, actor.id, reason)
    return AuthorizationError(
        f"{actor.role.value} may not {action.value.replace('_', ' ')}: {reason}",
        code="FORBIDDEN",
        details={"role": actor.role.value, "action": action.value},
    )


def authorize(
    actor: Actor,
    action: BookingAction,
    booking: Optional[Booking] = None,
    client_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Raise AuthorizationError unless ``actor`` may perform ``action``.

    ``booking`` is the target of a mutation; ``client_id`` is the owner of
    a booking that does not exist yet (creation).
    """
    if actor.is_staff:
        return

    if actor.role == Role.PHOTOGRAPHER:
        if action not in _PHOTOGRAPHER_ACTIONS:
            raise _deny(actor, action, "photographers may only mark sessions executed")
        if booking is None or booking.photographer_id != actor.id:
            raise _deny(actor, action, "booking is not assigned to this photographer")
        return

    if actor.role in (Role.CLIENT, Role.BROKER):
        if action not in _CUSTOMER_ACTIONS:
            raise _deny(actor, action, "staff only")
        owner = booking.client_id if booking is not None else client_id
        if owner is None or owner != actor.agency_id:
            raise _deny(actor, action, "not your booking")
        if booking is not None and action in _FUTURE_ONLY:
            if booking.status in LOCKED_FOR_EDIT_STATUSES:
                raise _deny(actor, action, f"booking is {booking.status.value}")
            if not _is_future(booking, now or datetime.now()):
                raise _deny(actor, action, "booking is in the past")
        return

    raise _deny(actor, action, "unknown role")
