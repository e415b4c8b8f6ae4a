"""Photographer, client and wallet data models."""

import datetime as dt
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from shootmatch.errors import ValidationError as EngineValidationError
from shootmatch.schemas.catalog_schema import Coordinate
from shootmatch.utils import time_to_minutes

WEEKDAYS: tuple[str, ...] = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)


def weekday_name(day: dt.date) -> str:
    return WEEKDAYS[day.weekday()]


class TimeOff(BaseModel):
    """Approved unavailability window (vacation, personal block)."""

    id: str
    photographer_id: str
    start: datetime
    end: datetime
    approved: bool = True
    reason: str = ""


class BookedInterval(BaseModel):
    """The part of a booking the calendar needs to detect overlaps."""

    booking_id: str
    date: dt.date
    start_time: str
    end_time: str
    cancelled: bool = False


class Photographer(BaseModel):
    """Photographer profile plus the bookings and time-offs loaded with it."""

    id: str
    name: str = ""
    is_active: bool = True
    base: Coordinate
    radius_km: float = Field(ge=0)
    availability: dict[str, list[str]] = Field(default_factory=dict)
    service_ids: set[str] = Field(default_factory=set)
    custom_prices: dict[str, float] = Field(default_factory=dict)
    bookings: list[BookedInterval] = Field(default_factory=list)
    time_offs: list[TimeOff] = Field(default_factory=list)

    @field_validator("availability")
    @classmethod
    def _sorted_unique_slots(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        cleaned: dict[str, list[str]] = {}
        for day, slots in value.items():
            key = day.strip().lower()
            if key not in WEEKDAYS:
                raise ValueError(f"unknown weekday {day!r}")
            try:
                cleaned[key] = sorted(set(slots), key=time_to_minutes)
            except EngineValidationError as exc:
                raise ValueError(exc.message) from None
        return cleaned

    def can_perform(self, service_id: str) -> bool:
        return service_id in self.service_ids


class PaymentType(str, Enum):
    PREPAID = "PrePaid"
    POSTPAID = "PostPaid"


class Client(BaseModel):
    """Agency or owner requesting sessions."""

    id: str
    name: str = ""
    payment_type: PaymentType = PaymentType.POSTPAID
    balance: float = 0.0
    custom_prices: dict[str, float] = Field(default_factory=dict)
    blocked_photographer_ids: set[str] = Field(default_factory=set)
    office: Optional[Coordinate] = None
    city: Optional[str] = None

    @property
    def is_prepaid(self) -> bool:
        return self.payment_type == PaymentType.PREPAID


class TransactionKind(str, Enum):
    DEBIT = "Debit"
    CREDIT = "Credit"


class WalletTransaction(BaseModel):
    """One ledger line; balances are never changed without one."""

    client_id: str
    kind: TransactionKind
    amount: float
    description: str
    actor: str
    balance_after: float
    booking_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
