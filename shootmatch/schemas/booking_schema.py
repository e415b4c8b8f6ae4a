"""Booking aggregate, its history and the request models that create it."""

import datetime as dt
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from shootmatch.schemas.catalog_schema import Coordinate
from shootmatch.utils import dedupe


class BookingStatus(str, Enum):
    """Lifecycle status values, as stored by the platform."""

    DRAFT = "Rascunho"
    PENDING = "Pendente"
    CONFIRMED = "Confirmado"
    EXECUTED = "Realizado"
    DELIVERED = "Concluído"
    CANCELLED = "Cancelado"


TERMINAL_STATUSES = frozenset({BookingStatus.DELIVERED, BookingStatus.CANCELLED})
LOCKED_FOR_EDIT_STATUSES = frozenset(
    {BookingStatus.EXECUTED, BookingStatus.DELIVERED, BookingStatus.CANCELLED}
)


class KeyState(str, Enum):
    WITH_PHOTOGRAPHER = "WITH_PHOTOGRAPHER"
    RETURNED = "RETURNED"


class CancellationReason(str, Enum):
    WEATHER = "weather"
    KEYS = "keys"
    OWNER_UNAVAILABLE = "owner"
    PERSONAL = "personal"
    OTHER = "other"


CANCELLATION_LABELS: dict[CancellationReason, str] = {
    CancellationReason.WEATHER: "Weather conditions",
    CancellationReason.KEYS: "Key or access problem",
    CancellationReason.OWNER_UNAVAILABLE: "Owner or tenant unavailable",
    CancellationReason.PERSONAL: "Personal or schedule issue",
    CancellationReason.OTHER: "Other",
}


class PaymentChoice(str, Enum):
    """How a pre-paid client covers a booking the balance cannot."""

    PAY_NOW = "pay_now"
    PAY_LATER = "pay_later"


class HistoryEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor: str
    note: str


class Booking(BaseModel):
    """Aggregate root: every other entity is referenced by id."""

    id: str
    client_id: str
    broker_id: Optional[str] = None
    photographer_id: Optional[str] = None
    service_ids: list[str] = Field(default_factory=list)
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    address: str = ""
    location: Coordinate
    city: Optional[str] = None
    status: BookingStatus
    total_price: float = 0.0
    discount_amount: float = 0.0
    coupon_code: Optional[str] = None
    tip_amount: float = 0.0
    price_overrides: dict[str, float] = Field(default_factory=dict)
    photographer_payout: float = 0.0
    history: list[HistoryEntry] = Field(default_factory=list)
    key_state: Optional[KeyState] = None
    is_flash: bool = False
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    common_area_id: Optional[str] = None
    media_files: list[str] = Field(default_factory=list)
    payment_charge_id: Optional[str] = None
    cancellation_reason: Optional[CancellationReason] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("service_ids")
    @classmethod
    def _dedupe_services(cls, value: list[str]) -> list[str]:
        return dedupe(value)

    @property
    def is_scheduled(self) -> bool:
        return self.date is not None and self.start_time is not None

    def add_history(self, actor: str, note: str, at: Optional[datetime] = None) -> None:
        entry = HistoryEntry(actor=actor, note=note)
        if at is not None:
            entry.timestamp = at
        self.history.append(entry)


class BookingRequest(BaseModel):
    """Validated booking creation request."""

    client_id: str
    service_ids: list[str] = Field(min_length=1)
    addon_ids: list[str] = Field(default_factory=list)
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    address: str = ""
    location: Coordinate
    city: Optional[str] = None
    broker_id: Optional[str] = None
    photographer_id: Optional[str] = None
    is_flash: bool = False
    override_radius: bool = False
    coupon_code: Optional[str] = None
    payment_choice: Optional[PaymentChoice] = None
    price_overrides: dict[str, float] = Field(default_factory=dict)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _date_and_time_together(self) -> "BookingRequest":
        if (self.date is None) != (self.start_time is None):
            raise ValueError("date and start_time must be given together")
        if self.is_flash and self.date is not None:
            raise ValueError("flash bookings pick their own date and slot")
        return self

    @property
    def is_draft(self) -> bool:
        return self.date is None and not self.is_flash

    @property
    def all_service_ids(self) -> list[str]:
        return dedupe([*self.service_ids, *self.addon_ids])
