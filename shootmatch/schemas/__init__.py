from shootmatch.schemas.booking_schema import (
    Booking,
    BookingRequest,
    BookingStatus,
    CancellationReason,
    HistoryEntry,
    KeyState,
    PaymentChoice,
)
from shootmatch.schemas.catalog_schema import (
    CatalogSnapshot,
    Coordinate,
    Coupon,
    CouponType,
    Service,
    ServiceTag,
)
from shootmatch.schemas.party_schema import (
    BookedInterval,
    Client,
    PaymentType,
    Photographer,
    TimeOff,
    WalletTransaction,
)

__all__ = [
    "BookedInterval",
    "Booking",
    "BookingRequest",
    "BookingStatus",
    "CancellationReason",
    "CatalogSnapshot",
    "Client",
    "Coordinate",
    "Coupon",
    "CouponType",
    "HistoryEntry",
    "KeyState",
    "PaymentChoice",
    "PaymentType",
    "Photographer",
    "Service",
    "ServiceTag",
    "TimeOff",
    "WalletTransaction",
]
