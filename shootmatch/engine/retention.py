"""
Pre-cancellation retention hook.

BookingLifecycle.cancel asks the hook what to do before a booking enters
Cancelado. The hook either lets the cancellation proceed or offers an
add-on at a discount; when the caller accepts, the lifecycle edits the
booking's services instead of cancelling it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from shootmatch.config import settings
from shootmatch.schemas.booking_schema import Booking, CancellationReason
from shootmatch.schemas.catalog_schema import CatalogSnapshot, ServiceTag

logger = logging.getLogger(__name__)


class RetentionResponse(str, Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"


@dataclass(frozen=True)
class RetentionOffer:
    """Discounted add-on proposed instead of cancelling."""

    service_id: str
    service_name: str
    price: float
    original_price: float


@dataclass(frozen=True)
class RetentionDecision:
    offer: Optional[RetentionOffer] = None

    @property
    def proceed(self) -> bool:
        return self.offer is None


class RetentionHook(Protocol):
    def evaluate(
        self, booking: Booking, reason: CancellationReason, catalog: CatalogSnapshot
    ) -> RetentionDecision: ...


class NoRetention:
    """Hook that never intervenes."""

    def evaluate(
        self, booking: Booking, reason: CancellationReason, catalog: CatalogSnapshot
    ) -> RetentionDecision:
        return RetentionDecision()


class WeatherRetentionHook:
    """Offer the weather add-on at a discount when a client cancels for weather."""

    def __init__(self, discount: Optional[float] = None) -> None:
        self.discount = settings.pricing.retention_discount if discount is None else discount

    def evaluate(
        self, booking: Booking, reason: CancellationReason, catalog: CatalogSnapshot
    ) -> RetentionDecision:
        if reason != CancellationReason.WEATHER:
            return RetentionDecision()

        service = catalog.find_by_tag(ServiceTag.RETENTION_OFFER)
        if service is None or not service.is_active:
            logger.debug("No active retention service in catalog")
            return RetentionDecision()
        if service.id in booking.service_ids:
            return RetentionDecision()

        price = round(service.price * (1 - self.discount), 2)
        logger.info(
            "Retention offer for booking %s: %s at %.2f (was %.2f)",
            booking.id, service.id, price, service.price,
        )
        return RetentionDecision(offer=RetentionOffer(
            service_id=service.id,
            service_name=service.name,
            price=price,
            original_price=service.price,
        ))
