"""
Price resolution, booking totals, coupons and photographer payout.

Client-side precedence, first defined value wins:
    booking override > client custom price > catalog price
Photographer-side precedence (payout only):
    photographer custom price > catalog price

Add-ons are always charged at their flat catalog price unless the booking
itself overrides them. System-managed fees are summed like any other
service once they are in the id set.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional

from shootmatch.config import settings
from shootmatch.errors import CouponRejectedError, ValidationError
from shootmatch.schemas.booking_schema import Booking
from shootmatch.schemas.catalog_schema import CatalogSnapshot, Coupon, CouponType, Service
from shootmatch.schemas.party_schema import Client, Photographer
from shootmatch.utils import dedupe, normalize_code

logger = logging.getLogger(__name__)


def _money(value: float) -> float:
    return round(value + 0.0, 2)


@dataclass
class CouponResult:
    """Outcome of a coupon check against a quote."""

    valid: bool
    discount: float = 0.0
    message: str = ""
    code: Optional[str] = None

    def ensure_valid(self) -> "CouponResult":
        if not self.valid:
            raise CouponRejectedError(self.code or "", self.message)
        return self


def coupon_discount(coupon: Coupon, subtotal: float) -> float:
    """Discount a coupon grants on ``subtotal``; never more than the subtotal."""
    if subtotal <= 0:
        return 0.0
    if coupon.type == CouponType.PERCENTAGE:
        raw = subtotal * coupon.value / 100
    else:
        raw = coupon.value
    return _money(min(raw, subtotal))


class PricingEngine:
    """Deterministic pricing over an explicit catalog snapshot."""

    def __init__(
        self,
        catalog: CatalogSnapshot,
        today: Optional[Callable[[], date]] = None,
        payout_share: Optional[float] = None,
    ) -> None:
        self.catalog = catalog
        self._today = today or date.today
        self.payout_share = (
            settings.pricing.payout_share if payout_share is None else payout_share
        )

    def service(self, service_id: str) -> Service:
        svc = self.catalog.service(service_id)
        if svc is None:
            raise ValidationError(
                f"Unknown service id '{service_id}'",
                code="UNKNOWN_SERVICE",
                details={"service_id": service_id},
            )
        return svc

    def total_duration(self, service_ids: Iterable[str]) -> int:
        return sum(self.service(sid).duration_minutes for sid in dedupe(service_ids))

    def split_addons(self, service_ids: Iterable[str]) -> tuple[list[str], list[str]]:
        """Partition ids into (services, add-ons) by the catalog flag."""
        services: list[str] = []
        addons: list[str] = []
        for sid in dedupe(service_ids):
            (addons if self.service(sid).is_addon else services).append(sid)
        return services, addons

    # --- Client side ---

    def resolve_price(
        self,
        service_id: str,
        booking: Optional[Booking] = None,
        client: Optional[Client] = None,
    ) -> float:
        svc = self.service(service_id)
        if booking is not None and service_id in booking.price_overrides:
            return booking.price_overrides[service_id]
        if client is not None and service_id in client.custom_prices:
            return client.custom_prices[service_id]
        return svc.price

    def _addon_price(self, service_id: str, booking: Optional[Booking]) -> float:
        svc = self.service(service_id)
        if booking is not None and service_id in booking.price_overrides:
            return booking.price_overrides[service_id]
        return svc.price

    def compute_total(
        self,
        service_ids: Iterable[str],
        addon_ids: Iterable[str] = (),
        booking: Optional[Booking] = None,
        client: Optional[Client] = None,
    ) -> float:
        """Subtotal before coupons."""
        total = sum(self.resolve_price(sid, booking, client) for sid in dedupe(service_ids))
        total += sum(self._addon_price(sid, booking) for sid in dedupe(addon_ids))
        return _money(total)

    def booking_total(
        self,
        service_ids: Iterable[str],
        booking: Optional[Booking] = None,
        client: Optional[Client] = None,
    ) -> float:
        """Subtotal for a mixed id set as stored on a booking."""
        services, addons = self.split_addons(service_ids)
        return self.compute_total(services, addons, booking, client)

    # --- Coupons ---

    def apply_coupon(
        self,
        code: str,
        client_id: str,
        subtotal: float,
        service_ids: Iterable[str],
    ) -> CouponResult:
        """
        Check a coupon against a quote and compute its discount.

        Usage counters are not touched here; they move only when a booking
        using the coupon is confirmed.
        """
        normalized = normalize_code(code)
        coupon = self.catalog.coupon(normalized)
        if coupon is None:
            return CouponResult(valid=False, message="Coupon not found", code=normalized)
        if not coupon.is_active:
            return CouponResult(valid=False, message="Coupon is inactive", code=normalized)
        if coupon.expiration_date < self._today():
            return CouponResult(valid=False, message="Coupon has expired", code=normalized)
        if coupon.used_count >= coupon.max_uses:
            return CouponResult(valid=False, message="Coupon usage limit reached", code=normalized)
        if coupon.uses_for(client_id) >= coupon.max_uses_per_client:
            return CouponResult(
                valid=False, message="Coupon already used by this client", code=normalized
            )
        if coupon.service_restriction_id and coupon.service_restriction_id not in set(service_ids):
            return CouponResult(
                valid=False,
                message="Coupon does not apply to the selected services",
                code=normalized,
            )

        discount = coupon_discount(coupon, subtotal)
        logger.debug("Coupon %s grants %.2f on %.2f", normalized, discount, subtotal)
        return CouponResult(valid=True, discount=discount, message="Coupon applied", code=normalized)

    # --- Photographer side ---

    def resolve_payout_price(
        self,
        service_id: str,
        photographer: Optional[Photographer] = None,
        client: Optional[Client] = None,
        booking: Optional[Booking] = None,
    ) -> float:
        svc = self.service(service_id)
        if svc.payout_pass_through:
            # Fees the photographer collects in full, e.g. travel and key pickup.
            return self.resolve_price(service_id, booking, client)
        if photographer is not None and service_id in photographer.custom_prices:
            return photographer.custom_prices[service_id]
        return svc.price

    def payout(
        self,
        booking: Booking,
        photographer: Optional[Photographer],
        client: Optional[Client] = None,
    ) -> float:
        """Amount owed to the photographer, independent of the client's price."""
        if photographer is None:
            return 0.0
        gross = sum(
            self.resolve_payout_price(sid, photographer, client, booking)
            for sid in booking.service_ids
        )
        discount_share = booking.discount_amount * self.payout_share
        return _money(max(0.0, gross - discount_share) + booking.tip_amount)
