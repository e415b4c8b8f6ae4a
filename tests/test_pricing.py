"""Tests for price resolution, coupons and payout."""

from datetime import date

import pytest

from shootmatch.engine.pricing import PricingEngine, coupon_discount
from shootmatch.errors import ConflictError, CouponRejectedError, ValidationError
from shootmatch.schemas.booking_schema import Booking, BookingStatus
from shootmatch.schemas.catalog_schema import CouponType
from tests.conftest import CENTER, TODAY, make_catalog, make_client, make_coupon, make_photographer


def _engine(*coupons, payout_share=0.6) -> PricingEngine:
    return PricingEngine(make_catalog(coupons=coupons), today=lambda: TODAY, payout_share=payout_share)


def _booking(service_ids, **kwargs) -> Booking:
    return Booking(
        id="b-1", client_id="cl-1", service_ids=service_ids, location=CENTER,
        status=BookingStatus.CONFIRMED, **kwargs,
    )


class TestResolvePrice:
    def test_catalog_default(self):
        assert _engine().resolve_price("foto") == 80.0

    def test_client_custom_price(self):
        client = make_client(custom_prices={"foto": 70.0})
        assert _engine().resolve_price("foto", client=client) == 70.0

    def test_booking_override_wins(self):
        client = make_client(custom_prices={"foto": 70.0})
        booking = _booking(["foto"], price_overrides={"foto": 55.0})
        assert _engine().resolve_price("foto", booking, client) == 55.0

    def test_unknown_service(self):
        with pytest.raises(ValidationError, match="Unknown service"):
            _engine().resolve_price("nope")


class TestComputeTotal:
    def test_sum_of_services(self):
        assert _engine().compute_total(["foto", "video"]) == 120.0

    def test_duplicates_counted_once(self):
        assert _engine().compute_total(["foto", "foto"]) == 80.0

    def test_hidden_fee_is_charged(self):
        assert _engine().compute_total(["foto", "deslocamento"]) == 120.0

    def test_addon_ignores_client_custom_price(self):
        client = make_client(custom_prices={"seguro_chuva": 1.0, "foto": 70.0})
        assert _engine().compute_total(["foto"], ["seguro_chuva"], client=client) == 90.0

    def test_booking_total_splits_addons(self):
        client = make_client(custom_prices={"ceu_azul": 1.0})
        assert _engine().booking_total(["foto", "ceu_azul"], client=client) == 110.0

    def test_duration(self):
        assert _engine().total_duration(["foto", "video", "deslocamento"]) == 105


class TestApplyCoupon:
    def test_percentage(self):
        result = _engine(make_coupon()).apply_coupon("desconto10", "cl-1", 200.0, ["foto"])
        assert result.valid
        assert result.discount == 20.0
        assert result.code == "DESCONTO10"

    def test_fixed_capped_at_subtotal(self):
        coupon = make_coupon("FIXO", CouponType.FIXED, 500)
        assert _engine(coupon).apply_coupon("FIXO", "cl-1", 80.0, ["foto"]).discount == 80.0

    @pytest.mark.parametrize(
        "coupon, message",
        [
            (make_coupon(is_active=False), "inactive"),
            (make_coupon(expiration_date=date(2026, 3, 15)), "expired"),
            (make_coupon(max_uses=2, used_count=2), "limit"),
            (make_coupon(uses_by_client={"cl-1": 1}), "already used"),
            (make_coupon(service_restriction_id="drone"), "does not apply"),
        ],
    )
    def test_rejections(self, coupon, message):
        result = _engine(coupon).apply_coupon("DESCONTO10", "cl-1", 100.0, ["foto"])
        assert not result.valid
        assert message in result.message
        assert result.discount == 0

    def test_unknown_code(self):
        assert not _engine().apply_coupon("NOPE", "cl-1", 100.0, ["foto"]).valid

    def test_expiring_today_is_valid(self):
        coupon = make_coupon(expiration_date=TODAY)
        assert _engine(coupon).apply_coupon("DESCONTO10", "cl-1", 100.0, ["foto"]).valid

    def test_restriction_met(self):
        coupon = make_coupon(service_restriction_id="drone")
        assert _engine(coupon).apply_coupon("DESCONTO10", "cl-1", 100.0, ["foto", "drone"]).valid

    def test_per_client_limit_is_per_client(self):
        coupon = make_coupon(uses_by_client={"cl-2": 1})
        assert _engine(coupon).apply_coupon("DESCONTO10", "cl-1", 100.0, ["foto"]).valid

    def test_second_use_by_same_client_conflicts(self, store):
        engine = PricingEngine(store.catalog_snapshot(), today=lambda: TODAY)
        first = engine.apply_coupon("DESCONTO10", "cl-1", 80.0, ["foto"]).ensure_valid()
        assert first.discount == 8.0

        store.record_coupon_use("DESCONTO10", "cl-1")
        engine = PricingEngine(store.catalog_snapshot(), today=lambda: TODAY)
        with pytest.raises(ConflictError):
            engine.apply_coupon("DESCONTO10", "cl-1", 80.0, ["foto"]).ensure_valid()

    def test_checking_does_not_count_usage(self, store):
        engine = PricingEngine(store.catalog_snapshot(), today=lambda: TODAY)
        engine.apply_coupon("DESCONTO10", "cl-1", 80.0, ["foto"])
        assert store.get_coupon("DESCONTO10").used_count == 0

    def test_rejected_error_carries_reason(self):
        with pytest.raises(CouponRejectedError) as exc:
            _engine().apply_coupon("NOPE", "cl-1", 10.0, ["foto"]).ensure_valid()
        assert exc.value.details["reason"] == "Coupon not found"


class TestCouponDiscount:
    @pytest.mark.parametrize("subtotal", [0.0, 0.5, 10.0, 99.99, 1000.0])
    def test_never_exceeds_subtotal(self, subtotal):
        for coupon in (make_coupon(value=100), make_coupon(coupon_type=CouponType.FIXED, value=50)):
            assert 0 <= coupon_discount(coupon, subtotal) <= subtotal


class TestPayout:
    def test_photographer_custom_price(self):
        photographer = make_photographer(custom_prices={"foto": 50.0})
        assert _engine().payout(_booking(["foto", "video"]), photographer) == 90.0

    def test_ignores_client_custom_price(self):
        client = make_client(custom_prices={"foto": 10.0})
        assert _engine().payout(_booking(["foto"]), make_photographer(), client) == 80.0

    def test_pass_through_follows_client_price(self):
        booking = _booking(["foto", "deslocamento"], price_overrides={"deslocamento": 55.0})
        photographer = make_photographer(custom_prices={"deslocamento": 5.0})
        assert _engine().payout(booking, photographer) == 135.0

    def test_coupon_discount_shared(self):
        booking = _booking(["foto"], discount_amount=10.0)
        assert _engine().payout(booking, make_photographer()) == 74.0

    def test_share_is_configurable(self):
        booking = _booking(["foto"], discount_amount=10.0)
        assert _engine(payout_share=1.0).payout(booking, make_photographer()) == 70.0

    def test_tip_goes_to_photographer(self):
        booking = _booking(["foto"], tip_amount=15.0)
        assert _engine().payout(booking, make_photographer()) == 95.0

    def test_unassigned_is_zero(self):
        assert _engine().payout(_booking(["foto"]), None) == 0.0
