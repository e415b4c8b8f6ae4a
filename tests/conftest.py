"""Shared test fixtures and helpers."""

from datetime import date, datetime
from typing import Iterable, Optional

import pytest

from shootmatch.engine.lifecycle import BookingLifecycle
from shootmatch.engine.matching import MatchingService
from shootmatch.engine.permissions import Actor, Role
from shootmatch.engine.pricing import PricingEngine
from shootmatch.engine.retention import WeatherRetentionHook
from shootmatch.engine.wallet import WalletLedger
from shootmatch.events import EventPublisher
from shootmatch.schemas.booking_schema import BookingRequest, PaymentChoice
from shootmatch.schemas.catalog_schema import (
    CatalogSnapshot,
    Coordinate,
    Coupon,
    CouponType,
    Service,
    ServiceTag,
)
from shootmatch.schemas.party_schema import WEEKDAYS, Client, PaymentType, Photographer
from shootmatch.tools.payments import MockPaymentGateway
from shootmatch.tools.store import InMemoryStore

# Monday 15:00; the standard booking day is two days later.
NOW = datetime(2026, 3, 16, 15, 0)
TODAY = NOW.date()
DAY = date(2026, 3, 18)

CENTER = Coordinate(lat=-25.43, lng=-49.27)
KM_PER_DEGREE_LAT = 6371 * 3.141592653589793 / 180

SLOTS = ["08:00", "09:30", "11:00", "13:30", "15:00", "16:30"]


def north_of(origin: Coordinate, km: float) -> Coordinate:
    """Point ``km`` due north of ``origin`` (exact along a meridian)."""
    return Coordinate(lat=origin.lat + km / KM_PER_DEGREE_LAT, lng=origin.lng)


def make_service(service_id: str, duration: int = 60, price: float = 100.0, **kwargs) -> Service:
    return Service(id=service_id, name=service_id.title(), duration_minutes=duration, price=price, **kwargs)


def default_services() -> list[Service]:
    return [
        make_service("foto", 60, 80.0),
        make_service("video", 45, 40.0, category="Vídeo"),
        make_service("drone", 30, 60.0, category="Drone"),
        make_service(
            "retirar_chaves", 20, 25.0, payout_pass_through=True, tag=ServiceTag.KEY_PICKUP
        ),
        make_service(
            "deslocamento", 0, 40.0, is_visible_to_client=False, is_system_managed=True,
            payout_pass_through=True, tag=ServiceTag.TRAVEL_FEE,
        ),
        make_service(
            "taxa_flash", 0, 30.0, is_visible_to_client=False, is_system_managed=True,
            tag=ServiceTag.FLASH_FEE,
        ),
        make_service("ceu_azul", 0, 30.0, is_addon=True, tag=ServiceTag.RETENTION_OFFER),
        make_service("seguro_chuva", 0, 20.0, is_addon=True),
    ]


def make_coupon(
    code: str = "DESCONTO10",
    coupon_type: CouponType = CouponType.PERCENTAGE,
    value: float = 10,
    expiration_date: date = date(2026, 12, 31),
    max_uses: int = 100,
    max_uses_per_client: int = 1,
    **kwargs,
) -> Coupon:
    return Coupon(
        code=code,
        type=coupon_type,
        value=value,
        expiration_date=expiration_date,
        max_uses=max_uses,
        max_uses_per_client=max_uses_per_client,
        **kwargs,
    )


def make_catalog(services: Optional[Iterable[Service]] = None, coupons: Iterable[Coupon] = ()):
    return CatalogSnapshot.build(default_services() if services is None else services, coupons)


def make_photographer(
    photographer_id: str = "ph-1",
    base: Coordinate = CENTER,
    radius_km: float = 10,
    slots: Optional[list[str]] = None,
    service_ids: Iterable[str] = ("foto", "video", "drone", "retirar_chaves"),
    **kwargs,
) -> Photographer:
    template = SLOTS if slots is None else slots
    return Photographer(
        id=photographer_id,
        name=photographer_id,
        base=base,
        radius_km=radius_km,
        availability={day: list(template) for day in WEEKDAYS},
        service_ids=set(service_ids),
        **kwargs,
    )


def make_client(
    client_id: str = "cl-1",
    prepaid: bool = False,
    balance: float = 0.0,
    **kwargs,
) -> Client:
    return Client(
        id=client_id,
        name=client_id,
        payment_type=PaymentType.PREPAID if prepaid else PaymentType.POSTPAID,
        balance=balance,
        **kwargs,
    )


def make_request(
    client_id: str = "cl-1",
    service_ids: Optional[list[str]] = None,
    day: Optional[date] = DAY,
    start_time: Optional[str] = "09:30",
    location: Coordinate = CENTER,
    city: Optional[str] = "Curitiba",
    payment_choice: Optional[PaymentChoice] = None,
    **kwargs,
) -> BookingRequest:
    return BookingRequest(
        client_id=client_id,
        service_ids=service_ids or ["foto"],
        date=day,
        start_time=start_time if day is not None else None,
        location=location,
        city=city,
        payment_choice=payment_choice,
        **kwargs,
    )


def client_actor(client_id: str = "cl-1") -> Actor:
    return Actor(role=Role.CLIENT, id=client_id, name=client_id)


ADMIN = Actor(role=Role.ADMIN, id="admin", name="admin")


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def store():
    s = InMemoryStore()
    for service in default_services():
        s.save_service(service)
    s.save_coupon(make_coupon())
    return s


@pytest.fixture
def pricing(store):
    return PricingEngine(store.catalog_snapshot(), today=lambda: TODAY)


@pytest.fixture
def matching(store, pricing, clock):
    return MatchingService(store, pricing, clock=clock)


@pytest.fixture
def payments():
    return MockPaymentGateway()


@pytest.fixture
def publisher():
    return EventPublisher()


@pytest.fixture
def wallet(store):
    return WalletLedger(store, negative_balance_limit=100)


@pytest.fixture
def lifecycle(store, payments, publisher, clock, wallet):
    return BookingLifecycle(
        store,
        payments=payments,
        publisher=publisher,
        clock=clock,
        retention_hook=WeatherRetentionHook(discount=0.5),
        wallet=wallet,
    )
