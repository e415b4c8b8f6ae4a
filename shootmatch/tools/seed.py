"""
Demo catalog, photographers and clients around Curitiba.

Used by the CLI demo. Prices are in BRL.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from shootmatch.config import settings
from shootmatch.schemas.catalog_schema import Coordinate, Coupon, CouponType, Service, ServiceTag
from shootmatch.schemas.party_schema import WEEKDAYS, Client, PaymentType, Photographer

logger = logging.getLogger(__name__)

SERVICES: list[Service] = [
    Service(id="foto", name="Fotos profissionais", duration_minutes=60, price=180.0),
    Service(id="video", name="Vídeo", category="Vídeo", duration_minutes=45, price=250.0),
    Service(id="drone", name="Fotos com drone", category="Drone", duration_minutes=30, price=150.0),
    Service(
        id="retirar_chaves", name="Retirada de chaves", category="Logística",
        duration_minutes=30, price=35.0, payout_pass_through=True, tag=ServiceTag.KEY_PICKUP,
    ),
    Service(
        id="deslocamento", name="Taxa de deslocamento", category="Taxa", price=40.0,
        is_visible_to_client=False, is_system_managed=True, payout_pass_through=True,
        tag=ServiceTag.TRAVEL_FEE,
    ),
    Service(
        id="taxa_flash", name="Taxa Flash", category="Taxa", price=80.0,
        is_visible_to_client=False, is_system_managed=True, tag=ServiceTag.FLASH_FEE,
    ),
    Service(
        id="ceu_azul", name="Céu azul garantido", category="Adicional", price=29.9,
        is_addon=True, tag=ServiceTag.RETENTION_OFFER,
    ),
    Service(id="seguro_chuva", name="Seguro chuva", category="Adicional", price=19.9, is_addon=True),
    Service(id="entrega_express", name="Entrega express", category="Adicional", price=49.9, is_addon=True),
]

_WEEK = {day: list(settings.schedule.default_day_template) for day in WEEKDAYS[:5]}
_SATURDAY = {"saturday": ["08:00", "09:30", "11:00"]}

PHOTOGRAPHERS: list[Photographer] = [
    Photographer(
        id="ph-ana", name="Ana Ribeiro",
        base=Coordinate(lat=-25.4284, lng=-49.2733), radius_km=12,
        availability={**_WEEK, **_SATURDAY},
        service_ids={"foto", "video", "retirar_chaves"},
    ),
    Photographer(
        id="ph-bruno", name="Bruno Kowalski",
        base=Coordinate(lat=-25.4950, lng=-49.2890), radius_km=15,
        availability=_WEEK,
        service_ids={"foto", "drone", "retirar_chaves"},
        custom_prices={"foto": 100.0, "drone": 90.0},
    ),
    Photographer(
        id="ph-carla", name="Carla Mendes",
        base=Coordinate(lat=-25.5163, lng=-49.1747), radius_km=25,
        availability=_WEEK,
        service_ids={"foto", "video", "drone"},
    ),
]

CLIENTS: list[Client] = [
    Client(
        id="cl-batel", name="Imobiliária Batel", payment_type=PaymentType.PREPAID,
        balance=300.0, office=Coordinate(lat=-25.4411, lng=-49.2901), city="Curitiba",
    ),
    Client(
        id="cl-aguaverde", name="Água Verde Imóveis", payment_type=PaymentType.POSTPAID,
        custom_prices={"foto": 150.0}, city="Curitiba",
    ),
]


def demo_coupons(today: Optional[date] = None) -> list[Coupon]:
    today = today or date.today()
    return [
        Coupon(
            code="DESCONTO10", type=CouponType.PERCENTAGE, value=10,
            expiration_date=today + timedelta(days=90), max_uses=100, max_uses_per_client=1,
        ),
        Coupon(
            code="DRONE50", type=CouponType.FIXED, value=50,
            expiration_date=today + timedelta(days=30), max_uses=20,
            service_restriction_id="drone",
        ),
    ]


def seed_store(store, today: Optional[date] = None) -> None:
    """Load the demo data into ``store``."""
    for service in SERVICES:
        store.save_service(service)
    for coupon in demo_coupons(today):
        store.save_coupon(coupon)
    for photographer in PHOTOGRAPHERS:
        store.save_photographer(photographer)
    for client in CLIENTS:
        store.save_client(client)
    logger.info(
        "Seeded %d services, %d photographers, %d clients",
        len(SERVICES), len(PHOTOGRAPHERS), len(CLIENTS),
    )
