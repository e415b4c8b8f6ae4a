"""Catalog data models: coordinates, services, coupons and the read-only snapshot."""

from datetime import date
from enum import Enum
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shootmatch.utils import normalize_code


class Coordinate(BaseModel):
    """Latitude/longitude in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class ServiceTag(str, Enum):
    """Catalog roles the engine reacts to, instead of matching on service ids."""

    TRAVEL_FEE = "travel_fee"
    FLASH_FEE = "flash_fee"
    KEY_PICKUP = "key_pickup"
    RETENTION_OFFER = "retention_offer"


class Service(BaseModel):
    """A bookable service, add-on or system-managed fee."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str = "Foto"
    duration_minutes: int = Field(default=0, ge=0)
    price: float = Field(default=0.0, ge=0)
    is_visible_to_client: bool = True
    is_active: bool = True
    is_system_managed: bool = False
    is_addon: bool = False
    payout_pass_through: bool = False
    tag: Optional[ServiceTag] = None


class CouponType(str, Enum):
    PERCENTAGE = "Percentage"
    FIXED = "Fixed"


class Coupon(BaseModel):
    """Discount code with global and per-client usage caps."""

    model_config = ConfigDict(frozen=True)

    code: str
    type: CouponType
    value: float = Field(ge=0)
    expiration_date: date
    max_uses: int = Field(ge=0)
    max_uses_per_client: int = Field(default=1, ge=0)
    service_restriction_id: Optional[str] = None
    is_active: bool = True
    used_count: int = Field(default=0, ge=0)
    uses_by_client: dict[str, int] = Field(default_factory=dict)

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        normalized = normalize_code(value)
        if not normalized:
            raise ValueError("coupon code must not be empty")
        return normalized

    def uses_for(self, client_id: str) -> int:
        return self.uses_by_client.get(client_id, 0)


class CatalogSnapshot(BaseModel):
    """
    Immutable view of services and coupons at one point in time.

    Pricing is a pure function of this snapshot plus the booking, client
    and photographer passed alongside it.
    """

    model_config = ConfigDict(frozen=True)

    services: Mapping[str, Service] = Field(default_factory=dict)
    coupons: Mapping[str, Coupon] = Field(default_factory=dict)

    @classmethod
    def build(cls, services, coupons=()) -> "CatalogSnapshot":
        return cls(
            services={s.id: s for s in services},
            coupons={c.code: c for c in coupons},
        )

    def service(self, service_id: str) -> Optional[Service]:
        return self.services.get(service_id)

    def coupon(self, code: str) -> Optional[Coupon]:
        return self.coupons.get(normalize_code(code))

    def find_by_tag(self, tag: ServiceTag) -> Optional[Service]:
        """Return the active service carrying ``tag``, if the catalog has one."""
        for service in self.services.values():
            if service.tag == tag and service.is_active:
                return service
        return None

    def has_tag(self, service_ids, tag: ServiceTag) -> bool:
        return any(
            (svc := self.services.get(sid)) is not None and svc.tag == tag
            for sid in service_ids
        )
