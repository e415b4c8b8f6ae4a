"""
In-memory persistence for bookings, photographers, clients and catalog.

In production, this would be a relational store where ``transaction()``
maps to a SERIALIZABLE database transaction. Here a re-entrant lock plays
that role and a copy of the collections taken on entry is restored if the
block raises, so a failed multi-step operation leaves nothing behind.
"""

import copy
import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import date
from typing import ContextManager, Iterator, Optional, Protocol

from shootmatch.errors import NotFoundError
from shootmatch.schemas.booking_schema import Booking, BookingStatus
from shootmatch.schemas.catalog_schema import CatalogSnapshot, Coupon, Service
from shootmatch.schemas.party_schema import (
    BookedInterval,
    Client,
    Photographer,
    TimeOff,
    WalletTransaction,
)
from shootmatch.utils import normalize_code

logger = logging.getLogger(__name__)


class BookingStore(Protocol):
    """Persistence operations the engine relies on."""

    def transaction(self) -> ContextManager["BookingStore"]: ...

    def catalog_snapshot(self) -> CatalogSnapshot: ...

    def record_coupon_use(self, code: str, client_id: str) -> Coupon: ...

    def get_client(self, client_id: str) -> Client: ...

    def save_client(self, client: Client) -> None: ...

    def add_wallet_transaction(self, txn: WalletTransaction) -> None: ...

    def get_photographer(self, photographer_id: str) -> Photographer: ...

    def list_photographers(self, active_only: bool = False) -> list[Photographer]: ...

    def new_booking_id(self) -> str: ...

    def save_booking(self, booking: Booking) -> None: ...

    def get_booking(self, booking_id: str) -> Booking: ...

    def list_bookings(
        self,
        client_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        on_date: Optional[date] = None,
    ) -> list[Booking]: ...

    def bookings_for_photographer(
        self,
        photographer_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Booking]: ...


class InMemoryStore:
    """Dictionary-backed store returning detached copies of every record."""

    def __init__(self) -> None:
        self._photographers: dict[str, Photographer] = {}
        self._clients: dict[str, Client] = {}
        self._services: dict[str, Service] = {}
        self._coupons: dict[str, Coupon] = {}
        self._bookings: dict[str, Booking] = {}
        self._time_offs: dict[str, TimeOff] = {}
        self._wallet: list[WalletTransaction] = []
        self._lock = threading.RLock()
        self._depth = 0

    # --- Transactions ---

    def _state(self) -> dict:
        return {
            "_photographers": self._photographers,
            "_clients": self._clients,
            "_services": self._services,
            "_coupons": self._coupons,
            "_bookings": self._bookings,
            "_time_offs": self._time_offs,
            "_wallet": self._wallet,
        }

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        """Serialize the block and undo every write if it raises."""
        with self._lock:
            outermost = self._depth == 0
            saved = copy.deepcopy(self._state()) if outermost else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    for name, value in saved.items():
                        setattr(self, name, value)
                    logger.debug("Transaction rolled back")
                raise
            finally:
                self._depth -= 1

    # --- Catalog ---

    def save_service(self, service: Service) -> None:
        with self._lock:
            self._services[service.id] = service

    def save_coupon(self, coupon: Coupon) -> None:
        with self._lock:
            self._coupons[coupon.code] = coupon

    def get_coupon(self, code: str) -> Coupon:
        normalized = normalize_code(code)
        with self._lock:
            if normalized not in self._coupons:
                raise NotFoundError("Coupon", normalized)
            return self._coupons[normalized]

    def record_coupon_use(self, code: str, client_id: str) -> Coupon:
        with self._lock:
            coupon = self.get_coupon(code)
            uses = dict(coupon.uses_by_client)
            uses[client_id] = uses.get(client_id, 0) + 1
            updated = coupon.model_copy(
                update={"used_count": coupon.used_count + 1, "uses_by_client": uses}
            )
            self._coupons[updated.code] = updated
            return updated

    def catalog_snapshot(self) -> CatalogSnapshot:
        with self._lock:
            return CatalogSnapshot.build(self._services.values(), self._coupons.values())

    # --- Clients ---

    def save_client(self, client: Client) -> None:
        with self._lock:
            self._clients[client.id] = client.model_copy(deep=True)

    def get_client(self, client_id: str) -> Client:
        with self._lock:
            if client_id not in self._clients:
                raise NotFoundError("Client", client_id)
            return self._clients[client_id].model_copy(deep=True)

    def add_wallet_transaction(self, txn: WalletTransaction) -> None:
        with self._lock:
            self._wallet.append(txn)

    def wallet_transactions(self, client_id: str) -> list[WalletTransaction]:
        with self._lock:
            return [t for t in self._wallet if t.client_id == client_id]

    # --- Photographers and time-off ---

    def save_photographer(self, photographer: Photographer) -> None:
        stored = photographer.model_copy(deep=True, update={"bookings": [], "time_offs": []})
        with self._lock:
            self._photographers[photographer.id] = stored

    def save_time_off(self, time_off: TimeOff) -> None:
        with self._lock:
            self._time_offs[time_off.id] = time_off.model_copy(deep=True)

    def _hydrate(self, photographer: Photographer) -> Photographer:
        intervals = [
            BookedInterval(
                booking_id=b.id,
                date=b.date,
                start_time=b.start_time,
                end_time=b.end_time,
                cancelled=b.status == BookingStatus.CANCELLED,
            )
            for b in self._bookings.values()
            if b.photographer_id == photographer.id and b.is_scheduled and b.end_time
        ]
        time_offs = [
            t.model_copy(deep=True)
            for t in self._time_offs.values()
            if t.photographer_id == photographer.id and t.approved
        ]
        return photographer.model_copy(deep=True, update={"bookings": intervals, "time_offs": time_offs})

    def get_photographer(self, photographer_id: str) -> Photographer:
        """Load a photographer with its bookings and approved time-off attached."""
        with self._lock:
            if photographer_id not in self._photographers:
                raise NotFoundError("Photographer", photographer_id)
            return self._hydrate(self._photographers[photographer_id])

    def list_photographers(self, active_only: bool = False) -> list[Photographer]:
        with self._lock:
            return [
                self._hydrate(p)
                for p in self._photographers.values()
                if p.is_active or not active_only
            ]

    # --- Bookings ---

    def new_booking_id(self) -> str:
        return str(uuid.uuid4())

    def save_booking(self, booking: Booking) -> None:
        with self._lock:
            self._bookings[booking.id] = booking.model_copy(deep=True)

    def get_booking(self, booking_id: str) -> Booking:
        with self._lock:
            if booking_id not in self._bookings:
                raise NotFoundError("Booking", booking_id)
            return self._bookings[booking_id].model_copy(deep=True)

    def list_bookings(
        self,
        client_id: Optional[str] = None,
        status: Optional[BookingStatus] = None,
        on_date: Optional[date] = None,
    ) -> list[Booking]:
        with self._lock:
            found = [
                b.model_copy(deep=True)
                for b in self._bookings.values()
                if (client_id is None or b.client_id == client_id)
                and (status is None or b.status == status)
                and (on_date is None or b.date == on_date)
            ]
        return sorted(found, key=lambda b: b.created_at)

    def bookings_for_photographer(
        self,
        photographer_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Booking]:
        """Bookings of one photographer with ``start <= date <= end``."""
        with self._lock:
            return [
                b.model_copy(deep=True)
                for b in self._bookings.values()
                if b.photographer_id == photographer_id
                and b.date is not None
                and (start is None or b.date >= start)
                and (end is None or b.date <= end)
            ]
