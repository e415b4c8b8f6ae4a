"""
Photographer matching: eligibility, slot listing, Flash search and swaps.

Eligibility = active, not blocked by the client, able to perform every
client-selectable service in the job, and based within radius of the
matching location (unless the radius check is explicitly overridden).
Key-pickup jobs are matched from the client's office, where the
photographer has to start, rather than from the job site.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from shootmatch.config import settings
from shootmatch.engine import availability
from shootmatch.engine.geo import distance_km
from shootmatch.engine.pricing import PricingEngine
from shootmatch.schemas.booking_schema import Booking, BookingStatus
from shootmatch.schemas.catalog_schema import Coordinate, ServiceTag
from shootmatch.schemas.party_schema import Client, Photographer
from shootmatch.utils import MINUTES_PER_DAY, normalize_city, time_to_minutes

logger = logging.getLogger(__name__)


@dataclass
class EligiblePhotographer:
    """A photographer who passed the eligibility filters for a job."""

    photographer: Photographer
    distance_km: float
    slots: list[str] = field(default_factory=list)
    daily_booking_count: int = 0


@dataclass(frozen=True)
class FlashMatch:
    """Nearest-available result of a same-day search."""

    photographer_id: str
    slot: str
    date: date
    distance_km: float


@dataclass(frozen=True)
class SwapSuggestion:
    """Two same-time bookings whose photographers should trade jobs."""

    booking_a_id: str
    booking_b_id: str
    photographer_a_id: str
    photographer_b_id: str
    saving_km: float


def _daily_count(photographer: Photographer, day: date) -> int:
    return sum(1 for b in photographer.bookings if b.date == day and not b.cancelled)


class MatchingService:
    """Finds photographers for a job using the store and a pricing catalog."""

    def __init__(
        self,
        store,
        pricing: PricingEngine,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.pricing = pricing
        self.clock = clock

    # --- Routing rules ---

    def matching_location(
        self,
        location: Coordinate,
        service_ids: Iterable[str],
        client: Optional[Client] = None,
    ) -> Coordinate:
        """Office coordinate for key-pickup jobs when the client has one."""
        if client is not None and client.office is not None:
            if self.pricing.catalog.has_tag(service_ids, ServiceTag.KEY_PICKUP):
                logger.debug("Key pickup: matching from office of client %s", client.id)
                return client.office
        return location

    @staticmethod
    def requires_travel_fee(city: Optional[str]) -> bool:
        """True when the geocoded city is known and outside the home city."""
        if not city or not city.strip():
            return False
        return normalize_city(city) != normalize_city(settings.matching.home_city)

    def _essential_services(self, service_ids: Iterable[str]) -> list[str]:
        return [sid for sid in service_ids if not self.pricing.service(sid).is_system_managed]

    def _candidates(
        self,
        location: Coordinate,
        service_ids: Iterable[str],
        client: Optional[Client],
        override_radius: bool,
        exclude_photographer_id: Optional[str] = None,
    ) -> list[tuple[Photographer, float]]:
        essential = self._essential_services(service_ids)
        blocked = client.blocked_photographer_ids if client is not None else set()

        found: list[tuple[Photographer, float]] = []
        for photographer in self.store.list_photographers(active_only=True):
            if photographer.id == exclude_photographer_id:
                continue
            if photographer.id in blocked:
                logger.debug("Photographer %s is blocked for this client", photographer.id)
                continue
            missing = [sid for sid in essential if not photographer.can_perform(sid)]
            if missing:
                continue
            dist = distance_km(location, photographer.base)
            if not override_radius and dist > photographer.radius_km:
                continue
            found.append((photographer, dist))
        return sorted(found, key=lambda pair: pair[1])

    # --- Standard flow ---

    def find_eligible_photographers(
        self,
        location: Coordinate,
        service_ids: list[str],
        day: date,
        client: Optional[Client] = None,
        override_radius: bool = False,
    ) -> list[EligiblePhotographer]:
        """
        Photographers who can take the job on ``day``, nearest first.

        An empty list is a normal outcome; the caller should offer another
        date.
        """
        duration = self.pricing.total_duration(service_ids)
        origin = self.matching_location(location, service_ids, client)

        eligible = []
        for photographer, dist in self._candidates(origin, service_ids, client, override_radius):
            slots = availability.available_slots(photographer, day, duration)
            if slots:
                eligible.append(EligiblePhotographer(
                    photographer=photographer,
                    distance_km=dist,
                    slots=slots,
                    daily_booking_count=_daily_count(photographer, day),
                ))

        logger.info(
            "%d eligible photographer(s) on %s for %d min job",
            len(eligible), day.isoformat(), duration,
        )
        return eligible

    def available_slots(
        self,
        location: Coordinate,
        service_ids: list[str],
        day: date,
        client: Optional[Client] = None,
        override_radius: bool = False,
    ) -> list[str]:
        """Union of free slots across all eligible photographers, ascending."""
        slots: set[str] = set()
        for candidate in self.find_eligible_photographers(
            location, service_ids, day, client, override_radius
        ):
            slots.update(candidate.slots)
        return sorted(slots, key=time_to_minutes)

    def select_for_slot(
        self,
        location: Coordinate,
        service_ids: list[str],
        day: date,
        slot: str,
        client: Optional[Client] = None,
        override_radius: bool = False,
        exclude_booking_id: Optional[str] = None,
    ) -> Optional[EligiblePhotographer]:
        """
        Pick one photographer for an exact slot.

        Balances load by scoring distance plus a per-booking penalty, so a
        slightly farther photographer with an empty day can win over a
        nearby one who is already busy.
        """
        duration = self.pricing.total_duration(service_ids)
        origin = self.matching_location(location, service_ids, client)
        weight = settings.matching.balance_weight_km

        best: Optional[EligiblePhotographer] = None
        best_score = float("inf")
        for photographer, dist in self._candidates(origin, service_ids, client, override_radius):
            if not availability.is_slot_free(photographer, day, slot, duration, exclude_booking_id):
                continue
            count = _daily_count(photographer, day)
            score = dist + count * weight
            if score < best_score:
                best_score = score
                best = EligiblePhotographer(
                    photographer=photographer,
                    distance_km=dist,
                    slots=[slot],
                    daily_booking_count=count,
                )
        if best is not None:
            logger.info(
                "Selected photographer %s for %s %s (%.1f km, %d job(s) that day)",
                best.photographer.id, day.isoformat(), slot,
                best.distance_km, best.daily_booking_count,
            )
        return best

    # --- Flash flow ---

    def find_nearest_available(
        self,
        location: Coordinate,
        duration_minutes: int,
        client: Optional[Client] = None,
        service_ids: Iterable[str] = (),
    ) -> Optional[FlashMatch]:
        """
        Soonest free slot today across nearby photographers.

        The radius is never bypassed here. The earliest slot wins and ties
        go to the nearer photographer. Returns None when nothing is left
        today.
        """
        now = self.clock()
        today = now.date()
        not_before = now.hour * 60 + now.minute + settings.matching.flash_lead_minutes
        if now.second or now.microsecond:
            not_before += 1
        if not_before >= MINUTES_PER_DAY:
            return None

        best: Optional[FlashMatch] = None
        best_key: Optional[tuple[int, float]] = None
        for photographer, dist in self._candidates(location, list(service_ids), client, False):
            free = availability.available_slots(
                photographer, today, duration_minutes, not_before_minutes=not_before
            )
            if not free:
                continue
            key = (time_to_minutes(free[0]), dist)
            if best_key is None or key < best_key:
                best_key = key
                best = FlashMatch(
                    photographer_id=photographer.id,
                    slot=free[0],
                    date=today,
                    distance_km=dist,
                )

        if best is None:
            logger.info("Flash search found no slot left today")
        else:
            logger.info(
                "Flash match: photographer %s at %s (%.1f km)",
                best.photographer_id, best.slot, best.distance_km,
            )
        return best

    # --- Reassignment helpers ---

    def swap_candidates(self, booking: Booking) -> list[EligiblePhotographer]:
        """Other photographers who could take ``booking`` at its current slot."""
        if not booking.is_scheduled:
            return []
        duration = self.pricing.total_duration(booking.service_ids)
        candidates = []
        for photographer, dist in self._candidates(
            booking.location, booking.service_ids, None, False,
            exclude_photographer_id=booking.photographer_id,
        ):
            if availability.is_slot_free(
                photographer, booking.date, booking.start_time, duration, booking.id
            ):
                candidates.append(EligiblePhotographer(
                    photographer=photographer,
                    distance_km=dist,
                    slots=[booking.start_time],
                    daily_booking_count=_daily_count(photographer, booking.date),
                ))
        return candidates

    def suggest_route_swaps(self, day: date) -> list[SwapSuggestion]:
        """Find confirmed same-time booking pairs that save travel if swapped."""
        threshold = settings.matching.route_swap_min_saving_km
        bookings = [
            b for b in self.store.list_bookings(status=BookingStatus.CONFIRMED, on_date=day)
            if b.photographer_id and b.start_time
        ]

        suggestions = []
        for i, first in enumerate(bookings):
            for second in bookings[i + 1:]:
                if first.start_time != second.start_time:
                    continue
                if first.photographer_id == second.photographer_id:
                    continue
                p1 = self.store.get_photographer(first.photographer_id)
                p2 = self.store.get_photographer(second.photographer_id)
                if not all(p1.can_perform(s) for s in self._essential_services(second.service_ids)):
                    continue
                if not all(p2.can_perform(s) for s in self._essential_services(first.service_ids)):
                    continue

                current = distance_km(p1.base, first.location) + distance_km(p2.base, second.location)
                swapped = distance_km(p1.base, second.location) + distance_km(p2.base, first.location)
                saving = current - swapped
                if saving > threshold:
                    suggestions.append(SwapSuggestion(
                        booking_a_id=first.id,
                        booking_b_id=second.id,
                        photographer_a_id=p1.id,
                        photographer_b_id=p2.id,
                        saving_km=round(saving, 2),
                    ))
        return sorted(suggestions, key=lambda s: s.saving_km, reverse=True)
