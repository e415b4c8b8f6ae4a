"""
Booking lifecycle: creation, edits, status transitions and their side effects.

Every mutating operation runs inside ``store.transaction()``: slot checks,
wallet postings, coupon usage and the booking write either all land or
none do. Events are published only after the transaction commits.

Status flow:
    Rascunho -> Pendente -> Confirmado -> Realizado -> Concluído
    Pendente | Confirmado -> Cancelado
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from shootmatch.engine import availability
from shootmatch.engine.matching import MatchingService
from shootmatch.engine.permissions import Actor, BookingAction, authorize, slot_is_future
from shootmatch.engine.pricing import PricingEngine, coupon_discount
from shootmatch.engine.retention import (
    NoRetention,
    RetentionHook,
    RetentionOffer,
    RetentionResponse,
)
from shootmatch.engine.state_machine import BookingStateMachine, BookingTrigger
from shootmatch.engine.wallet import WalletLedger, WalletOutcome
from shootmatch.errors import (
    ConflictError,
    InvalidTransitionError,
    SlotUnavailableError,
    ValidationError,
)
from shootmatch.events import BookingEvent, BookingEventType, EventPublisher
from shootmatch.logging_context import get_request_logger
from shootmatch.schemas.booking_schema import (
    CANCELLATION_LABELS,
    LOCKED_FOR_EDIT_STATUSES,
    Booking,
    BookingRequest,
    BookingStatus,
    CancellationReason,
    KeyState,
    PaymentChoice,
)
from shootmatch.schemas.catalog_schema import Coordinate, ServiceTag
from shootmatch.schemas.party_schema import Client, Photographer
from shootmatch.tools.payments import PaymentGateway
from shootmatch.tools.store import BookingStore
from shootmatch.utils import dedupe, time_to_minutes

logger = get_request_logger(__name__)

_RESCHEDULABLE = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
_TIPPABLE = frozenset({BookingStatus.CONFIRMED, BookingStatus.EXECUTED, BookingStatus.DELIVERED})


@dataclass
class BookingQuote:
    """Price of a prospective booking before anything is reserved."""

    service_ids: list[str]
    duration_minutes: int
    subtotal: float
    discount: float
    total: float
    coupon_code: Optional[str] = None


@dataclass
class CancellationOutcome:
    """Result of a cancel request.

    ``cancelled`` is False when a retention offer is pending an answer or
    was accepted; in the first case ``offer`` carries the proposal.
    """

    booking: Booking
    cancelled: bool
    offer: Optional[RetentionOffer] = None
    refunded: float = 0.0


@dataclass
class _Settlement:
    status: BookingStatus
    debit: float = 0.0
    charge: float = 0.0


@dataclass
class _Pending:
    events: list[BookingEvent] = field(default_factory=list)


class BookingLifecycle:
    """Drives bookings through their statuses on top of a store."""

    def __init__(
        self,
        store: BookingStore,
        payments: Optional[PaymentGateway] = None,
        publisher: Optional[EventPublisher] = None,
        clock: Callable[[], datetime] = datetime.now,
        retention_hook: Optional[RetentionHook] = None,
        wallet: Optional[WalletLedger] = None,
    ) -> None:
        self.store = store
        self.payments = payments
        self.publisher = publisher or EventPublisher()
        self.clock = clock
        self.retention_hook = retention_hook or NoRetention()
        self.wallet = wallet or WalletLedger(store)
        self.state_machine = BookingStateMachine()

    # --- Collaborators ---

    def pricing(self) -> PricingEngine:
        """Pricing over the catalog as it is right now."""
        return PricingEngine(self.store.catalog_snapshot(), today=lambda: self.clock().date())

    def matching(self, pricing: Optional[PricingEngine] = None) -> MatchingService:
        return MatchingService(self.store, pricing or self.pricing(), clock=self.clock)

    # --- Internal helpers ---

    def _event(
        self, pending: _Pending, kind: BookingEventType, booking: Booking, actor: Actor, **payload
    ) -> None:
        pending.events.append(BookingEvent(
            type=kind,
            booking_id=booking.id,
            actor=actor.label,
            occurred_at=self.clock(),
            payload=payload,
        ))

    def _flush(self, pending: _Pending) -> None:
        for event in pending.events:
            self.publisher.publish(event)

    def _transition(self, booking: Booking, trigger: BookingTrigger) -> BookingStatus:
        return self.state_machine.next_status(booking.status, trigger)

    def _resolve_services(
        self,
        pricing: PricingEngine,
        service_ids: Iterable[str],
        city: Optional[str],
        is_flash: bool,
        actor: Actor,
    ) -> list[str]:
        """Validate requested ids and add the system-managed fees the job needs."""
        ids = dedupe(service_ids)
        for sid in ids:
            service = pricing.service(sid)
            if not service.is_active:
                raise ValidationError(
                    f"Service '{sid}' is not active", code="INACTIVE_SERVICE",
                    details={"service_id": sid},
                )
            if service.is_system_managed and not actor.is_staff:
                raise ValidationError(
                    f"Service '{sid}' cannot be selected", code="SERVICE_NOT_SELECTABLE",
                    details={"service_id": sid},
                )

        catalog = pricing.catalog
        if MatchingService.requires_travel_fee(city):
            travel = catalog.find_by_tag(ServiceTag.TRAVEL_FEE)
            if travel is not None and travel.id not in ids:
                ids.append(travel.id)
        if is_flash:
            flash = catalog.find_by_tag(ServiceTag.FLASH_FEE)
            if flash is not None and flash.id not in ids:
                ids.append(flash.id)
        return ids

    def _assign(
        self,
        matching: MatchingService,
        location: Coordinate,
        service_ids: list[str],
        day: date,
        slot: str,
        client: Client,
        photographer_id: Optional[str],
        override_radius: bool,
        exclude_booking_id: Optional[str] = None,
    ) -> Photographer:
        """Pick the photographer for an exact slot, or validate the one given."""
        duration = matching.pricing.total_duration(service_ids)
        availability.end_time_for(slot, duration)

        if photographer_id is None:
            chosen = matching.select_for_slot(
                location, service_ids, day, slot, client, override_radius, exclude_booking_id
            )
            if chosen is None:
                raise SlotUnavailableError(
                    f"No photographer is free on {day.isoformat()} at {slot}",
                    details={"date": day.isoformat(), "slot": slot},
                )
            return chosen.photographer

        photographer = self.store.get_photographer(photographer_id)
        if not photographer.is_active:
            raise ValidationError(
                f"Photographer {photographer_id} is inactive", code="INACTIVE_PHOTOGRAPHER"
            )
        if photographer_id in client.blocked_photographer_ids:
            raise ValidationError(
                f"Photographer {photographer_id} is blocked for client {client.id}",
                code="PHOTOGRAPHER_BLOCKED",
            )
        if not availability.is_slot_free(photographer, day, slot, duration, exclude_booking_id):
            raise SlotUnavailableError(details={
                "photographer_id": photographer_id, "date": day.isoformat(), "slot": slot,
            })
        return photographer

    def _price(
        self,
        pricing: PricingEngine,
        booking: Booking,
        client: Client,
        coupon_code: Optional[str],
    ) -> tuple[float, float]:
        """Subtotal and coupon discount; an invalid coupon rejects the request."""
        subtotal = pricing.booking_total(booking.service_ids, booking, client)
        discount = 0.0
        if coupon_code:
            result = pricing.apply_coupon(
                coupon_code, client.id, subtotal, booking.service_ids
            ).ensure_valid()
            discount = result.discount
            booking.coupon_code = result.code
        return subtotal, discount

    def _settlement(
        self, client: Client, total: float, choice: Optional[PaymentChoice]
    ) -> _Settlement:
        if not client.is_prepaid:
            return _Settlement(BookingStatus.CONFIRMED)
        outcome = self.wallet.decide(client, total, choice)
        if outcome == WalletOutcome.AWAIT_PAYMENT:
            return _Settlement(
                BookingStatus.PENDING, charge=self.wallet.quote(client, total).deficit
            )
        return _Settlement(BookingStatus.CONFIRMED, debit=total)

    def _price_and_settle(
        self,
        pricing: PricingEngine,
        booking: Booking,
        client: Client,
        coupon_code: Optional[str],
        choice: Optional[PaymentChoice],
    ) -> _Settlement:
        """Price the booking and pick its payment path. Call inside the transaction."""
        subtotal, discount = self._price(pricing, booking, client, coupon_code)
        booking.discount_amount = discount
        booking.total_price = round(max(0.0, subtotal - discount), 2)
        settlement = self._settlement(client, booking.total_price, choice)
        booking.status = self._transition(
            booking,
            BookingTrigger.DRAFT_FINALIZED_CONFIRMED
            if settlement.status == BookingStatus.CONFIRMED
            else BookingTrigger.DRAFT_FINALIZED_PENDING,
        )
        return settlement

    def _check_not_past(self, actor: Actor, day: date, start_time: str, now: datetime) -> None:
        if actor.is_staff or slot_is_future(day, start_time, now):
            return
        raise ValidationError(
            f"{day.isoformat()} {start_time} is not in the future",
            code="SLOT_IN_PAST",
            details={"date": day.isoformat(), "slot": start_time},
        )

    def _apply_settlement(
        self, booking: Booking, client: Client, settlement: _Settlement, actor: Actor
    ) -> None:
        if settlement.debit > 0:
            self.wallet.debit(
                client.id, settlement.debit, f"Booking {booking.id}", actor.label, booking.id
            )
        if settlement.charge > 0 and self.payments is not None:
            charge = self.payments.create_charge(
                client.id,
                settlement.charge,
                booking.date or self.clock().date(),
                f"Booking {booking.id}",
            )
            booking.payment_charge_id = charge["charge_id"]
        if settlement.status == BookingStatus.CONFIRMED and booking.coupon_code:
            self.store.record_coupon_use(booking.coupon_code, client.id)

    def _reserve(self, booking: Booking) -> None:
        """Re-check the slot against committed state just before writing."""
        photographer = self.store.get_photographer(booking.photographer_id)
        duration = time_to_minutes(booking.end_time) - time_to_minutes(booking.start_time)
        if not availability.is_slot_free(
            photographer, booking.date, booking.start_time, duration, booking.id
        ):
            logger.warning(
                "Slot %s %s taken for photographer %s before commit",
                booking.date, booking.start_time, booking.photographer_id,
            )
            raise SlotUnavailableError(details={
                "photographer_id": booking.photographer_id,
                "date": booking.date.isoformat(),
                "slot": booking.start_time,
            })

    def _set_payout(self, pricing: PricingEngine, booking: Booking, client: Client) -> None:
        photographer = (
            self.store.get_photographer(booking.photographer_id)
            if booking.photographer_id else None
        )
        booking.photographer_payout = pricing.payout(booking, photographer, client)

    # --- Quotes ---

    def quote(self, request: BookingRequest, actor: Actor) -> BookingQuote:
        """Price a request without reserving anything or touching usage counters."""
        pricing = self.pricing()
        client = self.store.get_client(request.client_id)
        ids = self._resolve_services(
            pricing, request.all_service_ids, request.city, request.is_flash, actor
        )
        candidate = Booking(
            id="quote",
            client_id=client.id,
            service_ids=ids,
            location=request.location,
            status=BookingStatus.DRAFT,
            price_overrides=request.price_overrides,
        )
        subtotal, discount = self._price(pricing, candidate, client, request.coupon_code)
        return BookingQuote(
            service_ids=ids,
            duration_minutes=pricing.total_duration(ids),
            subtotal=subtotal,
            discount=discount,
            total=round(max(0.0, subtotal - discount), 2),
            coupon_code=candidate.coupon_code,
        )

    # --- Creation ---

    def create_booking(self, request: BookingRequest, actor: Actor) -> Booking:
        """
        Create a booking from a validated request.

        Without date and time the request becomes a draft (staff only).
        Flash requests are matched to the soonest slot today; standard
        requests use the given photographer or the best-balanced one.

        Raises:
            ValidationError: unknown or unselectable service, bad time.
            SlotUnavailableError: nobody can take the slot.
            CouponRejectedError: the coupon does not apply.
            ConflictError: a pre-paid client must choose how to pay.
            WalletLimitError: pay-later would cross the credit floor.
        """
        now = self.clock()
        action = BookingAction.CREATE_DRAFT if request.is_draft else BookingAction.CREATE
        authorize(actor, action, client_id=request.client_id, now=now)
        if request.price_overrides:
            authorize(actor, BookingAction.OVERRIDE_PRICE, client_id=request.client_id, now=now)
        if request.start_time is not None:
            time_to_minutes(request.start_time)
        if request.date is not None and request.start_time is not None:
            self._check_not_past(actor, request.date, request.start_time, now)

        pricing = self.pricing()
        matching = self.matching(pricing)
        client = self.store.get_client(request.client_id)
        ids = self._resolve_services(
            pricing, request.all_service_ids, request.city, request.is_flash, actor
        )

        booking = Booking(
            id=self.store.new_booking_id(),
            client_id=client.id,
            broker_id=request.broker_id,
            service_ids=ids,
            address=request.address,
            location=request.location,
            city=request.city,
            status=BookingStatus.DRAFT,
            price_overrides=dict(request.price_overrides),
            is_flash=request.is_flash,
            notes=request.notes,
            created_at=now,
        )
        pending = _Pending()

        if request.is_draft:
            booking.photographer_id = request.photographer_id
            booking.coupon_code = request.coupon_code
            booking.total_price = pricing.booking_total(ids, booking, client)
            with self.store.transaction():
                booking.add_history(actor.label, f"Draft created by {actor.label}", at=now)
                self.store.save_booking(booking)
            self._event(pending, BookingEventType.DRAFT_CREATED, booking, actor)
            self._flush(pending)
            logger.info("Draft %s created for client %s", booking.id, client.id)
            return booking

        duration = pricing.total_duration(ids)
        if request.is_flash:
            origin = matching.matching_location(request.location, ids, client)
            match = matching.find_nearest_available(origin, duration, client, ids)
            if match is None:
                raise SlotUnavailableError(
                    "No photographer has a slot left today",
                    details={"flash": True, "duration_minutes": duration},
                )
            booking.photographer_id = match.photographer_id
            booking.date = match.date
            booking.start_time = match.slot
        else:
            photographer = self._assign(
                matching, request.location, ids, request.date, request.start_time,
                client, request.photographer_id, request.override_radius,
            )
            booking.photographer_id = photographer.id
            booking.date = request.date
            booking.start_time = request.start_time
        booking.end_time = availability.end_time_for(booking.start_time, duration)

        with self.store.transaction():
            self._reserve(booking)
            pricing = self.pricing()
            client = self.store.get_client(client.id)
            settlement = self._price_and_settle(
                pricing, booking, client, request.coupon_code, request.payment_choice
            )
            self._apply_settlement(booking, client, settlement, actor)
            self._set_payout(pricing, booking, client)
            booking.add_history(actor.label, f"Booking created by {actor.label}", at=now)
            self.store.save_booking(booking)

        self._event(
            pending, BookingEventType.CREATED, booking, actor,
            status=booking.status.value, total=booking.total_price,
        )
        self._flush(pending)
        logger.info(
            "Booking %s %s: photographer %s on %s %s-%s, total %.2f",
            booking.id, booking.status.value, booking.photographer_id,
            booking.date, booking.start_time, booking.end_time, booking.total_price,
        )
        return booking

    def finalize_draft(
        self,
        booking_id: str,
        day: date,
        start_time: str,
        actor: Actor,
        service_ids: Optional[list[str]] = None,
        addon_ids: Iterable[str] = (),
        coupon_code: Optional[str] = None,
        payment_choice: Optional[PaymentChoice] = None,
        photographer_id: Optional[str] = None,
        override_radius: bool = False,
    ) -> Booking:
        """Complete a draft from the invite link: pick the slot, price, settle."""
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.FINALIZE_DRAFT, booking, now=now)
        if booking.status != BookingStatus.DRAFT:
            raise InvalidTransitionError(
                f"Booking {booking_id} is {booking.status.value}, not a draft",
                code="INVALID_TRANSITION",
                details={"status": booking.status.value},
            )
        time_to_minutes(start_time)
        self._check_not_past(actor, day, start_time, now)

        pricing = self.pricing()
        matching = self.matching(pricing)
        client = self.store.get_client(booking.client_id)
        requested = booking.service_ids if service_ids is None else [*service_ids, *addon_ids]
        requested = [sid for sid in requested if not pricing.service(sid).is_system_managed]
        booking.service_ids = self._resolve_services(
            pricing, requested, booking.city, booking.is_flash, actor
        )

        photographer = self._assign(
            matching, booking.location, booking.service_ids, day, start_time, client,
            photographer_id or booking.photographer_id, override_radius, booking.id,
        )
        booking.photographer_id = photographer.id
        booking.date = day
        booking.start_time = start_time
        booking.end_time = availability.end_time_for(
            start_time, pricing.total_duration(booking.service_ids)
        )

        coupon_code = coupon_code or booking.coupon_code

        pending = _Pending()
        with self.store.transaction():
            self._reserve(booking)
            pricing = self.pricing()
            client = self.store.get_client(client.id)
            settlement = self._price_and_settle(
                pricing, booking, client, coupon_code, payment_choice
            )
            self._apply_settlement(booking, client, settlement, actor)
            self._set_payout(pricing, booking, client)
            booking.add_history(actor.label, f"Draft finalized by {actor.label}", at=now)
            self.store.save_booking(booking)
        self._event(
            pending, BookingEventType.DRAFT_FINALIZED, booking, actor, status=booking.status.value
        )
        self._flush(pending)
        logger.info("Draft %s finalized as %s", booking.id, booking.status.value)
        return booking

    # --- Edits ---

    def reschedule(self, booking_id: str, day: date, start_time: str, actor: Actor) -> Booking:
        """Move a booking to another slot; the price does not change."""
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.RESCHEDULE, booking, now=now)
        if booking.status not in _RESCHEDULABLE:
            raise InvalidTransitionError(
                f"Cannot reschedule a booking that is {booking.status.value}",
                code="INVALID_TRANSITION",
                details={"status": booking.status.value},
            )
        time_to_minutes(start_time)
        self._check_not_past(actor, day, start_time, now)

        pricing = self.pricing()
        duration = pricing.total_duration(booking.service_ids)
        end_time = availability.end_time_for(start_time, duration)
        old = f"{booking.date} {booking.start_time}"

        pending = _Pending()
        with self.store.transaction():
            if booking.photographer_id is None:
                client = self.store.get_client(booking.client_id)
                photographer = self._assign(
                    self.matching(pricing), booking.location, booking.service_ids,
                    day, start_time, client, None, False, booking.id,
                )
                booking.photographer_id = photographer.id
            else:
                photographer = self.store.get_photographer(booking.photographer_id)
                if not availability.is_slot_free(photographer, day, start_time, duration, booking.id):
                    raise SlotUnavailableError(details={
                        "photographer_id": photographer.id,
                        "date": day.isoformat(),
                        "slot": start_time,
                    })
            booking.date = day
            booking.start_time = start_time
            booking.end_time = end_time
            booking.add_history(
                actor.label, f"Rescheduled from {old} to {day} {start_time} by {actor.label}", at=now
            )
            self.store.save_booking(booking)

        self._event(
            pending, BookingEventType.RESCHEDULED, booking, actor,
            date=day.isoformat(), start_time=start_time,
        )
        self._flush(pending)
        logger.info("Booking %s rescheduled to %s %s", booking.id, day, start_time)
        return booking

    def edit_services(
        self,
        booking_id: str,
        service_ids: Iterable[str],
        actor: Actor,
        addon_ids: Iterable[str] = (),
        price_overrides: Optional[dict[str, float]] = None,
    ) -> Booking:
        """
        Replace the service set, re-price and settle the difference.

        A confirmed pre-paid booking moves the wallet by exactly the change
        in total. A pending one gets a fresh charge for the new deficit.
        """
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.EDIT_SERVICES, booking, now=now)
        if price_overrides:
            authorize(actor, BookingAction.OVERRIDE_PRICE, booking, now=now)
        if booking.status in LOCKED_FOR_EDIT_STATUSES:
            raise InvalidTransitionError(
                f"Services cannot change once the booking is {booking.status.value}",
                code="BOOKING_LOCKED",
                details={"status": booking.status.value},
            )

        pricing = self.pricing()
        client = self.store.get_client(booking.client_id)
        requested = [
            sid for sid in dedupe([*service_ids, *addon_ids])
            if not pricing.service(sid).is_system_managed
        ]
        ids = self._resolve_services(pricing, requested, booking.city, booking.is_flash, actor)
        if not ids:
            raise ValidationError("A booking needs at least one service", code="NO_SERVICES")

        old_total = booking.total_price
        booking.service_ids = dedupe(ids)
        if price_overrides:
            booking.price_overrides = {**booking.price_overrides, **price_overrides}

        subtotal = pricing.booking_total(booking.service_ids, booking, client)
        discount = 0.0
        dropped_coupon = None
        if booking.coupon_code:
            coupon = pricing.catalog.coupon(booking.coupon_code)
            restriction = coupon.service_restriction_id if coupon is not None else None
            if restriction and restriction not in booking.service_ids:
                dropped_coupon = booking.coupon_code
                booking.coupon_code = None
            elif coupon is not None:
                discount = coupon_discount(coupon, subtotal)
        booking.discount_amount = discount
        booking.total_price = round(max(0.0, subtotal - discount), 2)

        if booking.is_scheduled and booking.photographer_id:
            duration = pricing.total_duration(booking.service_ids)
            booking.end_time = availability.end_time_for(booking.start_time, duration)

        pending = _Pending()
        with self.store.transaction():
            if booking.is_scheduled and booking.photographer_id:
                photographer = self.store.get_photographer(booking.photographer_id)
                duration = pricing.total_duration(booking.service_ids)
                if availability.has_conflict(
                    photographer, booking.date, booking.start_time, duration, booking.id
                ):
                    raise SlotUnavailableError(
                        "The longer session overlaps another commitment",
                        details={"booking_id": booking.id, "end_time": booking.end_time},
                    )

            if client.is_prepaid and booking.status == BookingStatus.CONFIRMED:
                self.wallet.apply_delta(
                    client.id,
                    booking.total_price - old_total,
                    f"Service change on booking {booking.id}",
                    actor.label,
                    booking.id,
                )
            elif client.is_prepaid and booking.status == BookingStatus.PENDING:
                self._recharge(booking, client)

            self._set_payout(pricing, booking, client)
            booking.add_history(
                actor.label,
                f"Services updated by {actor.label}: total {old_total:.2f} -> {booking.total_price:.2f}",
                at=now,
            )
            if dropped_coupon:
                booking.add_history(
                    actor.label,
                    f"Coupon {dropped_coupon} removed: its service is no longer booked",
                    at=now,
                )
            self.store.save_booking(booking)

        self._event(
            pending, BookingEventType.SERVICES_EDITED, booking, actor,
            old_total=old_total, new_total=booking.total_price,
        )
        self._flush(pending)
        logger.info(
            "Booking %s services edited: %.2f -> %.2f", booking.id, old_total, booking.total_price
        )
        return booking

    def _recharge(self, booking: Booking, client: Client) -> None:
        if self.payments is None:
            return
        if booking.payment_charge_id:
            self.payments.cancel_charge(booking.payment_charge_id)
            booking.payment_charge_id = None
        deficit = self.wallet.quote(client, booking.total_price).deficit
        if deficit > 0:
            charge = self.payments.create_charge(
                client.id, deficit, booking.date or self.clock().date(), f"Booking {booking.id}"
            )
            booking.payment_charge_id = charge["charge_id"]

    # --- Execution and delivery ---

    def complete(
        self,
        booking_id: str,
        actor: Actor,
        internal_notes: Optional[str] = None,
        common_area_id: Optional[str] = None,
    ) -> Booking:
        """Confirmado -> Realizado."""
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.COMPLETE, booking, now=now)
        status = self._transition(booking, BookingTrigger.SESSION_EXECUTED)

        pending = _Pending()
        with self.store.transaction():
            booking.status = status
            if internal_notes:
                booking.internal_notes = (
                    f"{booking.internal_notes}\n{internal_notes}"
                    if booking.internal_notes else internal_notes
                )
            if common_area_id:
                booking.common_area_id = common_area_id
            booking.add_history(actor.label, f"Session executed, marked by {actor.label}", at=now)
            self.store.save_booking(booking)
        self._event(pending, BookingEventType.EXECUTED, booking, actor)
        self._flush(pending)
        return booking

    def deliver_material(
        self, booking_id: str, actor: Actor, media_files: Iterable[str] = ()
    ) -> Booking:
        """Realizado -> Concluído. There is no way back."""
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.DELIVER, booking, now=now)
        status = self._transition(booking, BookingTrigger.MATERIAL_DELIVERED)

        pending = _Pending()
        with self.store.transaction():
            booking.status = status
            booking.media_files = dedupe([*booking.media_files, *media_files])
            booking.add_history(
                actor.label,
                f"Material delivered by {actor.label} ({len(booking.media_files)} file(s))",
                at=now,
            )
            self.store.save_booking(booking)
        self._event(
            pending, BookingEventType.DELIVERED, booking, actor, files=len(booking.media_files)
        )
        self._flush(pending)
        return booking

    # --- Cancellation ---

    def cancel(
        self,
        booking_id: str,
        reason: CancellationReason,
        actor: Actor,
        details: Optional[str] = None,
        retention_response: Optional[RetentionResponse] = None,
    ) -> CancellationOutcome:
        """
        Cancel a pending or confirmed booking, after the retention hook.

        When the hook has an offer and no response was given, nothing
        changes and the offer is returned. An accepted offer adds the
        discounted service instead of cancelling.
        """
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.CANCEL, booking, now=now)
        if reason == CancellationReason.OTHER and not (details and details.strip()):
            raise ValidationError(
                "Describe the reason when cancelling for 'other'", code="REASON_DETAILS_REQUIRED"
            )
        status = self._transition(booking, BookingTrigger.CANCELLED)

        decision = self.retention_hook.evaluate(booking, reason, self.store.catalog_snapshot())
        if not decision.proceed and retention_response != RetentionResponse.DECLINED:
            offer = decision.offer
            if retention_response is None:
                return CancellationOutcome(booking=booking, cancelled=False, offer=offer)
            updated = self.edit_services(
                booking.id,
                [*booking.service_ids, offer.service_id],
                Actor.system() if not actor.is_staff else actor,
                price_overrides={offer.service_id: offer.price},
            )
            pending = _Pending()
            self._event(
                pending, BookingEventType.RETENTION_ACCEPTED, updated, actor,
                service_id=offer.service_id, price=offer.price,
            )
            self._flush(pending)
            logger.info("Booking %s kept with retention offer %s", booking.id, offer.service_id)
            return CancellationOutcome(booking=updated, cancelled=False, offer=offer)

        client = self.store.get_client(booking.client_id)
        refund = 0.0
        pending = _Pending()
        with self.store.transaction():
            if client.is_prepaid and booking.status == BookingStatus.CONFIRMED:
                refund = round(booking.total_price + booking.tip_amount, 2)
                if refund > 0:
                    self.wallet.credit(
                        client.id, refund, f"Refund for cancelled booking {booking.id}",
                        actor.label, booking.id,
                    )
            if booking.payment_charge_id and self.payments is not None:
                self.payments.cancel_charge(booking.payment_charge_id)

            label = CANCELLATION_LABELS[reason]
            note = f"Cancelled by {actor.label}: {label}"
            if details:
                note = f"{note} - {details.strip()}"
            if reason == CancellationReason.WEATHER:
                note = f"[WEATHER] {note}"

            booking.status = status
            booking.cancellation_reason = reason
            booking.total_price = 0.0
            booking.tip_amount = 0.0
            booking.photographer_payout = 0.0
            booking.add_history(actor.label, note, at=now)
            self.store.save_booking(booking)

        self._event(
            pending, BookingEventType.CANCELLED, booking, actor,
            reason=reason.value, refunded=refund,
        )
        self._flush(pending)
        logger.info("Booking %s cancelled (%s), refunded %.2f", booking.id, reason.value, refund)
        return CancellationOutcome(booking=booking, cancelled=True, refunded=refund)

    # --- Payments ---

    def _drop_spent_coupon(
        self, booking: Booking, client: Client, actor: Actor, now: datetime
    ) -> bool:
        """
        Remove a coupon whose usage caps filled while the booking waited for payment.

        The discount is dropped and the booking re-priced at full value.
        Returns True when that happened; the caller checks the balance
        against the new total.
        """
        if not booking.coupon_code:
            return False
        coupon = self.store.catalog_snapshot().coupon(booking.coupon_code)
        if coupon is None:
            return False
        if (
            coupon.used_count < coupon.max_uses
            and coupon.uses_for(client.id) < coupon.max_uses_per_client
        ):
            return False

        code, discount = booking.coupon_code, booking.discount_amount
        booking.coupon_code = None
        booking.discount_amount = 0.0
        booking.total_price = round(booking.total_price + discount, 2)
        self._set_payout(self.pricing(), booking, client)
        booking.add_history(
            actor.label,
            f"Coupon {code} exhausted before payment; discount of {discount:.2f} removed",
            at=now,
        )
        logger.warning(
            "Coupon %s exhausted for client %s; booking %s re-priced to %.2f",
            code, client.id, booking.id, booking.total_price,
        )
        return True

    def _confirm_paid(self, booking: Booking, client: Client, actor: Actor, now: datetime) -> None:
        booking.status = self._transition(booking, BookingTrigger.PAYMENT_CONFIRMED)
        if client.is_prepaid and booking.total_price > 0:
            self.wallet.debit(
                client.id, booking.total_price, f"Booking {booking.id}", actor.label, booking.id
            )
        if booking.coupon_code:
            self.store.record_coupon_use(booking.coupon_code, client.id)
        booking.payment_charge_id = None
        booking.add_history(actor.label, f"Payment confirmed by {actor.label}", at=now)
        self.store.save_booking(booking)

    def confirm_payment(self, booking_id: str, actor: Actor) -> Booking:
        """
        Manual re-check of a pending booking.

        Pre-paid bookings confirm only once the balance covers the total.

        Raises:
            ConflictError: the balance still falls short.
        """
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.CONFIRM_PAYMENT, booking, now=now)

        pending = _Pending()
        with self.store.transaction():
            client = self.store.get_client(booking.client_id)
            self._drop_spent_coupon(booking, client, actor, now)
            if client.is_prepaid and client.balance < booking.total_price:
                raise ConflictError(
                    f"Balance {client.balance:.2f} does not cover {booking.total_price:.2f} yet",
                    code="PAYMENT_PENDING",
                    details={"deficit": self.wallet.quote(client, booking.total_price).deficit},
                )
            self._confirm_paid(booking, client, actor, now)
        self._event(pending, BookingEventType.CONFIRMED, booking, actor)
        self._flush(pending)
        return booking

    def handle_credit_posted(
        self, client_id: str, amount: float, actor: Optional[Actor] = None
    ) -> list[Booking]:
        """
        Credit a wallet from a provider event and confirm what it now covers.

        Pending bookings are confirmed oldest first, stopping at the first
        one the balance cannot cover.
        """
        actor = actor or Actor.system()
        now = self.clock()
        confirmed: list[Booking] = []
        pending = _Pending()
        with self.store.transaction():
            self.wallet.credit(client_id, amount, "Payment received", actor.label)
            for booking in self.store.list_bookings(
                client_id=client_id, status=BookingStatus.PENDING
            ):
                client = self.store.get_client(client_id)
                repriced = self._drop_spent_coupon(booking, client, actor, now)
                if client.balance < booking.total_price:
                    if repriced:
                        self._recharge(booking, client)
                        self.store.save_booking(booking)
                    break
                self._confirm_paid(booking, client, actor, now)
                confirmed.append(booking)
                self._event(pending, BookingEventType.CONFIRMED, booking, actor)
        self._flush(pending)
        logger.info(
            "Credit %.2f posted for client %s; %d booking(s) confirmed",
            amount, client_id, len(confirmed),
        )
        return confirmed

    def add_tip(self, booking_id: str, amount: float, actor: Actor) -> Booking:
        if amount <= 0:
            raise ValidationError(f"Tip must be positive, got {amount}", code="BAD_AMOUNT")
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.TIP, booking, now=now)
        if booking.status not in _TIPPABLE:
            raise ConflictError(
                f"Cannot tip a booking that is {booking.status.value}",
                code="TIP_NOT_ALLOWED",
            )

        pricing = self.pricing()
        client = self.store.get_client(booking.client_id)
        pending = _Pending()
        with self.store.transaction():
            if client.is_prepaid:
                self.wallet.debit(
                    client.id, amount, f"Tip on booking {booking.id}", actor.label, booking.id
                )
            booking.tip_amount = round(booking.tip_amount + amount, 2)
            self._set_payout(pricing, booking, client)
            booking.add_history(actor.label, f"Tip of {amount:.2f} added by {actor.label}", at=now)
            self.store.save_booking(booking)
        self._event(pending, BookingEventType.TIP_ADDED, booking, actor, amount=amount)
        self._flush(pending)
        return booking

    # --- Operations ---

    def update_key_state(self, booking_id: str, state: KeyState, actor: Actor) -> Booking:
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.KEY_STATE, booking, now=now)
        if not self.store.catalog_snapshot().has_tag(booking.service_ids, ServiceTag.KEY_PICKUP):
            raise ValidationError(
                f"Booking {booking_id} has no key pickup service", code="NO_KEY_PICKUP"
            )

        pending = _Pending()
        with self.store.transaction():
            booking.key_state = state
            booking.add_history(actor.label, f"Keys {state.value} ({actor.label})", at=now)
            self.store.save_booking(booking)
        self._event(pending, BookingEventType.KEY_STATE_CHANGED, booking, actor, state=state.value)
        self._flush(pending)
        return booking

    def reassign(self, booking_id: str, photographer_id: str, actor: Actor) -> Booking:
        """Hand a scheduled booking to another photographer at the same slot."""
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.REASSIGN, booking, now=now)
        if booking.status not in _RESCHEDULABLE or not booking.is_scheduled:
            raise InvalidTransitionError(
                f"Cannot reassign a booking that is {booking.status.value}",
                code="INVALID_TRANSITION",
            )
        if photographer_id == booking.photographer_id:
            return booking

        pricing = self.pricing()
        client = self.store.get_client(booking.client_id)
        previous = booking.photographer_id
        pending = _Pending()
        with self.store.transaction():
            photographer = self._assign(
                self.matching(pricing), booking.location, booking.service_ids,
                booking.date, booking.start_time, client, photographer_id, True, booking.id,
            )
            missing = [
                sid for sid in booking.service_ids
                if not pricing.service(sid).is_system_managed and not photographer.can_perform(sid)
            ]
            if missing:
                raise ValidationError(
                    f"Photographer {photographer_id} does not offer {', '.join(missing)}",
                    code="SERVICE_NOT_OFFERED",
                )
            booking.photographer_id = photographer.id
            self._set_payout(pricing, booking, client)
            booking.add_history(
                actor.label, f"Reassigned from {previous} to {photographer.id} by {actor.label}", at=now
            )
            self.store.save_booking(booking)
        self._event(
            pending, BookingEventType.REASSIGNED, booking, actor,
            previous=previous, photographer_id=photographer_id,
        )
        self._flush(pending)
        return booking

    def force_status(
        self, booking_id: str, status: BookingStatus, actor: Actor, note: Optional[str] = None
    ) -> Booking:
        """Set any status without side effects. Staff only."""
        now = self.clock()
        booking = self.store.get_booking(booking_id)
        authorize(actor, BookingAction.FORCE_STATUS, booking, now=now)
        previous = booking.status

        pending = _Pending()
        with self.store.transaction():
            booking.status = status
            message = f"Status forced from {previous.value} to {status.value} by {actor.label}"
            if note:
                message = f"{message}: {note}"
            booking.add_history(actor.label, message, at=now)
            self.store.save_booking(booking)
        self._event(
            pending, BookingEventType.STATUS_FORCED, booking, actor,
            previous=previous.value, status=status.value,
        )
        self._flush(pending)
        logger.warning("Booking %s status forced %s -> %s", booking.id, previous.value, status.value)
        return booking

    def payout(self, booking: Booking) -> float:
        """Photographer payout for ``booking`` at current catalog prices."""
        pricing = self.pricing()
        client = self.store.get_client(booking.client_id)
        photographer = (
            self.store.get_photographer(booking.photographer_id)
            if booking.photographer_id else None
        )
        return pricing.payout(booking, photographer, client)
