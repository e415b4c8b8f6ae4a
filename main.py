"""
Offline demo of the scheduling engine over the seeded Curitiba catalog.

Runs matching, pricing and the booking lifecycle against the in-memory
store. No network calls and no payment provider.

Usage:
    python main.py slots --date 2026-03-16 --services foto video
    python main.py flash --lat -25.43 --lng -49.27
    python main.py quote --client cl-batel --services foto drone --coupon DRONE50
    python main.py demo
"""

import argparse
import logging
import sys
from datetime import date, timedelta

from shootmatch.config import settings
from shootmatch.engine.lifecycle import BookingLifecycle
from shootmatch.engine.permissions import Actor, Role
from shootmatch.engine.retention import RetentionResponse, WeatherRetentionHook
from shootmatch.errors import EngineError
from shootmatch.events import BookingEvent
from shootmatch.logging_context import new_request_id
from shootmatch.schemas.booking_schema import BookingRequest, CancellationReason, PaymentChoice
from shootmatch.schemas.catalog_schema import Coordinate
from shootmatch.tools.payments import MockPaymentGateway
from shootmatch.tools.seed import seed_store
from shootmatch.tools.store import InMemoryStore

logger = logging.getLogger(__name__)

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

JOB_SITE = Coordinate(lat=-25.4372, lng=-49.2697)
ADMIN = Actor(role=Role.ADMIN, id="admin-1", name="Operações")


def say(text: str) -> None:
    print(f"{GREEN}{text}{RESET}")


def note(text: str) -> None:
    print(f"{DIM}  >> {text}{RESET}")


def warn(text: str) -> None:
    print(f"{YELLOW}{text}{RESET}")


def _next_weekday(start: date) -> date:
    day = start + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def build_lifecycle() -> BookingLifecycle:
    store = InMemoryStore()
    seed_store(store)
    lifecycle = BookingLifecycle(
        store,
        payments=MockPaymentGateway(),
        retention_hook=WeatherRetentionHook(),
    )
    lifecycle.publisher.subscribe(_print_event)
    return lifecycle


def _print_event(event: BookingEvent) -> None:
    note(f"event {event.type.value} booking={event.booking_id[:8]} by {event.actor}")


def cmd_slots(lifecycle: BookingLifecycle, args: argparse.Namespace) -> None:
    day = args.date or _next_weekday(date.today())
    matching = lifecycle.matching()
    client = lifecycle.store.get_client(args.client)
    location = Coordinate(lat=args.lat, lng=args.lng)
    eligible = matching.find_eligible_photographers(
        location, args.services, day, client, args.override_radius
    )
    if not eligible:
        warn(f"No photographer available on {day}. Try another date.")
        return
    say(f"{BOLD}Slots on {day} for {', '.join(args.services)}{RESET}")
    for candidate in eligible:
        print(
            f"  {BLUE}{candidate.photographer.name:<18}{RESET} "
            f"{candidate.distance_km:5.1f} km  {' '.join(candidate.slots)}"
        )


def cmd_flash(lifecycle: BookingLifecycle, args: argparse.Namespace) -> None:
    pricing = lifecycle.pricing()
    matching = lifecycle.matching(pricing)
    duration = pricing.total_duration(args.services)
    match = matching.find_nearest_available(
        Coordinate(lat=args.lat, lng=args.lng), duration, service_ids=args.services
    )
    if match is None:
        warn("Nobody has a slot left today.")
        return
    say(f"Flash: {match.photographer_id} at {match.slot} ({match.distance_km:.1f} km)")


def cmd_quote(lifecycle: BookingLifecycle, args: argparse.Namespace) -> None:
    request = BookingRequest(
        client_id=args.client,
        service_ids=args.services,
        addon_ids=args.addons,
        location=Coordinate(lat=args.lat, lng=args.lng),
        city=args.city,
        coupon_code=args.coupon,
    )
    quote = lifecycle.quote(request, ADMIN)
    currency = settings.pricing.currency
    say(f"{BOLD}Quote for {args.client}{RESET}")
    print(f"  services  {', '.join(quote.service_ids)} ({quote.duration_minutes} min)")
    print(f"  subtotal  {currency} {quote.subtotal:.2f}")
    if quote.coupon_code:
        print(f"  coupon    {quote.coupon_code} -{quote.discount:.2f}")
    print(f"  total     {currency} {quote.total:.2f}")


def cmd_demo(lifecycle: BookingLifecycle, args: argparse.Namespace) -> None:
    """Create, edit and cancel a booking for the pre-paid demo agency."""
    day = _next_weekday(date.today())
    client = Actor(role=Role.CLIENT, id="cl-batel", name="Imobiliária Batel")

    booking = lifecycle.create_booking(
        BookingRequest(
            client_id="cl-batel",
            service_ids=["foto"],
            date=day,
            start_time="09:30",
            address="Rua Comendador Araújo, 500",
            location=JOB_SITE,
            city="Curitiba",
            coupon_code="DESCONTO10",
            payment_choice=PaymentChoice.PAY_LATER,
        ),
        client,
    )
    say(f"Created {booking.id[:8]}: {booking.status.value}, total {booking.total_price:.2f}, "
        f"photographer {booking.photographer_id} {booking.start_time}-{booking.end_time}")

    booking = lifecycle.edit_services(booking.id, ["foto", "video"], client)
    balance = lifecycle.store.get_client("cl-batel").balance
    say(f"Edited: total {booking.total_price:.2f}, ends {booking.end_time}, balance {balance:.2f}")

    outcome = lifecycle.cancel(booking.id, CancellationReason.WEATHER, client)
    if outcome.offer is not None:
        warn(f"Retention offer: {outcome.offer.service_name} for {outcome.offer.price:.2f}")
        outcome = lifecycle.cancel(
            booking.id, CancellationReason.WEATHER, client,
            retention_response=RetentionResponse.DECLINED,
        )
    balance = lifecycle.store.get_client("cl-batel").balance
    say(f"Cancelled: refunded {outcome.refunded:.2f}, balance {balance:.2f}")
    for entry in outcome.booking.history:
        note(f"{entry.timestamp:%H:%M} {entry.note}")


COMMANDS = {
    "slots": cmd_slots,
    "flash": cmd_flash,
    "quote": cmd_quote,
    "demo": cmd_demo,
}


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Photography scheduling engine demo")
    sub = parser.add_subparsers(dest="command", required=True)

    def location(p: argparse.ArgumentParser) -> None:
        p.add_argument("--lat", type=float, default=JOB_SITE.lat)
        p.add_argument("--lng", type=float, default=JOB_SITE.lng)

    slots = sub.add_parser("slots", help="List free slots per photographer")
    slots.add_argument("--date", type=date.fromisoformat)
    slots.add_argument("--client", default="cl-aguaverde")
    slots.add_argument("--services", nargs="+", default=["foto"])
    slots.add_argument("--override-radius", action="store_true")
    location(slots)

    flash = sub.add_parser("flash", help="Soonest photographer available today")
    flash.add_argument("--services", nargs="+", default=["foto"])
    location(flash)

    quote = sub.add_parser("quote", help="Price a job for a client")
    quote.add_argument("--client", default="cl-aguaverde")
    quote.add_argument("--services", nargs="+", default=["foto"])
    quote.add_argument("--addons", nargs="*", default=[])
    quote.add_argument("--city", default="Curitiba")
    quote.add_argument("--coupon")
    location(quote)

    sub.add_parser("demo", help="Walk one booking through create, edit and cancel")
    return parser


def main(argv=None) -> int:
    args = _parser().parse_args(argv)
    new_request_id()
    lifecycle = build_lifecycle()
    try:
        COMMANDS[args.command](lifecycle, args)
    except EngineError as exc:
        print(f"{RED}{exc.code}: {exc.message}{RESET}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
