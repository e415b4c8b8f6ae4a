from shootmatch.engine import availability, geo
from shootmatch.engine.lifecycle import BookingLifecycle, BookingQuote, CancellationOutcome
from shootmatch.engine.matching import EligiblePhotographer, FlashMatch, MatchingService
from shootmatch.engine.permissions import Actor, BookingAction, Role, authorize
from shootmatch.engine.pricing import CouponResult, PricingEngine
from shootmatch.engine.retention import RetentionResponse, WeatherRetentionHook
from shootmatch.engine.state_machine import BookingStateMachine, BookingTrigger
from shootmatch.engine.wallet import WalletLedger, WalletOutcome

__all__ = [
    "availability", "geo",
    "BookingLifecycle", "BookingQuote", "CancellationOutcome",
    "MatchingService", "EligiblePhotographer", "FlashMatch",
    "Actor", "BookingAction", "Role", "authorize",
    "PricingEngine", "CouponResult",
    "RetentionResponse", "WeatherRetentionHook",
    "BookingStateMachine", "BookingTrigger",
    "WalletLedger", "WalletOutcome",
]
