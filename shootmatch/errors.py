"""
Domain exceptions for the scheduling engine.

Callers at the boundary map these to their transport: ValidationError is
a malformed request, ConflictError a retryable state conflict,
NotFoundError an unknown id and AuthorizationError a forbidden action.
"""

from typing import Any, Optional


class EngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(EngineError):
    """Malformed input, rejected before any state mutation."""


class NotFoundError(EngineError):
    """Unknown booking, photographer, client, service or coupon id."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(
            f"{kind} '{entity_id}' not found",
            code="NOT_FOUND",
            details={"kind": kind, "id": entity_id},
        )


class AuthorizationError(EngineError):
    """Actor is not permitted to perform the requested transition."""


class ConflictError(EngineError):
    """State changed under the caller; the request may be retried."""


class SlotUnavailableError(ConflictError):
    """The requested slot is no longer free for the photographer."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message or "This time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class CouponRejectedError(ConflictError):
    """Coupon is expired, exhausted or not applicable."""

    def __init__(self, code: str, reason: str) -> None:
        super().__init__(
            message=f"Coupon {code} rejected: {reason}",
            code="COUPON_REJECTED",
            details={"coupon": code, "reason": reason},
        )


class WalletLimitError(ConflictError):
    """Debit would take a pre-paid balance past the negative floor."""

    def __init__(self, client_id: str, projected: float, floor: float) -> None:
        super().__init__(
            message=(
                f"Credit limit exceeded for client {client_id}: "
                f"projected balance {projected:.2f} is below {-floor:.2f}"
            ),
            code="WALLET_LIMIT",
            details={"client_id": client_id, "projected_balance": projected, "floor": -floor},
        )


class InvalidTransitionError(ConflictError):
    """Raised when a transition is not valid from the booking's current status."""
