"""
Mock payment provider.

In production, this would call the payment provider's API to issue a Pix
charge and later receive a "credit posted" webhook. The engine only needs
to create and cancel charges; credits arrive through
BookingLifecycle.handle_credit_posted.
"""

import logging
import uuid
from datetime import date
from typing import Protocol, TypedDict

logger = logging.getLogger(__name__)


class ChargeResult(TypedDict):
    """Charge issued to a customer."""

    charge_id: str
    qr_payload: str
    invoice_url: str


class ChargeRecord(TypedDict):
    customer_id: str
    amount: float
    due_date: str
    description: str
    status: str


class PaymentGateway(Protocol):
    """What the engine needs from a payment provider."""

    def create_charge(
        self, customer_id: str, amount: float, due_date: date, description: str
    ) -> ChargeResult: ...

    def cancel_charge(self, charge_id: str) -> None: ...


class MockPaymentGateway:
    """Records charges in memory instead of calling a provider."""

    def __init__(self) -> None:
        self.charges: dict[str, ChargeRecord] = {}

    def create_charge(
        self, customer_id: str, amount: float, due_date: date, description: str
    ) -> ChargeResult:
        charge_id = f"pay_{uuid.uuid4().hex[:12]}"
        self.charges[charge_id] = {
            "customer_id": customer_id,
            "amount": amount,
            "due_date": due_date.isoformat(),
            "description": description,
            "status": "pending",
        }
        logger.info("Charge %s created for %s: %.2f", charge_id, customer_id, amount)
        return {
            "charge_id": charge_id,
            "qr_payload": f"PIX|{charge_id}|{amount:.2f}",
            "invoice_url": f"https://payments.example.invalid/i/{charge_id}",
        }

    def cancel_charge(self, charge_id: str) -> None:
        if charge_id in self.charges:
            self.charges[charge_id]["status"] = "cancelled"
            logger.info("Charge %s cancelled", charge_id)
        else:
            logger.warning("Cancel requested for unknown charge %s", charge_id)
