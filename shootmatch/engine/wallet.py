"""
Pre-paid client wallet.

The balance may go negative, but never below -NEGATIVE_BALANCE_LIMIT. The
floor is checked when a debit is decided, not after the fact. Every
mutation writes a WalletTransaction, and mutations on one client are
serialized by a per-client lock.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shootmatch.config import settings
from shootmatch.errors import ConflictError, ValidationError, WalletLimitError
from shootmatch.schemas.booking_schema import PaymentChoice
from shootmatch.schemas.party_schema import Client, TransactionKind, WalletTransaction

logger = logging.getLogger(__name__)


class WalletOutcome(str, Enum):
    """Payment path for a pre-paid booking."""

    DEBIT_NOW = "debit_now"
    AWAIT_PAYMENT = "await_payment"
    PAY_LATER = "pay_later"


@dataclass(frozen=True)
class WalletQuote:
    """What a booking would do to a balance, before anything is debited."""

    balance: float
    amount_due: float
    projected_balance: float
    sufficient: bool
    can_pay_later: bool
    deficit: float


class WalletLedger:
    """Debits and credits pre-paid balances held in the store."""

    def __init__(self, store, negative_balance_limit: Optional[float] = None) -> None:
        self.store = store
        self.negative_balance_limit = (
            settings.pricing.negative_balance_limit
            if negative_balance_limit is None
            else negative_balance_limit
        )
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, client_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(client_id, threading.Lock())

    def quote(self, client: Client, amount_due: float) -> WalletQuote:
        projected = round(client.balance - amount_due, 2)
        return WalletQuote(
            balance=client.balance,
            amount_due=amount_due,
            projected_balance=projected,
            sufficient=client.balance >= amount_due,
            can_pay_later=projected >= -self.negative_balance_limit,
            deficit=round(max(0.0, amount_due - client.balance), 2),
        )

    def decide(
        self,
        client: Client,
        amount_due: float,
        choice: Optional[PaymentChoice] = None,
    ) -> WalletOutcome:
        """
        Pick the payment path for a pre-paid booking.

        Raises:
            ConflictError: balance is short and the caller made no choice.
            WalletLimitError: pay-later would cross the negative floor.
        """
        quote = self.quote(client, amount_due)
        if quote.sufficient:
            return WalletOutcome.DEBIT_NOW
        if choice is None:
            raise ConflictError(
                f"Balance {client.balance:.2f} does not cover {amount_due:.2f}; "
                "choose pay now or pay later",
                code="PAYMENT_CHOICE_REQUIRED",
                details={"deficit": quote.deficit, "can_pay_later": quote.can_pay_later},
            )
        if choice == PaymentChoice.PAY_NOW:
            return WalletOutcome.AWAIT_PAYMENT
        if not quote.can_pay_later:
            raise WalletLimitError(client.id, quote.projected_balance, self.negative_balance_limit)
        return WalletOutcome.PAY_LATER

    def _load(self, client_id: str) -> Client:
        client = self.store.get_client(client_id)
        if not client.is_prepaid:
            raise ValidationError(
                f"Client {client_id} is not pre-paid; wallet operations do not apply",
                code="NOT_PREPAID",
            )
        return client

    def _post(
        self,
        client: Client,
        kind: TransactionKind,
        amount: float,
        description: str,
        actor: str,
        booking_id: Optional[str],
    ) -> WalletTransaction:
        signed = amount if kind == TransactionKind.CREDIT else -amount
        client.balance = round(client.balance + signed, 2)
        self.store.save_client(client)
        txn = WalletTransaction(
            client_id=client.id,
            kind=kind,
            amount=amount,
            description=description,
            actor=actor,
            balance_after=client.balance,
            booking_id=booking_id,
        )
        self.store.add_wallet_transaction(txn)
        logger.info(
            "Wallet %s %.2f for client %s (%s); balance now %.2f",
            kind.value.lower(), amount, client.id, description, client.balance,
        )
        return txn

    def debit(
        self,
        client_id: str,
        amount: float,
        description: str,
        actor: str,
        booking_id: Optional[str] = None,
    ) -> WalletTransaction:
        if amount < 0:
            raise ValidationError(f"Debit amount must be >= 0, got {amount}", code="BAD_AMOUNT")
        with self._lock_for(client_id):
            client = self._load(client_id)
            projected = round(client.balance - amount, 2)
            if projected < -self.negative_balance_limit:
                raise WalletLimitError(client_id, projected, self.negative_balance_limit)
            return self._post(client, TransactionKind.DEBIT, amount, description, actor, booking_id)

    def credit(
        self,
        client_id: str,
        amount: float,
        description: str,
        actor: str,
        booking_id: Optional[str] = None,
    ) -> WalletTransaction:
        if amount < 0:
            raise ValidationError(f"Credit amount must be >= 0, got {amount}", code="BAD_AMOUNT")
        with self._lock_for(client_id):
            client = self._load(client_id)
            return self._post(client, TransactionKind.CREDIT, amount, description, actor, booking_id)

    def apply_delta(
        self,
        client_id: str,
        delta: float,
        description: str,
        actor: str,
        booking_id: Optional[str] = None,
    ) -> Optional[WalletTransaction]:
        """Debit a positive price difference or refund a negative one."""
        delta = round(delta, 2)
        if delta > 0:
            return self.debit(client_id, delta, description, actor, booking_id)
        if delta < 0:
            return self.credit(client_id, -delta, description, actor, booking_id)
        return None
