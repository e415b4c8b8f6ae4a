from shootmatch.tools.payments import MockPaymentGateway, PaymentGateway
from shootmatch.tools.store import BookingStore, InMemoryStore

__all__ = ["BookingStore", "InMemoryStore", "MockPaymentGateway", "PaymentGateway"]
