"""
Provider-agnostic payment contract.

Routers only talk to a PaymentProvider; each gateway (ADWA, Razorpay, ...)
translates its own wire format into the normalized results below.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import hashlib
import hmac
import time

SUCCESS_STATUS = "T"

CARD_MEAN_CODES = {"VISA", "MASTERCARD"}


@dataclass
class PaymentRequestPayload:
    mean_code: str
    amount: str
    currency: str
    order_number: Optional[str] = None
    payment_number: Optional[str] = None
    fees_amount: Optional[float] = None


@dataclass
class InitiatePaymentResult:
    success: bool
    footprint: Optional[str] = None  # reference used for status checks
    redirect_url: Optional[str] = None  # card rails only
    status: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentStatusResult:
    success: bool
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)


def build_order_number(order_id) -> str:
    return f"order_{order_id}_{int(time.time() * 1000)}"


def parse_order_number(order_number: str) -> str:
    """
    Extract the order id from an order_<id>_<millis> token.
    Anything that does not look like one is returned as is.
    """
    if order_number and order_number.startswith("order_"):
        body = order_number[len("order_"):]
        order_id, sep, millis = body.rpartition("_")
        if sep and order_id and millis.isdigit():
            return order_id
    return order_number


class PaymentProvider(ABC):
    id: str = ""

    @abstractmethod
    async def initiate_payment(self, payload: PaymentRequestPayload, order_id: str) -> InitiatePaymentResult:
        """Start a payment. Card rails return a redirect URL, mobile money a footprint."""

    @abstractmethod
    async def check_status(self, footprint: str, mean_code: str) -> PaymentStatusResult:
        """Ask the provider for the current state of a payment"""

    def requires_polling_after_initiate(self, mean_code: str) -> bool:
        return mean_code not in CARD_MEAN_CODES


def sign_payment(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 of "<order_id>|<payment_id>", hex encoded"""
    return hmac.new(
        secret.encode(),
        f"{order_id}|{payment_id}".encode(),
        hashlib.sha256
    ).hexdigest()


def verify_payment_signature(secret: str, order_id: str, payment_id: str, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_payment(secret, order_id, payment_id), signature)
