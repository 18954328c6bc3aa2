"""
Payment provider registry.

get_payment_provider() resolves an explicit id, then PAYMENT_PROVIDER,
then "adwa". Unknown ids fall back to the ADWA provider.
"""
from typing import Dict, Optional
import config
from .base import (
    PaymentProvider,
    PaymentRequestPayload,
    InitiatePaymentResult,
    PaymentStatusResult,
    SUCCESS_STATUS,
    build_order_number,
    parse_order_number,
    sign_payment,
    verify_payment_signature,
)
from .adwa import AdwaPaymentProvider
from .razorpay_provider import RazorpayPaymentProvider

DEFAULT_PROVIDER_ID = "adwa"

_default_provider: PaymentProvider = AdwaPaymentProvider()
_providers: Dict[str, PaymentProvider] = {
    _default_provider.id: _default_provider,
    "razorpay": RazorpayPaymentProvider(),
}


def get_payment_provider(provider_id: Optional[str] = None) -> PaymentProvider:
    resolved = provider_id or config.PAYMENT_PROVIDER or DEFAULT_PROVIDER_ID
    return _providers.get(resolved) or _providers.get(DEFAULT_PROVIDER_ID, _default_provider)


def is_registered_provider(provider_id: Optional[str]) -> bool:
    return bool(provider_id) and provider_id in _providers


def register_payment_provider(provider: PaymentProvider) -> PaymentProvider:
    """Add or replace a provider; returns the one it replaced, if any"""
    previous = _providers.get(provider.id)
    _providers[provider.id] = provider
    return previous


def unregister_payment_provider(provider_id: str):
    if provider_id == DEFAULT_PROVIDER_ID:
        _providers[DEFAULT_PROVIDER_ID] = _default_provider
    else:
        _providers.pop(provider_id, None)


__all__ = [
    "PaymentProvider",
    "PaymentRequestPayload",
    "InitiatePaymentResult",
    "PaymentStatusResult",
    "SUCCESS_STATUS",
    "AdwaPaymentProvider",
    "RazorpayPaymentProvider",
    "build_order_number",
    "parse_order_number",
    "sign_payment",
    "verify_payment_signature",
    "get_payment_provider",
    "is_registered_provider",
    "register_payment_provider",
    "unregister_payment_provider",
]
