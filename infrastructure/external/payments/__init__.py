"""
Factory for payment gateways and the payment client (composition root).
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_client import PaymentClient
from domain.common.exceptions import ConfigurationError


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = (provider or payment_settings.default_provider).lower()
    if name == "stripe":
        from .stripe_client import StripeGateway
        return StripeGateway()
    if name in {"memory", "inmemory"}:
        from .inmemory import InMemoryPaymentGateway
        return InMemoryPaymentGateway()
    raise ValueError(f"Unsupported payment provider: {name}")


def get_payment_client(api_key: Optional[str] = None, *, provider: Optional[str] = None) -> PaymentClient:
    """Build a PaymentClient, reading the secret from settings when not given."""
    if api_key is None:
        secret = payment_settings.stripe.secret_key
        api_key = secret.get_secret_value() if secret is not None else ""
    if not api_key or not api_key.strip():
        raise ConfigurationError("STRIPE__SECRET_KEY not configured")
    return PaymentClient(api_key, gateway=get_payment_gateway(provider))


__all__ = ["get_payment_gateway", "get_payment_client", "PaymentClient", "PaymentGateway"]
