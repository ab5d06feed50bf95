"""Pytest bootstrap configuration.

Provide an in-memory payment platform and a client bound to it, so tests
never reach the network.
"""
import os

import pytest

# Keep settings deterministic regardless of the developer's .env
os.environ.setdefault("PAYMENT__DEFAULT_PROVIDER", "memory")

from application.dtos.payments import RemoteResource
from application.services.payment_client import PaymentClient
from infrastructure.external.payments.inmemory import InMemoryPaymentGateway


TEST_API_KEY = "sk_test_123"


@pytest.fixture
def gateway() -> InMemoryPaymentGateway:
    gw = InMemoryPaymentGateway(api_key=TEST_API_KEY)
    gw.add(RemoteResource.PLAN, {"id": "plan_A", "amount": 999, "currency": "usd", "interval": "month"})
    gw.add(RemoteResource.COUPON, {"id": "COUP1", "percent_off": 25.0, "duration": "once", "valid": True})
    return gw


@pytest.fixture
def client(gateway: InMemoryPaymentGateway) -> PaymentClient:
    return PaymentClient(TEST_API_KEY, gateway=gateway)
