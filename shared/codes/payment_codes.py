"""
Payment specific codes.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    CONFIGURATION_ERROR = 60001
    RESOURCE_NOT_FOUND = 60002
    PAYMENT_DECLINED = 60003
    ALREADY_REFUNDED = 60004
