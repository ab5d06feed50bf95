"""
Payment DTOs (Pydantic v2) used at application boundaries.

Resource views mirror remote platform objects. Unknown remote attributes are
kept (``extra="allow"``) so callers can still reach fields this module does
not name.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator, model_validator


class RemoteResource(str, Enum):
    CUSTOMER = "customer"
    PLAN = "plan"
    COUPON = "coupon"
    SUBSCRIPTION = "subscription"
    CHARGE = "charge"
    REFUND = "refund"


class RefundReason(str, Enum):
    REQUESTED_BY_CUSTOMER = "requested_by_customer"
    DUPLICATE = "duplicate"
    FRAUDULENT = "fraudulent"


class Session(BaseModel):
    """Authenticated session threaded through every gateway call."""

    api_key: SecretStr

    model_config = ConfigDict(frozen=True)

    def secret(self) -> str:
        return self.api_key.get_secret_value()


def _object_id(value: Any) -> Any:
    # Expanded remote references arrive as objects; keep only the id
    if isinstance(value, dict):
        return value.get("id")
    return value


class _RemoteObject(BaseModel):
    id: str

    model_config = ConfigDict(extra="allow")


class Customer(_RemoteObject):
    email: Optional[str] = None
    default_source: Optional[str] = None
    metadata: Optional[dict[str, str]] = None

    @field_validator("default_source", mode="before")
    @classmethod
    def _source_id(cls, v: Any) -> Any:
        return _object_id(v)


class Plan(_RemoteObject):
    amount: Optional[int] = None
    currency: Optional[str] = None
    interval: Optional[str] = None
    interval_count: Optional[int] = None
    nickname: Optional[str] = None


class Coupon(_RemoteObject):
    percent_off: Optional[float] = None
    amount_off: Optional[int] = None
    currency: Optional[str] = None
    duration: Optional[str] = None
    valid: Optional[bool] = None


class Subscription(_RemoteObject):
    customer: str
    plan: Optional[str] = None
    status: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_references(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["customer"] = _object_id(data.get("customer"))
        plan = _object_id(data.get("plan"))
        if plan is None:
            # Newer API versions only expose the plan through subscription items
            items = (data.get("items") or {}).get("data") or []
            if items:
                plan = _object_id(items[0].get("plan")) or _object_id(items[0].get("price"))
        data["plan"] = plan
        return data


class Charge(_RemoteObject):
    amount: int
    currency: str
    customer: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[dict[str, str]] = None
    application_fee_amount: Optional[int] = None
    amount_refunded: int = 0
    refunded: bool = False
    status: Optional[str] = None

    @field_validator("customer", mode="before")
    @classmethod
    def _customer_id(cls, v: Any) -> Any:
        return _object_id(v)


class Refund(_RemoteObject):
    charge: str
    amount: int
    currency: Optional[str] = None
    reason: Optional[str] = None
    status: Optional[str] = None
    metadata: Optional[dict[str, str]] = None

    @field_validator("charge", mode="before")
    @classmethod
    def _charge_id(cls, v: Any) -> Any:
        return _object_id(v)
