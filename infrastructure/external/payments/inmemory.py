"""In-memory implementation of PaymentGateway.

Single-process only. Useful for local dev and tests: plans and coupons are
seeded with ``add``, every create call is recorded in ``calls``, and the
platform rules the facade depends on (missing resources, declined tokens,
refundable balance) are enforced.
"""
from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from application.dtos.payments import RemoteResource, Session
from domain.common.exceptions import (
    AlreadyRefundedError,
    NotFoundError,
    PaymentDeclinedError,
    RemoteServiceError,
    ValidationError,
)
from infrastructure.external.payments.base import BasePaymentGateway


DECLINED_TOKENS = frozenset({"tok_chargeDeclined", "tok_chargeDeclinedInsufficientFunds"})

_ID_PREFIX = {
    RemoteResource.CUSTOMER: "cus",
    RemoteResource.PLAN: "plan",
    RemoteResource.COUPON: "coupon",
    RemoteResource.SUBSCRIPTION: "sub",
    RemoteResource.CHARGE: "ch",
    RemoteResource.REFUND: "re",
}


@dataclass(frozen=True)
class RecordedCall:
    resource: RemoteResource
    payload: dict[str, Any]
    options: dict[str, str] = field(default_factory=dict)


class InMemoryPaymentGateway(BasePaymentGateway):
    provider = "memory"

    def __init__(self, *, api_key: Optional[str] = None) -> None:
        super().__init__()
        self._api_key = api_key
        self._objects: dict[RemoteResource, dict[str, dict[str, Any]]] = {r: {} for r in RemoteResource}
        self._lock = threading.Lock()
        self.calls: list[RecordedCall] = []
        # resource -> message; the next create of that resource raises RemoteServiceError
        self.fail_next: dict[RemoteResource, str] = {}

    def add(self, resource: RemoteResource, obj: Mapping[str, Any]) -> dict[str, Any]:
        """Seed a remote object (e.g. a plan or coupon)."""
        stored = dict(obj)
        stored.setdefault("id", self._new_id(resource))
        stored.setdefault("object", resource.value)
        with self._lock:
            self._objects[resource][stored["id"]] = stored
        return copy.deepcopy(stored)

    def objects(self, resource: RemoteResource) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._objects[resource].values()]

    def retrieve(self, session: Session, resource: RemoteResource, resource_id: str) -> dict[str, Any]:  # type: ignore[override]
        self._authenticate(session)
        with self._lock:
            return copy.deepcopy(self._get(resource, resource_id))

    def create(  # type: ignore[override]
        self,
        session: Session,
        resource: RemoteResource,
        payload: Mapping[str, Any],
        options: Optional[Mapping[str, str]] = None,
    ) -> dict[str, Any]:
        self._authenticate(session)
        data = copy.deepcopy(dict(payload))
        opts = dict(options or {})
        with self._lock:
            self.calls.append(RecordedCall(resource=resource, payload=copy.deepcopy(data), options=opts))
            message = self.fail_next.pop(resource, None)
            if message is not None:
                raise RemoteServiceError(message, provider=self.provider, provider_code="simulated_failure")
            builder = getattr(self, f"_create_{resource.value}")
            obj = builder(data)
            obj["id"] = self._new_id(resource)
            obj["object"] = resource.value
            if opts.get("stripe_account"):
                obj["account"] = opts["stripe_account"]
            self._objects[resource][obj["id"]] = obj
            result = copy.deepcopy(obj)
        self._log("payment_gateway_response", action="create", resource=resource.value, resource_id=result["id"])
        return result

    # Builders (called with the lock held)

    def _create_customer(self, data: dict[str, Any]) -> dict[str, Any]:
        source = data.pop("source", None)
        if source is not None:
            self._check_token(source)
        return {**data, "default_source": source, "metadata": data.get("metadata") or {}}

    def _create_subscription(self, data: dict[str, Any]) -> dict[str, Any]:
        self._get(RemoteResource.CUSTOMER, data.get("customer"), param="customer")
        plan = self._get(RemoteResource.PLAN, data.get("plan"), param="plan")
        if data.get("coupon"):
            self._get(RemoteResource.COUPON, data["coupon"], param="coupon")
        return {**data, "plan": copy.deepcopy(plan), "status": "active"}

    def _create_charge(self, data: dict[str, Any]) -> dict[str, Any]:
        if "source" in data:
            self._check_token(data["source"])
        elif "customer" in data:
            self._get(RemoteResource.CUSTOMER, data["customer"], param="customer")
        fee = data.pop("application_fee", None)
        if fee is not None and fee > data["amount"]:
            raise ValidationError("Application fee exceeds charge amount", field="application_fee")
        return {
            **data,
            "application_fee_amount": fee,
            "metadata": data.get("metadata") or {},
            "amount_refunded": 0,
            "refunded": False,
            "status": "succeeded",
        }

    def _create_refund(self, data: dict[str, Any]) -> dict[str, Any]:
        charge = self._get(RemoteResource.CHARGE, data.get("charge"), param="charge")
        remaining = charge["amount"] - charge["amount_refunded"]
        if remaining <= 0:
            raise AlreadyRefundedError(charge["id"])
        amount = data.get("amount", remaining)
        if amount > remaining:
            raise ValidationError(
                f"Refund amount ({amount}) is greater than unrefunded amount on charge ({remaining})",
                field="amount",
            )
        charge["amount_refunded"] += amount
        charge["refunded"] = charge["amount_refunded"] >= charge["amount"]
        return {
            **data,
            "amount": amount,
            "currency": charge["currency"],
            "metadata": data.get("metadata") or {},
            "status": "succeeded",
        }

    # Helpers

    def _authenticate(self, session: Session) -> None:
        if self._api_key is not None and session.secret() != self._api_key:
            raise RemoteServiceError(
                "Invalid API Key provided",
                provider=self.provider,
                provider_code="authentication_error",
                http_status=401,
            )

    def _get(self, resource: RemoteResource, resource_id: Optional[str], *, param: Optional[str] = None) -> dict[str, Any]:
        obj = self._objects[resource].get(resource_id or "")
        if obj is None:
            raise NotFoundError(param or resource.value, resource_id, provider_code="resource_missing")
        return obj

    def _check_token(self, token: str) -> None:
        if token in DECLINED_TOKENS:
            raise PaymentDeclinedError("Your card was declined.", provider_code="card_declined", decline_code="generic_decline")

    @staticmethod
    def _new_id(resource: RemoteResource) -> str:
        return f"{_ID_PREFIX[resource]}_{uuid.uuid4().hex[:14]}"
