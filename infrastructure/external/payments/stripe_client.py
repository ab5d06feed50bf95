"""
Stripe adapter using the official stripe-python SDK.

Notes on SDK usage:
- A `stripe.StripeClient` is built per call from the caller's Session, so the
  process-wide `stripe.api_key` is never touched and clients holding
  different secrets can run concurrently.
- All clients share one `stripe.HTTPXClient` transport (created lazily) with
  the configured timeouts. SDK-level network retries are disabled.
- Connected-account routing travels as the `stripe_account` request option
  (the `Stripe-Account` header), never as a body parameter.
"""
from __future__ import annotations

import re
import threading
from typing import Any, Mapping, Optional

import stripe

from application.dtos.payments import RemoteResource, Session
from domain.common.exceptions import (
    AlreadyRefundedError,
    NotFoundError,
    PaymentDeclinedError,
    PaymentError,
    RemoteServiceError,
    ValidationError,
)
from infrastructure.external.payments.base import BasePaymentGateway
from core.settings import payment_settings


_SERVICES = {
    RemoteResource.CUSTOMER: "customers",
    RemoteResource.PLAN: "plans",
    RemoteResource.COUPON: "coupons",
    RemoteResource.SUBSCRIPTION: "subscriptions",
    RemoteResource.CHARGE: "charges",
    RemoteResource.REFUND: "refunds",
}


def _to_dict(obj: Any) -> dict[str, Any]:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


def _param_resource(param: Optional[str]) -> Optional[str]:
    # "items[0][plan]" -> "plan"
    if not param:
        return None
    parts = re.findall(r"\w+", param)
    return parts[-1] if parts else None


class StripeGateway(BasePaymentGateway):
    provider = "stripe"

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        api_version: Optional[str] = None,
        http_client: Any = None,
    ) -> None:
        super().__init__(timeouts=timeouts or payment_settings.timeouts.model_dump())
        self._api_version = api_version or payment_settings.stripe.api_version
        self._http_client = http_client
        self._lock = threading.Lock()

    @property
    def http_client(self) -> Any:
        if self._http_client is None:
            with self._lock:
                if self._http_client is None:
                    self._http_client = stripe.HTTPXClient(timeout=self.timeouts, allow_sync_methods=True)
        return self._http_client

    def close(self) -> None:
        with self._lock:
            client, self._http_client = self._http_client, None
        close = getattr(client, "close", None)
        if callable(close):
            close()

    def _service(self, session: Session, resource: RemoteResource) -> Any:
        client = stripe.StripeClient(
            session.secret(),
            stripe_version=self._api_version,
            http_client=self.http_client,
            max_network_retries=0,
        )
        return getattr(client.v1, _SERVICES[resource])

    def retrieve(self, session: Session, resource: RemoteResource, resource_id: str) -> dict[str, Any]:  # type: ignore[override]
        self._log("payment_gateway_request", action="retrieve", resource=resource.value, resource_id=resource_id)
        try:
            obj = self._service(session, resource).retrieve(resource_id)
        except stripe.StripeError as exc:
            raise self._translate(exc, resource, resource_id, action="retrieve") from exc
        return _to_dict(obj)

    def create(  # type: ignore[override]
        self,
        session: Session,
        resource: RemoteResource,
        payload: Mapping[str, Any],
        options: Optional[Mapping[str, str]] = None,
    ) -> dict[str, Any]:
        params = self._to_wire(resource, payload)
        request_options = dict(options or {})
        self._log(
            "payment_gateway_request",
            action="create",
            resource=resource.value,
            connected_account=request_options.get("stripe_account"),
        )
        try:
            obj = self._service(session, resource).create(params=params, options=request_options)
        except stripe.StripeError as exc:
            subject = payload.get("charge") if resource is RemoteResource.REFUND else None
            raise self._translate(exc, resource, subject, action="create") from exc
        result = _to_dict(obj)
        self._log("payment_gateway_response", action="create", resource=resource.value, resource_id=result.get("id"))
        return result

    @staticmethod
    def _to_wire(resource: RemoteResource, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Translate facade payloads to the current Stripe API parameters."""
        params = dict(payload)
        if resource is RemoteResource.SUBSCRIPTION:
            plan = params.pop("plan", None)
            if plan is not None:
                params["items"] = [{"plan": plan}]
            coupon = params.pop("coupon", None)
            if coupon:
                params["discounts"] = [*params.get("discounts", []), {"coupon": coupon}]
        elif resource is RemoteResource.CHARGE and "application_fee" in params:
            params["application_fee_amount"] = params.pop("application_fee")
        return params

    def _translate(
        self,
        exc: stripe.StripeError,
        resource: RemoteResource,
        subject_id: Optional[str],
        *,
        action: str,
    ) -> PaymentError:
        message = exc.user_message or str(exc)
        code = exc.code
        param = getattr(exc, "param", None)

        error: PaymentError
        if isinstance(exc, stripe.CardError):
            decline_code = getattr(exc.error, "decline_code", None) if exc.error else None
            error = PaymentDeclinedError(message, provider_code=code, decline_code=decline_code)
        elif isinstance(exc, stripe.InvalidRequestError) and (code == "resource_missing" or exc.http_status == 404):
            missing = _param_resource(param)
            if action == "retrieve" or missing is None:
                error = NotFoundError(resource.value, subject_id, message=message, provider_code=code)
            else:
                error = NotFoundError(missing, None, message=message, provider_code=code)
        elif isinstance(exc, stripe.InvalidRequestError) and code == "charge_already_refunded":
            error = AlreadyRefundedError(subject_id, message=message)
        elif isinstance(exc, stripe.InvalidRequestError) and param in {"amount", "currency"}:
            error = ValidationError(message, field=param, provider_code=code)
        else:
            error = RemoteServiceError(
                message,
                provider=self.provider,
                provider_code=code,
                http_status=exc.http_status,
            )
        self._log_error(error, action=action, resource=resource.value, request_id=getattr(exc, "request_id", None))
        return error
