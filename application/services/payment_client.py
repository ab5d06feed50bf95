"""
Application facade exposing the payment platform as business operations.

The client owns an immutable Session and an injected PaymentGateway. It
assembles request payloads and maps gateway answers onto resource DTOs;
errors from the gateway propagate unmodified. No retries, no local state
beyond the session.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, TypeVar

from pydantic import ValidationError as ModelValidationError

from application.dtos.payments import (
    Charge,
    Coupon,
    Customer,
    Plan,
    Refund,
    RefundReason,
    RemoteResource,
    Session,
    Subscription,
)
from application.ports.payment_gateway import PaymentGateway
from domain.common.exceptions import ConfigurationError, RemoteServiceError, ValidationError


ModelT = TypeVar("ModelT", Customer, Plan, Coupon, Subscription, Charge, Refund)

CONNECTED_ACCOUNT_OPTION = "stripe_account"


def _require_id(value: Optional[str], field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} must be a non-empty string", field=field)
    return value


def _require_amount(value: Any, field: str = "amount") -> int:
    # bool is an int subclass; floats are rejected to keep amounts exact
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer in the smallest currency unit", field=field)
    if value < 0:
        raise ValidationError(f"{field} must not be negative", field=field, details={field: value})
    return value


def _require_currency(value: Any) -> str:
    if not isinstance(value, str) or len(value) != 3 or not value.isalpha():
        raise ValidationError("currency must be ISO-4217 alpha-3", field="currency")
    return value


def _application_fee(value: Any) -> Optional[int]:
    """Fee in minor units, truncated toward zero; None when not positive."""
    if value is None:
        return None
    try:
        fee = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("application_fee must be numeric", field="application_fee") from exc
    return fee if fee > 0 else None


def _routing_options(connected_account_id: Optional[str]) -> dict[str, str]:
    if connected_account_id:
        return {CONNECTED_ACCOUNT_OPTION: connected_account_id}
    return {}


class PaymentClient:
    def __init__(self, api_key: str, *, gateway: PaymentGateway) -> None:
        if not isinstance(api_key, str) or not api_key.strip():
            raise ConfigurationError()
        self._session = Session(api_key=api_key)
        self.gateway = gateway

    @property
    def session(self) -> Session:
        return self._session

    def __repr__(self) -> str:
        return f"PaymentClient(provider={self.gateway.provider!r})"

    # Retrieval

    def retrieve_coupon(self, coupon_id: str) -> Coupon:
        return self._retrieve(Coupon, RemoteResource.COUPON, _require_id(coupon_id, "coupon_id"))

    def retrieve_plan(self, plan_id: str) -> Plan:
        return self._retrieve(Plan, RemoteResource.PLAN, _require_id(plan_id, "plan_id"))

    def retrieve_customer(self, customer_id: str) -> Customer:
        return self._retrieve(Customer, RemoteResource.CUSTOMER, _require_id(customer_id, "customer_id"))

    def retrieve_charge(self, charge_id: str) -> Charge:
        return self._retrieve(Charge, RemoteResource.CHARGE, _require_id(charge_id, "charge_id"))

    # Subscriptions

    def subscribe_customer_to_plan(
        self,
        plan_id: str,
        payment_token: str,
        customer_email: str,
        coupon_id: Optional[str] = None,
    ) -> Customer:
        """Create a customer from a payment token, then subscribe it to a plan.

        The two remote writes are not atomic: when the subscription is
        rejected the customer created in the first step stays on the remote
        platform and the subscription error is raised as is.
        """
        _require_id(plan_id, "plan_id")
        customer = self.create_customer(payment_token, customer_email)

        data: dict[str, Any] = {"customer": customer.id, "plan": plan_id}
        if coupon_id:
            data["coupon"] = coupon_id
        self.gateway.create(self._session, RemoteResource.SUBSCRIPTION, data)
        return customer

    def subscribe_existing_customer_to_plan(
        self,
        customer_id: str,
        plan_id: str,
        extra_parameters: Optional[Mapping[str, Any]] = None,
    ) -> Subscription:
        data: dict[str, Any] = dict(extra_parameters or {})
        # customer/plan always override colliding extra parameters
        data.update(
            customer=_require_id(customer_id, "customer_id"),
            plan=_require_id(plan_id, "plan_id"),
        )
        raw = self.gateway.create(self._session, RemoteResource.SUBSCRIPTION, data)
        return self._map(Subscription, raw)

    # Customers and charges

    def create_customer(self, payment_token: str, email: Optional[str] = None) -> Customer:
        data: dict[str, Any] = {"source": _require_id(payment_token, "payment_token")}
        if email is not None:
            data["email"] = email
        raw = self.gateway.create(self._session, RemoteResource.CUSTOMER, data)
        return self._map(Customer, raw)

    def create_charge(
        self,
        amount: int,
        currency: str,
        payment_token: str,
        connected_account_id: Optional[str] = None,
        application_fee: Optional[int] = None,
        description: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Charge:
        data = self._charge_payload(amount, currency, application_fee, description, metadata)
        data["source"] = _require_id(payment_token, "payment_token")
        raw = self.gateway.create(
            self._session, RemoteResource.CHARGE, data, _routing_options(connected_account_id)
        )
        return self._map(Charge, raw)

    def charge_customer(
        self,
        amount: int,
        currency: str,
        customer_id: str,
        connected_account_id: Optional[str] = None,
        application_fee: Optional[int] = None,
        description: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Charge:
        """Charge the default payment source stored on an existing customer."""
        data = self._charge_payload(amount, currency, application_fee, description, metadata)
        data["customer"] = _require_id(customer_id, "customer_id")
        raw = self.gateway.create(
            self._session, RemoteResource.CHARGE, data, _routing_options(connected_account_id)
        )
        return self._map(Charge, raw)

    # Refunds

    def refund_charge(
        self,
        charge_id: str,
        amount: Optional[int] = None,
        metadata: Optional[Mapping[str, str]] = None,
        reason: str = RefundReason.REQUESTED_BY_CUSTOMER.value,
        refund_application_fee: bool = True,
        reverse_transfer: bool = False,
        connected_account_id: Optional[str] = None,
    ) -> Refund:
        """Refund a charge, fully unless ``amount`` is given.

        ``reason`` is forwarded without checking it against RefundReason;
        the remote service decides whether it is acceptable.
        """
        data: dict[str, Any] = {
            "charge": _require_id(charge_id, "charge_id"),
            "reason": reason.value if isinstance(reason, RefundReason) else reason,
            "refund_application_fee": bool(refund_application_fee),
            "reverse_transfer": bool(reverse_transfer),
        }
        if metadata is not None:
            data["metadata"] = dict(metadata)
        if amount is not None:
            data["amount"] = _require_amount(amount)
        raw = self.gateway.create(
            self._session, RemoteResource.REFUND, data, _routing_options(connected_account_id)
        )
        return self._map(Refund, raw)

    # Helpers

    @staticmethod
    def _charge_payload(
        amount: int,
        currency: str,
        application_fee: Any,
        description: Optional[str],
        metadata: Optional[Mapping[str, str]],
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "amount": _require_amount(amount),
            "currency": _require_currency(currency),
        }
        if description is not None:
            data["description"] = description
        if metadata is not None:
            data["metadata"] = dict(metadata)
        fee = _application_fee(application_fee)
        if fee is not None:
            data["application_fee"] = fee
        return data

    def _retrieve(self, model: type[ModelT], resource: RemoteResource, resource_id: str) -> ModelT:
        raw = self.gateway.retrieve(self._session, resource, resource_id)
        return self._map(model, raw)

    def _map(self, model: type[ModelT], raw: Mapping[str, Any]) -> ModelT:
        try:
            return model.model_validate(dict(raw))
        except ModelValidationError as exc:
            raise RemoteServiceError(
                f"Unexpected {model.__name__} payload from payment provider",
                provider=self.gateway.provider,
                details={"errors": exc.errors(include_url=False)},
            ) from exc
