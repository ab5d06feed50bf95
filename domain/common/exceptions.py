"""领域层业务异常定义，供应用层与基础设施使用。

Payment errors form a flat taxonomy under PaymentError so callers can catch
the whole family or a single failure kind. Gateway adapters translate
provider SDK errors into these types; nothing above the gateway sees SDK
exception classes.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
        format_params: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        self.format_params = format_params
        super().__init__(self.message)


class PaymentError(BusinessException):
    """Base class for every failure surfaced by the payment facade."""


class ConfigurationError(PaymentError):
    def __init__(self, message: str = "Payment API secret is not configured", *, field: str | None = "api_key"):
        super().__init__(
            code=PaymentCode.CONFIGURATION_ERROR,
            message=message,
            error_type="ConfigurationError",
            field=field,
            message_key="payment.configuration.invalid",
        )


class ValidationError(PaymentError):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        provider_code: str | None = None,
    ):
        full_details = dict(details or {})
        if provider_code:
            full_details["provider_code"] = provider_code
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=full_details or None,
            field=field,
            message_key="validation.payment",
        )


class NotFoundError(PaymentError):
    def __init__(
        self,
        resource: str,
        resource_id: Optional[str] = None,
        *,
        message: Optional[str] = None,
        provider_code: str | None = None,
    ):
        details = {"resource": resource}
        if resource_id is not None:
            details["resource_id"] = resource_id
        if provider_code:
            details["provider_code"] = provider_code
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            code=PaymentCode.RESOURCE_NOT_FOUND,
            message=message or f"No such {resource}: {resource_id}",
            error_type="NotFoundError",
            details=details,
            message_key="payment.resource.not_found",
        )


class PaymentDeclinedError(PaymentError):
    def __init__(
        self,
        message: str = "Payment instrument was declined",
        *,
        provider_code: str | None = None,
        decline_code: str | None = None,
    ):
        self.decline_code = decline_code
        super().__init__(
            code=PaymentCode.PAYMENT_DECLINED,
            message=message,
            error_type="PaymentDeclinedError",
            details={"provider_code": provider_code, "decline_code": decline_code},
            message_key="payment.declined",
        )


class AlreadyRefundedError(PaymentError):
    def __init__(self, charge_id: Optional[str] = None, *, message: Optional[str] = None):
        self.charge_id = charge_id
        super().__init__(
            code=PaymentCode.ALREADY_REFUNDED,
            message=message or f"Charge {charge_id} has already been refunded",
            error_type="AlreadyRefundedError",
            details={"charge_id": charge_id} if charge_id else None,
            message_key="payment.refund.already_refunded",
        )


class RemoteServiceError(PaymentError):
    """Transport, authentication or any other remote failure.

    ``message`` and ``provider_code`` are kept verbatim from the remote
    service for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        http_status: int | None = None,
        details: Optional[dict] = None,
    ):
        self.provider = provider
        self.provider_code = provider_code
        self.http_status = http_status
        full_details = {"provider": provider, "provider_code": provider_code, "http_status": http_status}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="RemoteServiceError",
            details=full_details,
        )
