"""
Base payment gateway implementing shared concerns: http timeouts, logging.

Concrete providers should subclass and implement retrieve/create.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx

from core.logging_config import get_logger
from application.dtos.payments import RemoteResource, Session
from application.ports.payment_gateway import PaymentGateway
from domain.common.exceptions import PaymentError


logger = get_logger(__name__)


class BasePaymentGateway(PaymentGateway):
    provider: str = "base"

    def __init__(self, *, timeouts: Optional[dict[str, float]] = None) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    def close(self) -> None:
        """Release transport resources, if any."""

    # Default implementations raise to force override where needed
    def retrieve(self, session: Session, resource: RemoteResource, resource_id: str) -> dict[str, Any]:  # type: ignore[override]
        raise NotImplementedError

    def create(  # type: ignore[override]
        self,
        session: Session,
        resource: RemoteResource,
        payload: Mapping[str, Any],
        options: Optional[Mapping[str, str]] = None,
    ) -> dict[str, Any]:
        raise NotImplementedError

    # Helpers
    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )

    def _log_error(self, exc: PaymentError, **kwargs) -> None:
        logger.warning(
            "payment_gateway_error",
            provider=self.provider,
            error_type=exc.error_type,
            error_code=int(exc.code),
            error_message=exc.message,
            **kwargs,
        )
