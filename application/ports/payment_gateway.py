"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from application.dtos.payments import RemoteResource, Session


@runtime_checkable
class PaymentGateway(Protocol):
    """Remote service gateway for a third-party payment platform.

    Each call is one authenticated round trip made with the given session.
    ``options`` carries request routing (e.g. ``stripe_account``) and is
    never merged into ``payload``. Implementations raise the PaymentError
    family from ``domain.common.exceptions``.
    """

    provider: str

    def retrieve(self, session: Session, resource: RemoteResource, resource_id: str) -> dict[str, Any]: ...

    def create(
        self,
        session: Session,
        resource: RemoteResource,
        payload: Mapping[str, Any],
        options: Optional[Mapping[str, str]] = None,
    ) -> dict[str, Any]: ...
