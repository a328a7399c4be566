"""
Payment gateway ports (application/ports) exposing replaceable protocols.

Application depends on these Protocols; infrastructure implements adapters.
`GatewayClient` is the remote side; the capability protocols describe what a
gateway offers to the host order system.
"""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    CardDetails,
    CustomerProfile,
    GatewayResponse,
    PaymentProfile,
    TransactionRequest,
)
from domain.payment.entity import Payment, PaymentMethod
from domain.payment.money import Money


@runtime_checkable
class GatewayClient(Protocol):
    """Remote operations of the gateway.

    Implementations return a normalized response for every gateway-reported
    outcome and raise InfrastructureError only for transport failures.
    """

    provider: str

    async def authenticate_test(self) -> GatewayResponse: ...

    async def create_customer_profile(self, profile: CustomerProfile) -> GatewayResponse: ...

    async def create_customer_payment_profile(
        self, customer_profile_id: str, payment_profile: PaymentProfile
    ) -> GatewayResponse: ...

    async def create_transaction(self, request: TransactionRequest) -> GatewayResponse: ...

    async def delete_customer_payment_profile(
        self, customer_profile_id: str, payment_profile_id: str
    ) -> GatewayResponse: ...


@runtime_checkable
class Authorizable(Protocol):
    async def authorize(self, payment: Payment, capture: bool = True) -> Payment: ...


@runtime_checkable
class Capturable(Protocol):
    async def capture(self, payment: Payment, amount: Optional[Money] = None) -> Payment: ...


@runtime_checkable
class Voidable(Protocol):
    async def void(self, payment: Payment) -> Payment: ...


@runtime_checkable
class Refundable(Protocol):
    async def refund(self, payment: Payment, amount: Optional[Money] = None) -> Payment: ...


@runtime_checkable
class StoredMethodCapable(Protocol):
    async def create_payment_method(self, method: PaymentMethod, card: CardDetails) -> str: ...

    async def delete_payment_method(self, method: PaymentMethod) -> None: ...
