"""Pytest bootstrap configuration.

Provides a scripted gateway client, in-memory repositories and a fixed
clock so service tests never touch the network.
"""
import asyncio
import os

# Keep the gateway settings independent from any developer .env
os.environ.setdefault("AUTHNET__API_LOGIN", "test-login")
os.environ.setdefault("AUTHNET__TRANSACTION_KEY", "test-key")

from collections import defaultdict, deque
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from application.dtos.payments import (
    CardDetails,
    CustomerProfile,
    GatewayErrorItem,
    GatewayMessage,
    GatewayResponse,
    PaymentProfile,
    TransactionRequest,
)
from application.services.payment_service import PaymentGatewayService
from domain.payment.entity import (
    BillingAddress,
    Customer,
    OrderRef,
    Payment,
    PaymentMethod,
    PaymentState,
)
from domain.payment.money import Money
from infrastructure.repositories.payment_repository import (
    InMemoryCustomerRepository,
    InMemoryPaymentMethodRepository,
    InMemoryPaymentRepository,
)


PROVIDER_KEY = "authnet_authorizenet"
NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
VISA = "4111111111111111"


def ok(operation: str, **payload) -> GatewayResponse:
    return GatewayResponse(
        operation=operation,
        result_code="Ok",
        messages=[GatewayMessage(code="I00001", text="Successful.")],
        **payload,
    )


def error(operation: str, code: str, text: str, errors: Optional[list] = None, **payload) -> GatewayResponse:
    return GatewayResponse(
        operation=operation,
        result_code="Error",
        messages=[GatewayMessage(code=code, text=text)],
        errors=[GatewayErrorItem(code=c, text=t) for c, t in (errors or [])],
        **payload,
    )


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class ScriptedGatewayClient:
    """GatewayClient fake answering from per-operation queues and recording calls."""

    provider = "stub"

    def __init__(self) -> None:
        self.responses: dict[str, deque] = defaultdict(deque)
        self.calls: list[tuple[str, dict]] = []

    def queue(self, operation: str, *responses: GatewayResponse) -> None:
        self.responses[operation].extend(responses)

    async def _next(self, operation: str, **kwargs) -> GatewayResponse:
        # Yield like real network IO so concurrent callers interleave
        await asyncio.sleep(0)
        self.calls.append((operation, kwargs))
        if not self.responses[operation]:
            raise AssertionError(f"unexpected gateway call: {operation}")
        return self.responses[operation].popleft()

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def authenticate_test(self) -> GatewayResponse:
        return await self._next("authenticate_test")

    async def create_customer_profile(self, profile: CustomerProfile) -> GatewayResponse:
        return await self._next("create_customer_profile", profile=profile)

    async def create_customer_payment_profile(self, customer_profile_id: str, payment_profile: PaymentProfile) -> GatewayResponse:
        return await self._next(
            "create_customer_payment_profile",
            customer_profile_id=customer_profile_id,
            payment_profile=payment_profile,
        )

    async def create_transaction(self, request: TransactionRequest) -> GatewayResponse:
        return await self._next("create_transaction", request=request)

    async def delete_customer_payment_profile(self, customer_profile_id: str, payment_profile_id: str) -> GatewayResponse:
        return await self._next(
            "delete_customer_payment_profile",
            customer_profile_id=customer_profile_id,
            payment_profile_id=payment_profile_id,
        )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def gateway() -> ScriptedGatewayClient:
    return ScriptedGatewayClient()


@pytest.fixture
def payments() -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository()


@pytest.fixture
def payment_methods() -> InMemoryPaymentMethodRepository:
    return InMemoryPaymentMethodRepository()


@pytest.fixture
def customers() -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository()


@pytest.fixture
def service(gateway, payments, payment_methods, customers, clock) -> PaymentGatewayService:
    return PaymentGatewayService(
        gateway,
        payments=payments,
        payment_methods=payment_methods,
        customers=customers,
        provider_key=PROVIDER_KEY,
        supported_card_types=["amex", "dinersclub", "discover", "jcb", "mastercard", "visa"],
        clock=clock,
    )


@pytest.fixture
def customer() -> Customer:
    return Customer(id=7, email="buyer@example.com")


@pytest.fixture
def card() -> CardDetails:
    return CardDetails(number=VISA, exp_month=9, exp_year=2028, security_code="123")


def make_method(owner: Customer, *, remote_id: Optional[str] = "900100", expires_at: Optional[datetime] = None) -> PaymentMethod:
    return PaymentMethod(
        id=1,
        owner=owner,
        billing_address=BillingAddress(
            given_name="Ada",
            family_name="Lovelace",
            address_line1="12 Analytical Way",
            address_line2="Suite 3",
            locality="London",
            postal_code="N1 9GU",
            country_code="GB",
        ),
        remote_id=remote_id,
        card_type="visa",
        card_number="1111",
        card_exp_month=9,
        card_exp_year=2028,
        expires_at=expires_at or datetime(2028, 9, 30, 23, 59, 59, tzinfo=timezone.utc),
    )


def make_payment(
    method: Optional[PaymentMethod],
    *,
    state: PaymentState = PaymentState.NEW,
    amount: str = "100.00",
    refunded: str = "0",
    remote_id: Optional[str] = None,
) -> Payment:
    return Payment(
        id=11,
        order=OrderRef(order_id=5, order_number="ORD-5", ip_address="203.0.113.9"),
        amount=Money(Decimal(amount), "USD"),
        payment_method=method,
        state=state,
        refunded_amount=Money(Decimal(refunded), "USD"),
        remote_id=remote_id,
    )


@pytest.fixture
def stored_customer(customer) -> Customer:
    customer.set_remote_id(PROVIDER_KEY, "5550001")
    return customer


@pytest.fixture
def method(stored_customer) -> PaymentMethod:
    return make_method(stored_customer)
