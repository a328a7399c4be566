"""
Application service exposing the gateway to the host order system.

This class depends only on the application ports, DTOs and domain records.
The gateway client and repositories are provided by infrastructure and must
be injected from the composition root, keeping dependencies one-way.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Iterable, Optional

from application.dtos.payments import CardDetails
from application.ports.payment_gateway import GatewayClient
from application.services.payment_method_service import PaymentMethodService
from application.services.profile_resolver import ProfileResolver
from application.services.response_classifier import Outcome, classify
from application.services.transaction_service import TransactionService
from core.logging_config import get_logger
from domain.common.clock import Clock, SystemClock
from domain.common.exceptions import BusinessException
from domain.payment.entity import Payment, PaymentMethod
from domain.payment.money import Money
from domain.payment.repository import CustomerRepository, PaymentMethodRepository, PaymentRepository


logger = get_logger(__name__)


class PaymentGatewayService:
    """Implements Authorizable, Capturable, Voidable, Refundable and StoredMethodCapable."""

    def __init__(
        self,
        client: GatewayClient,
        *,
        payments: PaymentRepository,
        payment_methods: PaymentMethodRepository,
        customers: CustomerRepository,
        provider_key: str,
        supported_card_types: Iterable[str],
        default_capture: bool = False,
        serialize_profile_creation: bool = True,
        clock: Optional[Clock] = None,
    ) -> None:
        self.client = client
        self.default_capture = default_capture
        clock = clock or SystemClock()
        self.resolver = ProfileResolver(
            client,
            customers,
            provider_key=provider_key,
            clock=clock,
            serialize=serialize_profile_creation,
        )
        self.transactions = TransactionService(
            client,
            payments,
            payment_methods,
            provider_key=provider_key,
            clock=clock,
        )
        self.payment_methods = PaymentMethodService(
            client,
            self.resolver,
            payment_methods,
            provider_key=provider_key,
            supported_card_types=supported_card_types,
            clock=clock,
        )

    async def create_payment(self, payment: Payment, capture: Optional[bool] = None) -> Payment:
        """Authorize using the configured default transaction type unless told otherwise."""
        return await self.authorize(payment, self.default_capture if capture is None else capture)

    async def authorize(self, payment: Payment, capture: bool = True) -> Payment:
        async with self._observe("authorize", payment_id=payment.id, capture=capture):
            return await self.transactions.authorize(payment, capture)

    async def capture(self, payment: Payment, amount: Optional[Money] = None) -> Payment:
        async with self._observe("capture", payment_id=payment.id, amount=str(amount) if amount else None):
            return await self.transactions.capture(payment, amount)

    async def void(self, payment: Payment) -> Payment:
        async with self._observe("void", payment_id=payment.id):
            return await self.transactions.void(payment)

    async def refund(self, payment: Payment, amount: Optional[Money] = None) -> Payment:
        async with self._observe("refund", payment_id=payment.id, amount=str(amount) if amount else None):
            return await self.transactions.refund(payment, amount)

    async def create_payment_method(self, method: PaymentMethod, card: CardDetails) -> str:
        async with self._observe("create_payment_method", customer_id=method.owner.id, last4=card.last4):
            return await self.payment_methods.create(method, card)

    async def delete_payment_method(self, method: PaymentMethod) -> None:
        async with self._observe("delete_payment_method", payment_method_id=method.id):
            await self.payment_methods.delete(method)

    @asynccontextmanager
    async def _observe(self, operation: str, **context):
        logger.info("payment_operation_request", operation=operation, provider=self.client.provider, **context)
        try:
            yield
        except BusinessException as exc:
            logger.warning("payment_operation_failed", operation=operation, **context, **exc.to_dict())
            raise

    async def verify_credentials(self) -> list[str]:
        """Run an authentication test; returns "<code>: <text>" problems, empty when valid."""
        response = await self.client.authenticate_test()
        if classify(response) is Outcome.SUCCESS:
            return []
        problems = [f"{message.code}: {message.text}" for message in response.messages]
        logger.warning("gateway_credentials_rejected", provider=self.client.provider, problems=problems)
        return problems

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.client, "aclose", None)
        if callable(close):
            await close()
