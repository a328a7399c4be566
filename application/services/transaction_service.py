"""
Transaction orchestration: authorize, capture, void and refund.

Preconditions are checked against local state before any remote call. A
successful remote transaction is mapped back onto the Payment record and
persisted; every failure goes through the response classifier.
"""
from __future__ import annotations

from typing import Optional

from application.dtos.payments import (
    CreditCardData,
    GatewayResponse,
    ProfileReference,
    TransactionRequest,
    TransactionType,
)
from application.ports.payment_gateway import GatewayClient
from application.services.response_classifier import Outcome, classify, raise_for_outcome
from core.logging_config import get_logger
from domain.common.clock import Clock, SystemClock
from domain.payment.entity import Payment, PaymentState
from domain.payment.exceptions import (
    HardDeclineError,
    InfrastructureError,
    InvalidRequestError,
    PreconditionError,
)
from domain.payment.money import Money
from domain.payment.repository import PaymentMethodRepository, PaymentRepository


logger = get_logger(__name__)


class TransactionService:
    def __init__(
        self,
        client: GatewayClient,
        payments: PaymentRepository,
        payment_methods: PaymentMethodRepository,
        *,
        provider_key: str,
        clock: Optional[Clock] = None,
    ) -> None:
        self.client = client
        self.payments = payments
        self.payment_methods = payment_methods
        self.provider_key = provider_key
        self.clock = clock or SystemClock()

    async def authorize(self, payment: Payment, capture: bool = True) -> Payment:
        payment.ensure_state(PaymentState.NEW, message="The provided payment is in an invalid state.")
        method = payment.payment_method
        if method is None:
            raise PreconditionError("The provided payment has no payment method referenced.")
        now = self.clock.now()
        if method.is_expired(now):
            raise HardDeclineError("The provided payment method has expired")
        customer_id = method.owner.get_remote_id(self.provider_key)
        if not customer_id or not method.remote_id:
            raise PreconditionError(
                "The provided payment method is not stored on the gateway.",
                details={"payment_method_id": method.id},
            )

        request = TransactionRequest(
            transaction_type=TransactionType.AUTH_CAPTURE if capture else TransactionType.AUTH_ONLY,
            amount=payment.amount.amount,
            profile=ProfileReference(customer_profile_id=customer_id, payment_profile_id=method.remote_id),
            invoice_number=payment.order.order_number,
            customer_ip=payment.order.ip_address,
        )
        response = await self.client.create_transaction(request)

        if classify(response) is Outcome.STALE_REFERENCE:
            logger.warning(
                "payment_method_stale",
                payment_id=payment.id,
                payment_method_id=method.id,
                payment_profile_id=method.remote_id,
            )
            await self.payment_methods.delete(method)
            raise HardDeclineError(
                "The provided payment method is no longer valid",
                gateway_code=response.leading_code,
            )
        raise_for_outcome(response)

        payment.mark_authorized(self._transaction_id(response), now, captured=capture)
        await self.payments.save(payment)
        logger.info(
            "payment_authorized",
            payment_id=payment.id,
            order_id=payment.order.order_id,
            captured=capture,
            amount=str(payment.amount),
            transaction_id=payment.remote_id,
        )
        return payment

    async def capture(self, payment: Payment, amount: Optional[Money] = None) -> Payment:
        payment.ensure_state(
            PaymentState.AUTHORIZATION,
            message='Only payments in the "authorization" state can be captured.',
        )
        amount = amount or payment.amount
        if amount.currency_code != payment.amount.currency_code:
            raise InvalidRequestError(
                f"Capture currency {amount.currency_code} does not match payment currency {payment.amount.currency_code}.",
                field="amount",
            )
        if not amount.is_positive():
            raise InvalidRequestError("The capture amount must be greater than zero.", field="amount")
        if amount > payment.amount:
            raise InvalidRequestError(f"Can't capture more than {payment.amount}.", field="amount")

        response = await self.client.create_transaction(TransactionRequest(
            transaction_type=TransactionType.PRIOR_AUTH_CAPTURE,
            amount=amount.amount,
            ref_trans_id=self._remote_id(payment),
        ))
        raise_for_outcome(response)

        payment.mark_captured(amount, self.clock.now())
        await self.payments.save(payment)
        logger.info("payment_captured", payment_id=payment.id, amount=str(amount), transaction_id=payment.remote_id)
        return payment

    async def void(self, payment: Payment) -> Payment:
        payment.ensure_state(
            PaymentState.AUTHORIZATION,
            message='Only payments in the "authorization" state can be voided.',
        )
        response = await self.client.create_transaction(TransactionRequest(
            transaction_type=TransactionType.VOID,
            amount=payment.amount.amount,
            ref_trans_id=self._remote_id(payment),
        ))
        raise_for_outcome(response)

        payment.mark_voided()
        await self.payments.save(payment)
        logger.info("payment_voided", payment_id=payment.id, transaction_id=payment.remote_id)
        return payment

    async def refund(self, payment: Payment, amount: Optional[Money] = None) -> Payment:
        payment.ensure_state(
            PaymentState.CAPTURE_COMPLETED,
            PaymentState.CAPTURE_PARTIALLY_REFUNDED,
            message='Only payments in the "capture_completed" and "capture_partially_refunded" states can be refunded.',
        )
        # Default to the remaining balance
        amount = amount or payment.balance
        payment.validate_refund_amount(amount)

        method = payment.payment_method
        if method is None or not method.card_number:
            raise PreconditionError("The provided payment has no stored card to refund to.")

        response = await self.client.create_transaction(TransactionRequest(
            transaction_type=TransactionType.REFUND,
            amount=amount.amount,
            ref_trans_id=self._remote_id(payment),
            credit_card=CreditCardData(
                card_number=method.card_number,
                expiration_date=method.expiration_date,
            ),
        ))
        raise_for_outcome(response)

        payment.apply_refund(amount)
        await self.payments.save(payment)
        logger.info(
            "payment_refunded",
            payment_id=payment.id,
            amount=str(amount),
            refunded_total=str(payment.refunded_amount),
            state=payment.state.value,
        )
        return payment

    @staticmethod
    def _remote_id(payment: Payment) -> str:
        if not payment.remote_id:
            raise PreconditionError(
                "The provided payment has no remote transaction id.",
                details={"payment_id": payment.id},
            )
        return payment.remote_id

    @staticmethod
    def _transaction_id(response: GatewayResponse) -> str:
        if not response.transaction_id:
            raise InfrastructureError(
                "The gateway approved the transaction without a transaction id.",
                details={"operation": response.operation},
            )
        return response.transaction_id
