"""
Stored payment method lifecycle: tokenize a card on the gateway, delete it.
"""
from __future__ import annotations

from typing import Iterable, Optional

from application.dtos.payments import CardDetails
from application.ports.payment_gateway import GatewayClient
from application.services.profile_resolver import ProfileResolver
from application.services.response_classifier import Outcome, classify, message_text, raise_for_outcome
from core.logging_config import get_logger
from domain.common.clock import Clock, SystemClock
from domain.payment.card import calculate_expiration, detect_card_type
from domain.payment.entity import PaymentMethod
from domain.payment.exceptions import HardDeclineError, InvalidRequestError
from domain.payment.repository import PaymentMethodRepository


logger = get_logger(__name__)


class PaymentMethodService:
    def __init__(
        self,
        client: GatewayClient,
        resolver: ProfileResolver,
        payment_methods: PaymentMethodRepository,
        *,
        provider_key: str,
        supported_card_types: Iterable[str],
        clock: Optional[Clock] = None,
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.payment_methods = payment_methods
        self.provider_key = provider_key
        self.supported_card_types = frozenset(supported_card_types)
        self.clock = clock or SystemClock()

    async def create(self, method: PaymentMethod, card: CardDetails) -> str:
        """Store `card` on the gateway and populate `method`; returns the payment-profile id."""
        card_type = detect_card_type(card.number)
        if card_type is None or card_type.id not in self.supported_card_types:
            label = card_type.label if card_type else "unknown"
            raise HardDeclineError(f'Unsupported credit card type "{label}".')

        expires_at = calculate_expiration(card.exp_month, card.exp_year)
        if expires_at <= self.clock.now():
            raise InvalidRequestError("The provided card has expired.", field="exp_year")

        token = await self.resolver.resolve(method.owner, method, card)

        method.card_type = card_type.id
        method.card_number = card.last4
        method.card_exp_month = card.exp_month
        method.card_exp_year = card.exp_year
        method.remote_id = token
        method.expires_at = expires_at
        await self.payment_methods.save(method)

        logger.info(
            "payment_method_created",
            payment_method_id=method.id,
            customer_id=method.owner.id,
            card_type=card_type.id,
            last4=card.last4,
            payment_profile_id=token,
        )
        return token

    async def delete(self, method: PaymentMethod) -> None:
        """Remove the payment profile remotely, then the local record.

        A profile the gateway no longer knows counts as deleted. Any other
        failure propagates and the local record is kept.
        """
        customer_id = method.owner.get_remote_id(self.provider_key)
        if customer_id and method.remote_id:
            response = await self.client.delete_customer_payment_profile(customer_id, method.remote_id)
            outcome = classify(response)
            if outcome is Outcome.STALE_REFERENCE:
                logger.info(
                    "payment_profile_already_gone",
                    payment_method_id=method.id,
                    payment_profile_id=method.remote_id,
                )
            elif outcome is Outcome.TRANSIENT:
                raise_for_outcome(response)
            elif outcome is not Outcome.SUCCESS:
                raise HardDeclineError(
                    message_text(response),
                    gateway_code=response.leading_code,
                    details={"operation": response.operation},
                )
        else:
            logger.warning(
                "payment_profile_unreachable",
                payment_method_id=method.id,
                customer_id=method.owner.id,
                reason="no cached customer profile" if not customer_id else "no payment profile id",
            )

        await self.payment_methods.delete(method)
        logger.info("payment_method_deleted", payment_method_id=method.id)
