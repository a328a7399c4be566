"""
Resolution of the remote customer / payment profile for a stored card.

The local customer caches one remote customer-profile-id per gateway
instance. That cache and the gateway evolve independently, so every remote
outcome is reconciled back into it: stale ids are cleared, duplicates are
adopted as if they had just been created.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from application.dtos.payments import (
    BillTo,
    CardDetails,
    CreditCardData,
    CustomerProfile,
    PaymentProfile,
)
from application.ports.payment_gateway import GatewayClient
from application.services.response_classifier import (
    Outcome,
    classify,
    duplicate_id,
    extract_numeric_id,
    message_text,
    raise_for_outcome,
)
from core.logging_config import get_logger
from domain.common.clock import Clock, SystemClock
from domain.payment.entity import Customer, PaymentMethod
from domain.payment.exceptions import HardDeclineError, InfrastructureError
from domain.payment.repository import CustomerRepository


logger = get_logger(__name__)


def build_payment_profile(method: PaymentMethod, card: CardDetails) -> PaymentProfile:
    address = method.billing_address
    return PaymentProfile(
        customer_type="individual",
        bill_to=BillTo(
            first_name=address.given_name,
            last_name=address.family_name,
            company=address.organization,
            address=address.street,
            city=address.locality,
            state=address.administrative_area,
            zip=address.postal_code,
            country=address.country_code,
        ),
        credit_card=CreditCardData(
            card_number=card.number,
            expiration_date=card.expiration_date,
            card_code=card.security_code,
        ),
    )


class ProfileResolver:
    def __init__(
        self,
        client: GatewayClient,
        customers: CustomerRepository,
        *,
        provider_key: str,
        clock: Optional[Clock] = None,
        serialize: bool = True,
    ) -> None:
        self.client = client
        self.customers = customers
        self.provider_key = provider_key
        self.clock = clock or SystemClock()
        self.serialize = serialize
        # Per-customer lock and the number of tasks holding or waiting on it
        self._locks: dict[int, tuple[asyncio.Lock, int]] = {}

    async def resolve(self, customer: Customer, method: PaymentMethod, card: CardDetails) -> str:
        """Return the remote payment-profile id for `card`, creating what is missing."""
        if not self.serialize:
            return await self._resolve(customer, method, card)
        lock = self._acquire_slot(customer.id)
        try:
            async with lock:
                return await self._resolve(customer, method, card)
        finally:
            self._release_slot(customer.id)

    def _acquire_slot(self, customer_id: int) -> asyncio.Lock:
        lock, users = self._locks.get(customer_id) or (asyncio.Lock(), 0)
        self._locks[customer_id] = (lock, users + 1)
        return lock

    def _release_slot(self, customer_id: int) -> None:
        lock, users = self._locks[customer_id]
        if users == 1:
            del self._locks[customer_id]
        else:
            self._locks[customer_id] = (lock, users - 1)

    async def _resolve(self, customer: Customer, method: PaymentMethod, card: CardDetails) -> str:
        payment_profile = build_payment_profile(method, card)

        customer_id = customer.get_remote_id(self.provider_key) if customer.is_authenticated else None
        if customer_id:
            profile_id = await self._add_to_cached_customer(customer, customer_id, payment_profile)
            if profile_id is not None:
                return profile_id

        return await self._create_customer_profile(customer, payment_profile)

    async def _add_to_cached_customer(
        self, customer: Customer, customer_id: str, payment_profile: PaymentProfile
    ) -> Optional[str]:
        """Create the payment profile under the cached customer id.

        Returns None when the cached id turned out to be stale; the cache is
        cleared and persisted before returning.
        """
        response = await self.client.create_customer_payment_profile(customer_id, payment_profile)
        outcome = classify(response)

        if outcome is Outcome.SUCCESS:
            return self._require_id(response.customer_payment_profile_id, "payment profile")
        if outcome is Outcome.DUPLICATE_RESOURCE:
            existing = duplicate_id(response)
            if not existing:
                raise HardDeclineError(
                    "Duplicate payment profile ID, however could not get existing ID.",
                    gateway_code=response.leading_code,
                )
            logger.info("payment_profile_duplicate_adopted", customer_id=customer.id, payment_profile_id=existing)
            return existing
        if outcome is Outcome.STALE_REFERENCE:
            logger.warning(
                "customer_profile_stale",
                customer_id=customer.id,
                customer_profile_id=customer_id,
                provider_key=self.provider_key,
            )
            customer.set_remote_id(self.provider_key, None)
            await self.customers.save(customer)
            return None
        if outcome is Outcome.TRANSIENT:
            raise_for_outcome(response)
        raise HardDeclineError(message_text(response), gateway_code=response.leading_code)

    async def _create_customer_profile(self, customer: Customer, payment_profile: PaymentProfile) -> str:
        if customer.is_authenticated:
            merchant_customer_id = str(customer.id)
        else:
            merchant_customer_id = f"{customer.id}_{int(self.clock.now().timestamp())}"
        profile = CustomerProfile(
            merchant_customer_id=merchant_customer_id,
            email=customer.email,
            payment_profiles=[payment_profile],
        )
        response = await self.client.create_customer_profile(profile)
        outcome = classify(response)

        if outcome is Outcome.SUCCESS:
            customer_id = self._require_id(response.customer_profile_id, "customer profile")
            if not response.customer_payment_profile_ids:
                raise InfrastructureError(
                    "The gateway created a customer profile without a payment profile.",
                    details={"operation": response.operation, "customer_profile_id": customer_id},
                )
            await self._cache_customer_id(customer, customer_id)
            return response.customer_payment_profile_ids[0]

        if outcome is Outcome.DUPLICATE_RESOURCE:
            leading = response.leading_message
            existing_customer_id = extract_numeric_id(leading.text) if leading else None
            if not existing_customer_id:
                raise HardDeclineError("Unable to create customer profile.", gateway_code=response.leading_code)
            logger.info(
                "customer_profile_duplicate_adopted",
                customer_id=customer.id,
                customer_profile_id=existing_customer_id,
            )
            profile_id = await self._add_to_existing_customer(existing_customer_id, payment_profile)
            await self._cache_customer_id(customer, existing_customer_id)
            return profile_id

        if outcome is Outcome.TRANSIENT:
            raise_for_outcome(response)
        logger.warning(
            "customer_profile_create_failed",
            customer_id=customer.id,
            gateway_code=response.leading_code,
            gateway_message=message_text(response),
        )
        raise HardDeclineError(
            "Unable to create customer profile.",
            gateway_code=response.leading_code,
            details={"gateway_message": message_text(response)},
        )

    async def _add_to_existing_customer(self, customer_id: str, payment_profile: PaymentProfile) -> str:
        response = await self.client.create_customer_payment_profile(customer_id, payment_profile)
        outcome = classify(response)
        if outcome is Outcome.SUCCESS and response.customer_payment_profile_id:
            return response.customer_payment_profile_id
        if outcome is Outcome.DUPLICATE_RESOURCE:
            existing = duplicate_id(response)
            if existing:
                return existing
        raise HardDeclineError(
            "Unable to create payment profile for existing customer",
            gateway_code=response.leading_code,
            details={"gateway_message": message_text(response), "customer_profile_id": customer_id},
        )

    async def _cache_customer_id(self, customer: Customer, customer_id: str) -> None:
        customer.set_remote_id(self.provider_key, customer_id)
        await self.customers.save(customer)
        logger.info("customer_profile_cached", customer_id=customer.id, customer_profile_id=customer_id)

    @staticmethod
    def _require_id(value: Optional[str], what: str) -> str:
        if not value:
            raise InfrastructureError(f"The gateway did not return a {what} id.")
        return value
