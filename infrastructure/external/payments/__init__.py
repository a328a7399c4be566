"""
Factory for the payment gateway client and the composition of the gateway service.
"""
from __future__ import annotations

from typing import Optional

import httpx

from core.settings import GatewaySettings, gateway_settings
from application.ports.payment_gateway import GatewayClient
from application.services.payment_service import PaymentGatewayService
from domain.common.clock import Clock
from domain.payment.repository import CustomerRepository, PaymentMethodRepository, PaymentRepository


def get_gateway_client(
    settings: Optional[GatewaySettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GatewayClient:
    from .authorizenet_client import AuthorizeNetClient
    return AuthorizeNetClient(settings or gateway_settings, transport=transport)


def create_payment_gateway_service(
    *,
    payments: PaymentRepository,
    payment_methods: PaymentMethodRepository,
    customers: CustomerRepository,
    settings: Optional[GatewaySettings] = None,
    client: Optional[GatewayClient] = None,
    clock: Optional[Clock] = None,
) -> PaymentGatewayService:
    cfg = settings or gateway_settings
    return PaymentGatewayService(
        client or get_gateway_client(cfg),
        payments=payments,
        payment_methods=payment_methods,
        customers=customers,
        provider_key=cfg.provider_key,
        supported_card_types=cfg.credit_card_types,
        default_capture=cfg.transaction_type == "auth_capture",
        serialize_profile_creation=cfg.serialize_profile_creation,
        clock=clock,
    )
