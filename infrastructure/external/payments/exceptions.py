"""
Transport-level exceptions for payment providers, specializing InfrastructureError.
"""
from __future__ import annotations

from typing import Optional
from domain.payment.exceptions import InfrastructureError
from shared.codes.payment_codes import PaymentCode


class GatewayTransportError(InfrastructureError):
    def __init__(
        self,
        message: str,
        *,
        provider: str,
        operation: str,
        timeout: bool = False,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "operation": operation}
        if details:
            full_details.update(details)
        super().__init__(
            message,
            code=PaymentCode.TIMEOUT if timeout else PaymentCode.INFRASTRUCTURE,
            error_type="GatewayTransportError",
            details=full_details,
        )


class GatewayResponseFormatError(InfrastructureError):
    def __init__(self, message: str, *, provider: str, operation: str, details: Optional[dict] = None):
        full_details = {"provider": provider, "operation": operation}
        if details:
            full_details.update(details)
        super().__init__(
            message,
            code=PaymentCode.MALFORMED_RESPONSE,
            error_type="GatewayResponseFormatError",
            details=full_details,
        )
