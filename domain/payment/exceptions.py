"""
Payment error taxonomy.

PreconditionError and InfrastructureError are meant for operators and
developers. HardDeclineError and SoftValidationFailure carry the gateway's
text verbatim so it can be shown to the customer or merchant.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PreconditionError(BusinessException):
    """The payment is not in a state that allows the requested operation."""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.PRECONDITION_FAILED,
            message=message,
            error_type="PreconditionError",
            details=details,
        )


class InvalidRequestError(BusinessException):
    def __init__(self, message: str, *, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.INVALID_REQUEST,
            message=message,
            error_type="InvalidRequestError",
            details=details,
            field=field,
        )


class PaymentGatewayError(BusinessException):
    """Base class for rejections reported by the remote gateway."""

    code_value: int = PaymentCode.HARD_DECLINE
    error_type_value: str = "PaymentGatewayError"

    def __init__(self, message: str, *, gateway_code: Optional[str] = None, details: Optional[dict] = None):
        full_details = {"gateway_code": gateway_code}
        if details:
            full_details.update(details)
        self.gateway_code = gateway_code
        super().__init__(
            code=self.code_value,
            message=message,
            error_type=self.error_type_value,
            details=full_details,
        )


class HardDeclineError(PaymentGatewayError):
    code_value = PaymentCode.HARD_DECLINE
    error_type_value = "HardDeclineError"


class SoftValidationFailure(PaymentGatewayError):
    code_value = PaymentCode.SOFT_DECLINE
    error_type_value = "SoftValidationFailure"


class StaleReferenceError(PaymentGatewayError):
    """The gateway no longer knows the referenced customer or payment profile."""

    code_value = PaymentCode.STALE_REFERENCE
    error_type_value = "StaleReferenceError"


class DuplicateResourceError(PaymentGatewayError):
    """A matching profile already exists remotely; `existing_id` points at it."""

    code_value = PaymentCode.DUPLICATE_RESOURCE
    error_type_value = "DuplicateResourceError"

    def __init__(
        self,
        message: str,
        *,
        existing_id: Optional[str] = None,
        gateway_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.existing_id = existing_id
        merged = {"existing_id": existing_id}
        if details:
            merged.update(details)
        super().__init__(message, gateway_code=gateway_code, details=merged)


class InfrastructureError(BusinessException):
    """Transport, timeout or malformed response. Safe to retry at the caller's discretion."""

    def __init__(
        self,
        message: str,
        *,
        code: int = PaymentCode.INFRASTRUCTURE,
        error_type: str = "InfrastructureError",
        details: Optional[dict] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
        )
