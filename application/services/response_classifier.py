"""
Classification of gateway responses into actionable outcomes.

Every remote result is classified here and nowhere else. Callers either
branch on `classify()` or let `raise_for_outcome()` turn a non-success into
the matching exception of the payment error taxonomy.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from application.dtos.payments import GatewayResponse
from domain.payment.exceptions import (
    DuplicateResourceError,
    HardDeclineError,
    InfrastructureError,
    SoftValidationFailure,
    StaleReferenceError,
)
from shared.codes.payment_codes import (
    DUPLICATE_RECORD,
    HARD_DECLINE_CODES,
    RECORD_NOT_FOUND,
    TRANSIENT_CODES,
)


class Outcome(str, Enum):
    SUCCESS = "success"
    HARD_DECLINE = "hard_decline"
    STALE_REFERENCE = "stale_reference"
    DUPLICATE_RESOURCE = "duplicate_resource"
    SOFT_VALIDATION_FAILURE = "soft_validation_failure"
    TRANSIENT = "transient"


def classify(response: GatewayResponse) -> Outcome:
    if response.is_ok:
        return Outcome.HARD_DECLINE if response.errors else Outcome.SUCCESS

    code = response.leading_code
    if code == DUPLICATE_RECORD:
        return Outcome.DUPLICATE_RESOURCE
    if code == RECORD_NOT_FOUND:
        return Outcome.STALE_REFERENCE
    if code in TRANSIENT_CODES:
        return Outcome.TRANSIENT
    if response.errors or code in HARD_DECLINE_CODES:
        return Outcome.HARD_DECLINE
    return Outcome.SOFT_VALIDATION_FAILURE


def extract_numeric_id(text: str) -> Optional[str]:
    """Return the first whitespace-delimited token made only of digits.

    The gateway reports duplicates as free text, e.g.
    "A duplicate record with ID 554433 already exists." Sentence punctuation
    glued to the token ("554433.") is ignored; anything else disqualifies it.
    """
    for token in (text or "").split():
        token = token.rstrip(".,;:")
        if token.isdigit():
            return token
    return None


def message_text(response: GatewayResponse) -> str:
    """Text to surface for a failed response: the transaction error if any, else the leading message."""
    if response.errors:
        return response.errors[0].text
    message = response.leading_message
    if message is not None:
        return message.text
    return "The payment gateway returned no message."


def duplicate_id(response: GatewayResponse) -> Optional[str]:
    """Existing remote id for a duplicate report: payload id first, then the message text."""
    if response.customer_payment_profile_id:
        return response.customer_payment_profile_id
    message = response.leading_message
    return extract_numeric_id(message.text) if message else None


def raise_for_outcome(response: GatewayResponse) -> None:
    outcome = classify(response)
    if outcome is Outcome.SUCCESS:
        return

    text = message_text(response)
    code = response.errors[0].code if response.errors and response.errors[0].code else response.leading_code
    details = {"operation": response.operation, "outcome": outcome.value}

    if outcome is Outcome.HARD_DECLINE:
        raise HardDeclineError(text, gateway_code=code, details=details)
    if outcome is Outcome.STALE_REFERENCE:
        raise StaleReferenceError(text, gateway_code=code, details=details)
    if outcome is Outcome.DUPLICATE_RESOURCE:
        leading = response.leading_message
        raise DuplicateResourceError(
            text,
            existing_id=extract_numeric_id(leading.text) if leading else None,
            gateway_code=code,
            details=details,
        )
    if outcome is Outcome.TRANSIENT:
        raise InfrastructureError(text, details={**details, "gateway_code": code})
    raise SoftValidationFailure(text, gateway_code=code, details=details)
