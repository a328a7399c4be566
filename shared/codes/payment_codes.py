"""
Payment specific codes and Authorize.Net message/transaction code mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Local validation (6000x)
    PRECONDITION_FAILED = 60010
    INVALID_REQUEST = 60011

    # Gateway rejections (6002x)
    HARD_DECLINE = 60020
    SOFT_DECLINE = 60021
    STALE_REFERENCE = 60022
    DUPLICATE_RESOURCE = 60023

    # Provider/Network errors (6003x)
    INFRASTRUCTURE = 60030
    TIMEOUT = 60031
    MALFORMED_RESPONSE = 60032


# resultCode values of the `messages` block
RESULT_OK = "Ok"
RESULT_ERROR = "Error"

# Leading message codes with a dedicated meaning
DUPLICATE_RECORD = "E00039"
RECORD_NOT_FOUND = "E00040"

# Gateway-side outages, worth retrying later
TRANSIENT_CODES = frozenset({
    "E00001",  # An error occurred during processing. Please try again.
    "E00053",  # Server too busy.
})

# Permanent negative outcomes, never retried
HARD_DECLINE_CODES = frozenset({
    "E00027",  # The transaction was unsuccessful.
    "E00042",  # Maximum number of payment profiles reached.
    "E00044",  # Customer Information Manager is not enabled.
    "E00051",  # The original transaction was not issued for this payment profile.
})

# Internal transaction type → Authorize.Net transactionType
TRANSACTION_TYPE_TO_PROVIDER = {
    "auth_only": "authOnlyTransaction",
    "auth_capture": "authCaptureTransaction",
    "prior_auth_capture": "priorAuthCaptureTransaction",
    "void": "voidTransaction",
    "refund": "refundTransaction",
}
