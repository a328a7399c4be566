"""
Payment DTOs (Pydantic v2) used at the gateway boundary.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from domain.payment.card import luhn_valid
from shared.codes.payment_codes import RESULT_OK


class TransactionType(str, Enum):
    AUTH_ONLY = "auth_only"
    AUTH_CAPTURE = "auth_capture"
    PRIOR_AUTH_CAPTURE = "prior_auth_capture"
    VOID = "void"
    REFUND = "refund"


REFERENCED_TYPES = {TransactionType.PRIOR_AUTH_CAPTURE, TransactionType.VOID, TransactionType.REFUND}


class CardDetails(BaseModel):
    """Raw card data entered by the customer. Never persisted, never logged."""

    number: str
    exp_month: int = Field(ge=1, le=12)
    exp_year: int
    security_code: Optional[str] = None

    @field_validator("number", mode="before")
    @classmethod
    def _normalize_number(cls, v: Any) -> str:
        digits = "".join(str(v or "").split()).replace("-", "")
        if not digits.isdigit() or not 12 <= len(digits) <= 19:
            raise ValueError("card number must contain 12 to 19 digits")
        if not luhn_valid(digits):
            raise ValueError("card number failed the checksum")
        return digits

    @field_validator("exp_year")
    @classmethod
    def _four_digit_year(cls, v: int) -> int:
        if v < 100:
            v += 2000
        if not 2000 <= v <= 2999:
            raise ValueError("expiration year out of range")
        return v

    @field_validator("security_code")
    @classmethod
    def _validate_security_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not v.isdigit() or len(v) not in (3, 4):
            raise ValueError("security code must be 3 or 4 digits")
        return v

    @property
    def last4(self) -> str:
        return self.number[-4:]

    @property
    def expiration_date(self) -> str:
        """YYYY-MM, as used when creating payment profiles."""
        return f"{self.exp_year}-{self.exp_month:02d}"


class CreditCardData(BaseModel):
    card_number: str
    expiration_date: str
    card_code: Optional[str] = None


class BillTo(BaseModel):
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""


class PaymentProfile(BaseModel):
    customer_type: str = "individual"
    bill_to: Optional[BillTo] = None
    credit_card: CreditCardData


class CustomerProfile(BaseModel):
    merchant_customer_id: str
    email: Optional[str] = None
    payment_profiles: list[PaymentProfile] = Field(default_factory=list)


class ProfileReference(BaseModel):
    customer_profile_id: str
    payment_profile_id: str


class TransactionRequest(BaseModel):
    transaction_type: TransactionType
    amount: Decimal
    profile: Optional[ProfileReference] = None
    credit_card: Optional[CreditCardData] = None
    ref_trans_id: Optional[str] = None
    invoice_number: Optional[str] = None
    customer_ip: Optional[str] = None

    @model_validator(mode="after")
    def _check_references(self):
        if self.profile is not None and self.credit_card is not None:
            raise ValueError("profile and credit_card are mutually exclusive")
        if self.transaction_type in REFERENCED_TYPES and not self.ref_trans_id:
            raise ValueError(f"{self.transaction_type.value} requires ref_trans_id")
        return self


class GatewayMessage(BaseModel):
    code: str
    text: str = ""


class GatewayErrorItem(BaseModel):
    code: Optional[str] = None
    text: str = ""


class GatewayResponse(BaseModel):
    """Normalized response of a single gateway operation."""

    operation: str
    result_code: str
    messages: list[GatewayMessage] = Field(default_factory=list)
    errors: list[GatewayErrorItem] = Field(default_factory=list)

    # Operation-specific payload
    transaction_id: Optional[str] = None
    response_code: Optional[str] = None
    customer_profile_id: Optional[str] = None
    customer_payment_profile_id: Optional[str] = None
    customer_payment_profile_ids: list[str] = Field(default_factory=list)

    raw: Optional[dict[str, Any]] = None

    @property
    def is_ok(self) -> bool:
        return self.result_code == RESULT_OK

    @property
    def leading_message(self) -> Optional[GatewayMessage]:
        return self.messages[0] if self.messages else None

    @property
    def leading_code(self) -> Optional[str]:
        message = self.leading_message
        return message.code if message else None
