"""
Money value object - exact decimal amounts scaled to the currency's minor unit.

Minor units come from the ISO 4217 data shipped with py-moneyed. Amounts
finer than the minor unit are rejected, never rounded.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from moneyed import Currency, get_currency
from moneyed.classes import CurrencyDoesNotExist

from domain.common.exceptions import CurrencyMismatchException, DomainValidationException


def resolve_currency(currency_code: str) -> Currency:
    try:
        return get_currency((currency_code or "").upper())
    except CurrencyDoesNotExist:
        raise DomainValidationException(
            f"Invalid currency code: {currency_code}", field="currency_code"
        ) from None


def minor_unit_exponent(currency: Currency) -> int:
    """Decimal places of the minor unit (USD 2, JPY 0, KWD 3)."""
    exponent = 0
    while 10 ** exponent < currency.sub_unit:
        exponent += 1
    return exponent


def scale_amount(amount: Decimal, currency: Currency) -> Decimal:
    """Rescale `amount` to the currency's minor unit without changing its value."""
    if not amount.is_finite():
        raise DomainValidationException(f"Invalid amount: {amount}", field="amount")
    try:
        scaled = amount.quantize(Decimal(1).scaleb(-minor_unit_exponent(currency)))
    except InvalidOperation:
        raise DomainValidationException(f"Invalid amount: {amount}", field="amount") from None
    if scaled != amount:
        raise DomainValidationException(
            f"{amount} has more precision than {currency.code} allows",
            field="amount",
            details={"amount": str(amount), "currency_code": currency.code},
        )
    return scaled


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency_code: str

    def __post_init__(self):
        if isinstance(self.amount, float):
            raise DomainValidationException("Money amounts must not be floats", field="amount")
        currency = resolve_currency(self.currency_code)
        object.__setattr__(self, "currency_code", currency.code)
        object.__setattr__(self, "amount", scale_amount(Decimal(self.amount), currency))

    @classmethod
    def of(cls, amount: Union[Decimal, str, int], currency_code: str) -> "Money":
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise DomainValidationException(f"Invalid amount: {amount}", field="amount") from None
        return cls(value, currency_code)

    @classmethod
    def zero(cls, currency_code: str) -> "Money":
        return cls(Decimal(0), currency_code)

    def _check(self, other: "Money") -> None:
        if self.currency_code != other.currency_code:
            raise CurrencyMismatchException(self.currency_code, other.currency_code)

    def __add__(self, other: "Money") -> "Money":
        self._check(other)
        return Money(self.amount + other.amount, self.currency_code)

    def __sub__(self, other: "Money") -> "Money":
        self._check(other)
        return Money(self.amount - other.amount, self.currency_code)

    def __lt__(self, other: "Money") -> bool:
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check(other)
        return self.amount >= other.amount

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_zero(self) -> bool:
        return self.amount == 0

    def number(self) -> str:
        """Amount as the plain decimal string the gateway expects."""
        return format(self.amount, "f")

    def __str__(self) -> str:
        return f"{self.number()} {self.currency_code}"
