"""
Credit card helpers: type detection by number prefix, Luhn check, expiration.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class CardType:
    id: str
    label: str
    # Single prefixes ("4") or inclusive ranges ("51-55")
    number_prefixes: tuple[str, ...]
    number_lengths: tuple[int, ...] = (16,)
    security_code_length: int = 3

    def matches(self, number: str) -> bool:
        for prefix in self.number_prefixes:
            if "-" in prefix:
                start, end = prefix.split("-")
                head = number[: len(start)]
                if len(head) == len(start) and int(start) <= int(head) <= int(end):
                    return True
            elif number.startswith(prefix):
                return True
        return False


# Detection walks this list in order; overlapping ranges resolve to the first match.
CARD_TYPES: tuple[CardType, ...] = (
    CardType("visa", "Visa", ("4",), (13, 16, 19)),
    CardType("mastercard", "MasterCard", ("51-55", "222100-272099")),
    CardType("maestro", "Maestro", ("5018", "5020", "5038", "5612", "5893", "6304", "6759", "6761", "6762", "6763", "0604", "6390"), tuple(range(12, 20))),
    CardType("amex", "American Express", ("34", "37"), (15,), 4),
    CardType("dinersclub", "Diners Club", ("300-305", "309", "36", "38", "39"), (14,)),
    CardType("discover", "Discover Card", ("6011", "622126-622925", "644-649", "65"), (16, 19)),
    CardType("jcb", "JCB", ("3528-3589",)),
    CardType("unionpay", "UnionPay", ("62", "88"), (16, 17, 18, 19)),
)


def detect_card_type(number: str) -> Optional[CardType]:
    digits = "".join(ch for ch in number if ch.isdigit())
    for card_type in CARD_TYPES:
        if card_type.matches(digits):
            return card_type
    return None


def luhn_valid(number: str) -> bool:
    if not number.isdigit():
        return False
    total = 0
    for index, ch in enumerate(reversed(number)):
        digit = int(ch)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def calculate_expiration(month: int, year: int) -> datetime:
    """Last second of the expiration month, UTC."""
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc)
