"""
支付领域实体 - Payment / PaymentMethod / Customer 记录与支付状态机
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .exceptions import InvalidRequestError, PreconditionError
from .money import Money


class PaymentState(str, Enum):
    """支付状态枚举"""
    NEW = "new"
    AUTHORIZATION = "authorization"
    AUTHORIZATION_VOIDED = "authorization_voided"
    CAPTURE_COMPLETED = "capture_completed"
    CAPTURE_PARTIALLY_REFUNDED = "capture_partially_refunded"
    CAPTURE_REFUNDED = "capture_refunded"


ALLOWED_TRANSITIONS: dict[PaymentState, frozenset[PaymentState]] = {
    PaymentState.NEW: frozenset({PaymentState.AUTHORIZATION, PaymentState.CAPTURE_COMPLETED}),
    PaymentState.AUTHORIZATION: frozenset({PaymentState.AUTHORIZATION_VOIDED, PaymentState.CAPTURE_COMPLETED}),
    PaymentState.CAPTURE_COMPLETED: frozenset({PaymentState.CAPTURE_PARTIALLY_REFUNDED, PaymentState.CAPTURE_REFUNDED}),
    PaymentState.CAPTURE_PARTIALLY_REFUNDED: frozenset({PaymentState.CAPTURE_PARTIALLY_REFUNDED, PaymentState.CAPTURE_REFUNDED}),
    PaymentState.AUTHORIZATION_VOIDED: frozenset(),
    PaymentState.CAPTURE_REFUNDED: frozenset(),
}


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class BillingAddress:
    given_name: str = ""
    family_name: str = ""
    organization: str = ""
    address_line1: str = ""
    address_line2: str = ""
    locality: str = ""
    administrative_area: str = ""
    postal_code: str = ""
    country_code: str = ""

    @property
    def street(self) -> str:
        return " ".join(part for part in (self.address_line1, self.address_line2) if part)


@dataclass
class Customer:
    """
    订单系统中的客户记录

    remote_ids 以网关实例为键缓存远端 customer-profile-id；
    网关报告该 id 不存在时必须清除。
    """

    id: int
    email: str
    is_authenticated: bool = True
    remote_ids: dict[str, str] = field(default_factory=dict)

    def get_remote_id(self, provider_key: str) -> Optional[str]:
        return self.remote_ids.get(provider_key) or None

    def set_remote_id(self, provider_key: str, remote_id: Optional[str]) -> None:
        if remote_id:
            self.remote_ids[provider_key] = str(remote_id)
        else:
            self.remote_ids.pop(provider_key, None)


@dataclass
class PaymentMethod:
    """存储的信用卡支付方式，remote_id 为网关 payment-profile-id"""

    id: Optional[int]
    owner: Customer
    billing_address: BillingAddress = field(default_factory=BillingAddress)
    remote_id: Optional[str] = None
    card_type: Optional[str] = None
    card_number: Optional[str] = None  # 仅后四位
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        self.expires_at = _ensure_utc(self.expires_at)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    @property
    def expiration_date(self) -> str:
        """MMYYYY, the form the gateway accepts alongside a truncated card number."""
        return f"{int(self.card_exp_month or 0):02d}{self.card_exp_year or ''}"


@dataclass
class OrderRef:
    order_id: int
    order_number: Optional[str] = None
    ip_address: Optional[str] = None


@dataclass
class Payment:
    """
    支付记录 - 生命周期由订单系统持有，本模块只负责状态迁移

    业务规则：
    1. 状态转换必须遵循状态机，不允许跳过状态
    2. 退款金额不能超过已捕获金额
    3. 所有金额使用 Money（Decimal）计算
    """

    id: Optional[int]
    order: OrderRef
    amount: Money
    payment_method: Optional[PaymentMethod] = None
    state: PaymentState = PaymentState.NEW
    refunded_amount: Optional[Money] = None
    remote_id: Optional[str] = None
    authorized_at: Optional[datetime] = None
    captured_at: Optional[datetime] = None

    def __post_init__(self):
        if self.refunded_amount is None:
            self.refunded_amount = Money.zero(self.amount.currency_code)
        self.state = PaymentState(self.state)
        self.authorized_at = _ensure_utc(self.authorized_at)
        self.captured_at = _ensure_utc(self.captured_at)

    @property
    def balance(self) -> Money:
        return self.amount - self.refunded_amount

    def ensure_state(self, *allowed: PaymentState, message: Optional[str] = None) -> None:
        if self.state not in allowed:
            raise PreconditionError(
                message or f"The payment is in an invalid state: {self.state.value}",
                details={"state": self.state.value, "allowed": [s.value for s in allowed]},
            )

    def _transition(self, target: PaymentState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise PreconditionError(
                f"Cannot transition payment from {self.state.value} to {target.value}",
                details={"state": self.state.value, "target": target.value},
            )
        self.state = target

    def mark_authorized(self, remote_id: str, at: datetime, *, captured: bool) -> None:
        self._transition(PaymentState.CAPTURE_COMPLETED if captured else PaymentState.AUTHORIZATION)
        self.remote_id = remote_id
        self.authorized_at = _ensure_utc(at)
        if captured:
            self.captured_at = self.authorized_at

    def mark_captured(self, amount: Money, at: datetime) -> None:
        self._transition(PaymentState.CAPTURE_COMPLETED)
        self.amount = amount
        self.captured_at = _ensure_utc(at)

    def mark_voided(self) -> None:
        self._transition(PaymentState.AUTHORIZATION_VOIDED)

    def validate_refund_amount(self, amount: Money) -> None:
        if amount.currency_code != self.amount.currency_code:
            raise InvalidRequestError(
                f"Refund currency {amount.currency_code} does not match payment currency {self.amount.currency_code}.",
                field="amount",
            )
        if not amount.is_positive():
            raise InvalidRequestError("The refund amount must be greater than zero.", field="amount")
        if amount > self.balance:
            raise InvalidRequestError(f"Can't refund more than {self.balance}.", field="amount")

    def apply_refund(self, amount: Money) -> None:
        self.validate_refund_amount(amount)
        refunded = self.refunded_amount + amount
        if refunded < self.amount:
            self._transition(PaymentState.CAPTURE_PARTIALLY_REFUNDED)
        else:
            self._transition(PaymentState.CAPTURE_REFUNDED)
        self.refunded_amount = refunded
