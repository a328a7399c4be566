"""
支付仓储实现 - 进程内存储

订单系统负责真实持久化；此实现用于本地开发与测试，
行为与仓储接口约定保持一致。
"""
from __future__ import annotations

import copy
import itertools
from typing import Optional

from domain.payment.entity import Customer, Payment, PaymentMethod
from domain.payment.repository import CustomerRepository, PaymentMethodRepository, PaymentRepository
from core.logging_config import get_logger


logger = get_logger(__name__)


class InMemoryPaymentRepository(PaymentRepository):
    """支付仓储的内存实现"""

    def __init__(self) -> None:
        self._items: dict[int, Payment] = {}
        self._ids = itertools.count(1)
        self.saves = 0

    async def get(self, payment_id: int) -> Optional[Payment]:
        return self._items.get(payment_id)

    async def save(self, payment: Payment) -> Payment:
        if payment.id is None:
            payment.id = next(self._ids)
        self._items[payment.id] = payment
        self.saves += 1
        return payment


class InMemoryPaymentMethodRepository(PaymentMethodRepository):
    """支付方式仓储的内存实现"""

    def __init__(self) -> None:
        self._items: dict[int, PaymentMethod] = {}
        self._ids = itertools.count(1)
        self.deleted: list[int] = []

    async def get(self, method_id: int) -> Optional[PaymentMethod]:
        return self._items.get(method_id)

    async def save(self, method: PaymentMethod) -> PaymentMethod:
        if method.id is None:
            method.id = next(self._ids)
        self._items[method.id] = method
        return method

    async def delete(self, method: PaymentMethod) -> bool:
        if method.id is None or method.id not in self._items:
            logger.debug("payment_method_delete_noop", payment_method_id=method.id)
            return False
        del self._items[method.id]
        self.deleted.append(method.id)
        return True


class InMemoryCustomerRepository(CustomerRepository):
    """客户仓储的内存实现，保存快照以便观察持久化时点"""

    def __init__(self) -> None:
        self._items: dict[int, Customer] = {}
        self.snapshots: list[dict[str, str]] = []

    async def get(self, customer_id: int) -> Optional[Customer]:
        return self._items.get(customer_id)

    async def save(self, customer: Customer) -> Customer:
        self._items[customer.id] = customer
        self.snapshots.append(copy.deepcopy(customer.remote_ids))
        return customer
