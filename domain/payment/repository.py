"""
支付仓储接口 - 定义订单系统提供的持久化能力
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Customer, Payment, PaymentMethod


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def get(self, payment_id: int) -> Optional[Payment]:
        """根据ID获取支付"""
        pass

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """保存支付记录（新建或更新）"""
        pass


class PaymentMethodRepository(ABC):
    """支付方式仓储抽象接口"""

    @abstractmethod
    async def get(self, method_id: int) -> Optional[PaymentMethod]:
        """根据ID获取支付方式"""
        pass

    @abstractmethod
    async def save(self, method: PaymentMethod) -> PaymentMethod:
        """保存支付方式"""
        pass

    @abstractmethod
    async def delete(self, method: PaymentMethod) -> bool:
        """删除支付方式，不存在时返回 False"""
        pass


class CustomerRepository(ABC):
    """客户仓储抽象接口"""

    @abstractmethod
    async def get(self, customer_id: int) -> Optional[Customer]:
        """根据ID获取客户"""
        pass

    @abstractmethod
    async def save(self, customer: Customer) -> Customer:
        """保存客户（含远端 profile id 缓存）"""
        pass
