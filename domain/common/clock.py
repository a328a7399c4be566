"""时钟抽象：领域服务通过注入获取当前时间，便于测试。"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """系统 UTC 时钟"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
