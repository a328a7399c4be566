"""领域层业务异常基类。

异常携带统一业务码（code）与类型（error_type），宿主系统据此决定：
展示给客户、提示商户，还是交由运维排查。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """结构化表示，便于日志与宿主系统的错误响应。"""
        data = {"code": int(self.code), "error_type": self.error_type, "message": self.message}
        if self.field:
            data["field"] = self.field
        if self.details:
            data["details"] = self.details
        return data


class DomainValidationException(BusinessException):
    """领域值校验失败（金额、币种等）"""

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class CurrencyMismatchException(DomainValidationException):
    def __init__(self, left: str, right: str):
        super().__init__(
            f"Currency mismatch: {left} != {right}",
            field="currency",
            details={"left": left, "right": right},
        )
