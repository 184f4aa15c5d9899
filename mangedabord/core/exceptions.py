"""
自定义异常类
提供更精确的错误处理和异常信息
"""

from typing import Any, Dict, List, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """数据库相关异常"""
    pass


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""
    pass


class ValidationError(BaseApplicationError):
    """数据验证异常"""

    def __init__(self, message: str, error_code: str = "VALIDATION_ERROR",
                 details: Dict[str, Any] = None):
        super().__init__(message, error_code, details)


class PaymentValidationError(ValidationError):
    """支付请求参数错误，固定返回 400 FLASHP_INP_99"""

    def __init__(self, message: str):
        super().__init__(message, "FLASHP_INP_99")


class AuthenticationError(BaseApplicationError):
    """认证相关异常"""

    def __init__(self, message: str, error_code: str = "AUTHENTICATION_REQUIRED"):
        super().__init__(message, error_code)


class AuthorizationError(BaseApplicationError):
    """授权相关异常"""

    def __init__(self, message: str, error_code: str = "PERMISSION_DENIED"):
        super().__init__(message, error_code)


class AuthenticationFailed(BaseApplicationError):
    """支付网关令牌获取失败"""

    def __init__(self, message: str = "无法获取支付网关的访问令牌"):
        super().__init__(message, "FLASHP_AUTH_99")


class UpstreamGatewayError(BaseApplicationError):
    """支付网关返回错误或响应格式异常"""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
        error_details: Optional[List[Any]] = None
    ):
        super().__init__(message, code or "FLASHP_ERR_99")
        self.status = status or 500
        self.error_details = error_details or []


class BusinessLogicError(BaseApplicationError):
    """业务逻辑异常"""
    pass


class OrderNotFoundError(BusinessLogicError):
    """订单不存在异常"""

    def __init__(self, order_id: Any = None):
        super().__init__("订单不存在", "ORDER_NOT_FOUND", {"order_id": order_id})


class UserNotFoundError(BusinessLogicError):
    """用户不存在异常"""

    def __init__(self, user_id: Any = None):
        super().__init__(f"用户 {user_id} 不存在", "USER_NOT_FOUND", {"user_id": user_id})


class NoPointsToCreditError(BusinessLogicError):
    """订单没有可发放的积分"""

    def __init__(self, order_id: Any = None):
        super().__init__("该订单没有可发放的积分", "NO_POINTS_TO_CREDIT", {"order_id": order_id})


class InsufficientPointsError(BusinessLogicError):
    """积分余额不足"""

    def __init__(self, available: int, requested: int):
        super().__init__(
            "积分余额不足",
            "INSUFFICIENT_POINTS",
            {"available": available, "requested": requested}
        )


class FailureReasonRequiredError(BusinessLogicError):
    """标记失败时必须填写原因"""

    def __init__(self):
        super().__init__("订单标记为失败时必须提供原因", "FAILURE_REASON_REQUIRED")


class InvalidStatusError(BusinessLogicError):
    """未知的订单状态"""

    def __init__(self, status: Any):
        super().__init__(f"未知的订单状态: {status}", "INVALID_STATUS", {"status": status})


class OrderNotEligibleError(BusinessLogicError):
    """订单不满足积分发放条件"""

    def __init__(self, order_id: Any = None):
        super().__init__("订单不满足积分发放条件", "ORDER_NOT_ELIGIBLE", {"order_id": order_id})
