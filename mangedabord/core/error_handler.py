"""
统一错误处理模块
提供标准化的错误响应格式和错误处理中间件

所有错误响应的格式：
    {"success": false, "message": ..., "code": ..., "error_details": [...]}

主要功能：
- 统一的错误响应格式
- 自动异常捕获和日志记录
- HTTP状态码映射
"""

import json
import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import BaseApplicationError, UpstreamGatewayError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """标准错误响应格式"""

    def __init__(self, code: str, message: str,
                 error_details: Optional[List[Any]] = None,
                 http_status: int = 400):
        self.code = code
        self.message = message
        self.error_details = error_details or []
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "success": False,
            "message": self.message,
            "code": self.code,
            "error_details": self.error_details,
        }

    def to_json_response(self) -> JSONResponse:
        """转换为FastAPI JSONResponse"""
        return JSONResponse(status_code=self.http_status, content=self.to_dict())


class ErrorHandler:
    """全局错误处理器"""

    # 错误代码到HTTP状态码的映射
    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "AUTHENTICATION_REQUIRED": 401,
        "PERMISSION_DENIED": 403,
        "INTERNAL_ERROR": 500,
        "DatabaseError": 500,
        "ConcurrencyError": 409,

        # 支付网关
        "FLASHP_INP_99": 400,
        "FLASHP_AUTH_99": 500,
        "FLASHP_ERR_99": 500,

        # 订单相关错误
        "ORDER_NOT_FOUND": 404,
        "INVALID_STATUS": 400,
        "FAILURE_REASON_REQUIRED": 400,
        "NOTIFICATION_NOT_FOUND": 404,

        # 积分相关错误
        "ORDER_NOT_ELIGIBLE": 400,
        "NO_POINTS_TO_CREDIT": 400,
        "INSUFFICIENT_POINTS": 400,

        # 用户相关错误
        "USER_NOT_FOUND": 404,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        """处理应用业务异常"""
        if isinstance(error, UpstreamGatewayError):
            # 上游给出的状态码和错误码原样透传
            return ErrorResponse(
                code=error.error_code,
                message=error.message,
                error_details=error.error_details,
                http_status=error.status,
            )

        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        if http_status >= 500:
            logger.error("%s: %s", error.error_code, error.message)
        return ErrorResponse(
            code=error.error_code,
            message=error.message,
            error_details=[error.details] if error.details else [],
            http_status=http_status,
        )

    @classmethod
    def handle_http_exception(cls, error: StarletteHTTPException) -> ErrorResponse:
        """处理FastAPI HTTP异常"""
        return ErrorResponse(
            code="HTTP_ERROR",
            message=str(error.detail),
            http_status=error.status_code,
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        """处理Pydantic验证错误"""
        return ErrorResponse(
            code="VALIDATION_ERROR",
            message="请求参数验证失败",
            error_details=json.loads(json.dumps(error.errors(), default=str)),
            http_status=422,
        )

    @classmethod
    def handle_unknown_error(cls, error: Exception, db=None) -> ErrorResponse:
        """处理未知异常"""
        error_details = {
            "type": type(error).__name__,
            "message": str(error),
            "traceback": traceback.format_exc(),
        }
        logger.exception("Unhandled error: %s", error)
        if db is not None:
            cls._log_system_error(db, error_details)

        return ErrorResponse(
            code="INTERNAL_ERROR",
            message="系统内部错误",
            error_details=[{"error_type": type(error).__name__}],
            http_status=500,
        )

    @classmethod
    def _log_system_error(cls, db, error_details: Dict[str, Any]):
        """记录系统错误到数据库"""
        try:
            db.execute_query(
                "INSERT INTO logs(user_id, actor_id, action, detail_json) VALUES (?,?,?,?)",
                [None, None, "system_error", json.dumps(error_details, ensure_ascii=False)]
            )
        except BaseApplicationError as e:
            # 数据库本身不可用时只能写进程日志
            logger.error("Failed to log error to database: %s", e.message)


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    """应用异常处理中间件"""
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """HTTP异常处理中间件"""
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """验证异常处理中间件"""
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理中间件"""
    db = getattr(request.app.state, "db", None)
    return ErrorHandler.handle_unknown_error(exc, db).to_json_response()
