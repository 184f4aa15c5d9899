"""
Mange d'abord 后端服务 - 主应用入口
提供外卖点餐系统的后端API服务

主要功能模块：
- 支付网关代理（/api/payment）
- 下单和订单金额计算
- 后台订单看板和状态流转
- 会员积分计算和发放
- 用户通知和操作日志

技术栈：FastAPI + DuckDB + JWT认证

运行：mangedabord（或 uvicorn mangedabord.app:create_app --factory --port 3000）
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_router, payment_router
from .config.settings import Settings, get_settings
from .core.database import DatabaseManager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .core.log import configure_logging
from .core.security import SecurityManager
from .services import (
    AccessTokenCache,
    CatalogService,
    LoyaltyService,
    NotificationService,
    OrderService,
    OrderWorkflowService,
    PaymentGatewayProxy,
    UserService,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    app.state.db.init_database()
    logger.info("Database initialized")
    yield
    app.state.db.close()


def create_app(settings: Optional[Settings] = None,
               db: Optional[DatabaseManager] = None,
               token_cache: Optional[AccessTokenCache] = None,
               gateway: Optional[PaymentGatewayProxy] = None) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        settings: 配置，默认从环境变量读取（缺少支付网关配置时直接失败）
        db: 数据库管理器，默认按 settings.database_url 创建
        token_cache: 支付网关令牌缓存
        gateway: 支付网关代理

    Returns:
        FastAPI: 应用实例
    """
    settings = settings or get_settings()
    configure_logging(settings.debug)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Mange d'abord 外卖点餐系统API",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # 组装服务
    db = db or DatabaseManager.from_url(settings.database_url)
    token_cache = token_cache or AccessTokenCache(
        settings.token_url,
        settings.client_id,
        settings.client_secret,
        safety_margin=settings.token_safety_margin_seconds,
    )
    catalog = CatalogService(db)
    loyalty = LoyaltyService(
        db,
        threshold=settings.loyalty_threshold,
        integration_date=settings.loyalty_integration_date,
        default_delivery_fee=settings.default_delivery_fee,
    )
    orders = OrderService(db, catalog, loyalty, settings.default_delivery_fee)

    app.state.settings = settings
    app.state.db = db
    app.state.security = SecurityManager(
        settings.jwt_secret_key, settings.jwt_algorithm, settings.jwt_expire_hours
    )
    app.state.token_cache = token_cache
    app.state.gateway = gateway or PaymentGatewayProxy(settings.base_api_url, token_cache)
    app.state.catalog = catalog
    app.state.loyalty = loyalty
    app.state.orders = orders
    app.state.workflow = OrderWorkflowService(db, orders, catalog)
    app.state.users = UserService(db)
    app.state.notifications = NotificationService(db)

    # 添加中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        origin = request.headers.get("origin") or "-"
        logger.info("%s %s from %s", request.method, request.url.path, origin)
        return await call_next(request)

    # 注册异常处理器
    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # 注册路由
    app.include_router(api_router, prefix=settings.api_prefix)
    app.include_router(payment_router)

    # 健康检查
    @app.get("/health")
    def health_check():
        return {"status": "OK"}

    @app.get("/")
    def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
        }

    return app


def main():
    """命令行入口：按配置的端口启动服务"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
