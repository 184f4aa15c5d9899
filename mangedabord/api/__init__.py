"""
API routes and endpoints.
"""

from fastapi import APIRouter

from . import payments
from .v1 import auth, catalog, loyalty, notifications, orders

api_router = APIRouter()

# 包含所有v1路由
api_router.include_router(auth.router, prefix="/auth", tags=["认证"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["目录"])
api_router.include_router(orders.router, prefix="/orders", tags=["订单"])
api_router.include_router(loyalty.router, prefix="/loyalty", tags=["积分"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["通知"])

# 支付代理沿用前端已经在用的 /api/payment 路径，不带版本前缀
payment_router = APIRouter()
payment_router.include_router(payments.router, prefix="/api/payment", tags=["支付"])
