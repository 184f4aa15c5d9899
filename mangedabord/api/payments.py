"""
支付代理路由
挂载在 /api/payment 下，供前端发起支付和查询支付状态
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends

from ..services import PaymentGatewayProxy
from .deps import get_payment_gateway

router = APIRouter()


@router.post("/init")
def init_payment(
    payload: Any = Body(None),
    gateway: PaymentGatewayProxy = Depends(get_payment_gateway),
):
    """
    初始化支付

    请求体：amount, description, success_url, failure_url 必填；
    customer_email, customer_phone, order_id, callback_url 可选。
    参数校验由网关代理完成，错误统一返回 400 FLASHP_INP_99。
    """
    result = gateway.init_payment(payload)
    return {"success": True, **result}


@router.get("/status")
def payment_status(
    transaction_id: Optional[str] = None,
    gateway: PaymentGatewayProxy = Depends(get_payment_gateway),
):
    """查询支付状态，返回小写的状态值"""
    return {"success": True, "status": gateway.get_status(transaction_id)}
