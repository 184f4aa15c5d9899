"""
积分管理路由模块（后台）
"""

from fastapi import APIRouter, Depends

from ...core.security import require_admin
from ...services import LoyaltyService
from ..deps import get_loyalty_service

router = APIRouter()


@router.get("/orders")
def eligible_orders(
    admin_id: int = Depends(require_admin),
    loyalty: LoyaltyService = Depends(get_loyalty_service),
):
    """可发放积分的订单列表，新订单在前"""
    orders = loyalty.list_eligible_orders()
    return {"count": len(orders), "orders": orders}


@router.post("/orders/{order_id}/credit")
def credit_points(
    order_id: int,
    admin_id: int = Depends(require_admin),
    loyalty: LoyaltyService = Depends(get_loyalty_service),
):
    """
    为订单发放积分

    同一订单重复发放不会重复加积分，返回 already_credited=true。
    """
    return {"success": True, **loyalty.credit_points(order_id, admin_id)}
