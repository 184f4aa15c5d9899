"""
订单管理路由模块
下单、订单详情、后台看板、状态流转和配送费调整
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...core.security import get_optional_user_id, require_admin
from ...models.order import FAILURE_REASONS, Order
from ...schemas.order import (
    DeliveryFeeUpdateRequest,
    OrderCreateRequest,
    PaymentConfirmationRequest,
    StatusHistoryResponse,
    StatusTransitionRequest,
)
from ...services import OrderService, OrderWorkflowService, PaymentGatewayProxy
from ...services.order_workflow import parse_status
from ..deps import get_order_service, get_payment_gateway, get_workflow_service

router = APIRouter()


@router.post("", response_model=Order)
def create_order(
    req: OrderCreateRequest,
    user_id: Optional[int] = Depends(get_optional_user_id),
    orders: OrderService = Depends(get_order_service),
):
    """创建订单，未登录时作为游客订单"""
    return orders.place_order(req, user_id)


@router.get("")
def list_orders(
    status: Optional[str] = Query(None, description="只返回该状态的订单"),
    restaurant_id: Optional[str] = Query(None),
    admin_id: int = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    """
    后台看板

    不指定状态时按状态分组返回；指定状态时返回该状态的订单列表。
    """
    if status is None:
        return {"columns": orders.board(restaurant_id)}
    order_status = parse_status(status)
    items = orders.list_orders(order_status, restaurant_id)
    return {
        "status": order_status.value,
        "count": len(items),
        "orders": [o.model_dump(mode="json") for o in items],
    }


@router.get("/failure-reasons")
def failure_reasons():
    """标记失败时可选的原因"""
    return {"reasons": FAILURE_REASONS}


@router.get("/{order_id}")
def get_order(
    order_id: int,
    orders: OrderService = Depends(get_order_service),
):
    """订单详情（金额、状态历史和状态文案）"""
    return orders.order_details(order_id)


@router.post("/{order_id}/status", response_model=StatusHistoryResponse)
def transition_status(
    order_id: int,
    req: StatusTransitionRequest,
    admin_id: int = Depends(require_admin),
    workflow: OrderWorkflowService = Depends(get_workflow_service),
):
    """切换订单状态（切换到 echec 时必须提供原因）"""
    entry = workflow.transition(order_id, req.status, req.reason, req.is_paid, admin_id)
    return StatusHistoryResponse(
        order_id=order_id, status=entry.status, reason=entry.reason, timestamp=entry.timestamp
    )


@router.patch("/{order_id}/delivery-fee", response_model=Order)
def update_delivery_fee(
    order_id: int,
    req: DeliveryFeeUpdateRequest,
    admin_id: int = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    """修改配送费，区域未登记时一并新增"""
    return orders.update_delivery_fee(order_id, req.area, req.fee, is_admin=True, actor_id=admin_id)


@router.post("/{order_id}/payment-confirmation")
def confirm_payment(
    order_id: int,
    req: PaymentConfirmationRequest,
    orders: OrderService = Depends(get_order_service),
    gateway: PaymentGatewayProxy = Depends(get_payment_gateway),
):
    """支付回跳后确认支付结果"""
    return orders.confirm_payment(order_id, req.transaction_id, gateway)
