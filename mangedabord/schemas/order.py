"""
订单相关的请求/响应模式
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.order import Address, Contact, OrderStatus


class LineItemRequest(BaseModel):
    """下单时的订单行"""
    dish_id: str = Field(..., description="菜品ID")
    quantity: int = Field(1, ge=1, le=99, description="数量")
    selected_extras: Dict[str, List[int]] = Field(default_factory=dict, description="加料选择")


class OrderCreateRequest(BaseModel):
    """订单创建请求"""
    restaurant_id: Optional[str] = Field(None, description="餐厅ID")
    items: List[LineItemRequest] = Field(..., min_length=1, description="订单行")
    address: Optional[Address] = Field(None, description="配送地址，自取时为空")
    contact: Optional[Contact] = Field(None, description="游客联系人")
    payment_method: Optional[str] = Field(None, description="支付方式")
    delivery_fee: Optional[float] = Field(None, ge=0, description="指定配送费，缺省按区域计算")
    points_used: int = Field(0, ge=0, description="使用的积分")
    points_reduction: Optional[float] = Field(None, ge=0, description="积分抵扣金额，缺省按使用的积分折算")


class StatusTransitionRequest(BaseModel):
    """状态切换请求"""
    status: str = Field(..., description="目标状态")
    reason: Optional[str] = Field(None, description="失败原因（status 为 echec 时必填）")
    is_paid: Optional[bool] = Field(None, description="同时更新的支付状态")


class StatusHistoryResponse(BaseModel):
    """状态切换响应"""
    order_id: int = Field(..., description="订单ID")
    status: OrderStatus = Field(..., description="新状态")
    reason: Optional[str] = Field(None, description="失败原因")
    timestamp: datetime = Field(..., description="变更时间")


class DeliveryFeeUpdateRequest(BaseModel):
    """修改配送费请求"""
    area: str = Field(..., min_length=1, description="配送区域")
    fee: float = Field(..., description="新的配送费")


class PaymentConfirmationRequest(BaseModel):
    """支付回跳确认请求"""
    transaction_id: str = Field(..., min_length=1, description="支付网关流水号")

