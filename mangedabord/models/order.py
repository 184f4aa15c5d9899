"""
订单相关数据模型
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .base import BaseEntity, TimestampMixin


class OrderStatus(str, Enum):
    """订单状态枚举（库中存储的取值）"""
    PENDING = "en_attente"              # 待处理
    PREPARING = "en_preparation"        # 制作中
    READY_TO_DELIVER = "pret_a_livrer"  # 待配送
    DELIVERING = "en_livraison"         # 配送中
    DELIVERED = "livree"                # 已送达
    FAILED = "echec"                    # 失败

    @classmethod
    def _missing_(cls, value):
        # 兼容历史数据：annulee 等取消状态统一视为失败，英文名不区分大小写
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        if key in LEGACY_STATUS_MAP:
            return LEGACY_STATUS_MAP[key]
        for member in cls:
            if member.name.lower() == key or member.value == key:
                return member
        return None


LEGACY_STATUS_MAP = {
    "annulee": OrderStatus.FAILED,
    "cancelled": OrderStatus.FAILED,
    "canceled": OrderStatus.FAILED,
    "confirmed": OrderStatus.PENDING,
    "pending": OrderStatus.PENDING,
}

STATUS_LABELS = {
    OrderStatus.PENDING: "En attente",
    OrderStatus.PREPARING: "En préparation",
    OrderStatus.READY_TO_DELIVER: "Prêt à livrer",
    OrderStatus.DELIVERING: "En livraison",
    OrderStatus.DELIVERED: "Livrée",
    OrderStatus.FAILED: "Échec",
}

STATUS_COMMENTS = {
    OrderStatus.PENDING: "Commande en attente d’être validée",
    OrderStatus.PREPARING: "Un livreur vous appelera dès que votre commande sera prête",
    OrderStatus.READY_TO_DELIVER: "Commande prête, en attente d’un livreur",
    OrderStatus.DELIVERING: "Commande en route pour la livraison",
    OrderStatus.DELIVERED: "Commande livrée avec succès",
    OrderStatus.FAILED: "La livraison a échoué (contactez le support)",
}

FAILURE_REASONS = [
    "Client injoignable",
    "Adresse incorrecte",
    "Annulation par le client",
    "Problème de stock",
    "Erreur de livraison",
    "Autre",
]


class PointsTransactionStatus(str, Enum):
    """积分流水状态"""
    PENDING = "pending"
    APPROVED = "approved"


class LineItem(BaseModel):
    """订单行"""
    dish_id: str = Field(..., description="菜品ID")
    dish_name: Optional[str] = Field(None, description="下单时的菜品名称")
    quantity: int = Field(1, ge=1, description="数量")
    price: Union[float, str, None] = Field(None, description="下单时锁定的单价")
    dish_price: Union[float, str, None] = Field(None, description="旧版本订单的单价字段")
    selected_extras: Dict[str, List[int]] = Field(
        default_factory=dict, description="加料列表ID -> 选中选项下标"
    )


class Address(BaseModel):
    """配送地址"""
    area: Optional[str] = Field(None, description="区域（quartier）")
    description: Optional[str] = Field(None, description="详细地址")
    phone: Optional[str] = Field(None, description="联系电话")


class Contact(BaseModel):
    """游客下单的联系人"""
    name: Optional[str] = None
    phone: Optional[str] = None


class StatusHistoryEntry(BaseModel):
    """状态变更记录"""
    status: OrderStatus = Field(..., description="新状态")
    reason: Optional[str] = Field(None, description="失败原因")
    timestamp: datetime = Field(..., description="变更时间")


class Order(BaseEntity, TimestampMixin):
    """订单完整模型"""
    order_id: Optional[int] = Field(None, description="订单ID")
    user_id: Optional[int] = Field(None, description="下单用户，游客为空")
    restaurant_id: Optional[str] = Field(None, description="餐厅ID")
    items: List[LineItem] = Field(default_factory=list, description="订单行")
    address: Optional[Address] = Field(None, description="配送地址，自取为空")
    contact: Optional[Contact] = Field(None, description="游客联系人")
    payment_method: Optional[str] = Field(None, description="支付方式")
    payment_ref: Optional[str] = Field(None, description="支付流水号")
    total: float = Field(0, description="订单总额")
    delivery_fee: Optional[float] = Field(None, description="配送费")
    points_used: int = Field(0, ge=0, description="使用的积分")
    points_reduction: Optional[float] = Field(None, description="积分抵扣金额")
    status: OrderStatus = Field(OrderStatus.PENDING, description="订单状态")
    is_paid: bool = Field(False, description="是否已支付")
    history: List[StatusHistoryEntry] = Field(default_factory=list, description="状态历史")

