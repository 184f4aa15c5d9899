"""
订单状态流转
后台看板拖动订单到另一列时调用，每次变更都会：
- 写入状态历史
- 更新订单上的冗余 status 字段（以及可选的 is_paid）
- 给下单用户生成一条未读通知
- 进入“已送达”时记录一次 purchase 埋点

状态之间不做合法性限制，任何状态都可以切换到任何状态；
只有切换到 FAILED 时必须提供原因。
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from ..core.database import DatabaseManager
from ..core.exceptions import FailureReasonRequiredError, InvalidStatusError
from ..core.log import write_log
from ..models.base import utcnow
from ..models.order import Order, OrderStatus, StatusHistoryEntry
from .catalog_service import CatalogService
from .order_service import OrderService

logger = logging.getLogger(__name__)

PURCHASE_CURRENCY = "XAF"


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    """解析状态值，兼容历史取值"""
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatusError(value)


def apply_transition(order: Order, new_status: Union[str, OrderStatus],
                     reason: Optional[str] = None,
                     now: Optional[datetime] = None) -> StatusHistoryEntry:
    """
    对内存中的订单执行一次状态切换

    Args:
        order: 订单（会被修改：追加历史并更新 status）
        new_status: 目标状态
        reason: 失败原因，仅 FAILED 使用
        now: 变更时间，默认当前 UTC 时间

    Returns:
        StatusHistoryEntry: 新追加的历史记录

    Raises:
        InvalidStatusError: 未知状态
        FailureReasonRequiredError: 切换到 FAILED 但没有原因
    """
    status = parse_status(new_status)
    if status == OrderStatus.FAILED:
        if not reason or not reason.strip():
            raise FailureReasonRequiredError()
        reason = reason.strip()
    else:
        reason = None

    entry = StatusHistoryEntry(status=status, reason=reason, timestamp=now or utcnow())
    order.history.append(entry)
    order.status = status
    return entry


class OrderWorkflowService:
    """订单状态流转服务"""

    def __init__(self, db: DatabaseManager, orders: OrderService, catalog: CatalogService):
        self.db = db
        self.orders = orders
        self.catalog = catalog

    def transition(self, order_id: int, new_status: Union[str, OrderStatus],
                   reason: Optional[str] = None, is_paid: Optional[bool] = None,
                   actor_id: Optional[int] = None) -> StatusHistoryEntry:
        """
        切换订单状态并持久化（历史、订单、通知、埋点在同一事务内）

        Args:
            order_id: 订单ID
            new_status: 目标状态
            reason: 失败原因
            is_paid: 同时更新的支付状态，为 None 时不修改
            actor_id: 执行操作的管理员

        Returns:
            StatusHistoryEntry: 新的历史记录
        """
        with self.db.transaction() as con:
            order = self.orders.get_order(order_id)
            old_status = order.status
            entry = apply_transition(order, new_status, reason)

            con.execute(
                "INSERT INTO order_status_history(order_id, status, reason, created_at) VALUES (?,?,?,?)",
                [order_id, entry.status.value, entry.reason, entry.timestamp]
            )
            if is_paid is None:
                con.execute(
                    "UPDATE orders SET status=?, updated_at=? WHERE order_id=?",
                    [entry.status.value, entry.timestamp, order_id]
                )
            else:
                con.execute(
                    "UPDATE orders SET status=?, is_paid=?, updated_at=? WHERE order_id=?",
                    [entry.status.value, is_paid, entry.timestamp, order_id]
                )

            if order.user_id is not None:
                self._notify(con, order, old_status, entry)

            if entry.status == OrderStatus.DELIVERED and old_status != OrderStatus.DELIVERED:
                self._track_purchase(con, order, actor_id)

            write_log(con, "order_status_change", {
                "order_id": order_id,
                "old_status": old_status.value,
                "new_status": entry.status.value,
                "reason": entry.reason,
                "is_paid": is_paid,
            }, user_id=order.user_id, actor_id=actor_id)

        logger.info("Order %s moved from %s to %s", order_id, old_status.value, entry.status.value)
        return entry

    def _notify(self, con, order: Order, old_status: OrderStatus, entry: StatusHistoryEntry):
        """给下单用户生成状态变更通知"""
        con.execute(
            """
            INSERT INTO notifications(user_id, order_id, restaurant_id, old_status, new_status,
                                      reason, item_names, points_used, points_reduction, is_read)
            VALUES (?,?,?,?,?,?,?,?,?,FALSE)
            """,
            [
                order.user_id, order.order_id, order.restaurant_id,
                old_status.value, entry.status.value, entry.reason,
                self._item_names(order), order.points_used, order.points_reduction or 0,
            ]
        )

    def _item_names(self, order: Order) -> str:
        missing = [i.dish_id for i in order.items if not i.dish_name]
        catalog = self.catalog.items_by_id(missing) if missing else {}
        names = []
        for item in order.items:
            if item.dish_name:
                names.append(item.dish_name)
            elif item.dish_id in catalog:
                names.append(catalog[item.dish_id].name)
            else:
                names.append("Article inconnu")
        return ", ".join(names)

    def _track_purchase(self, con, order: Order, actor_id: Optional[int]):
        """记录 purchase 埋点，金额为重新计算后的订单总额"""
        totals = self.orders.compute_order_totals(order)
        detail: Dict[str, Any] = {
            "order_id": order.order_id,
            "value": totals.total,
            "currency": PURCHASE_CURRENCY,
            "content_ids": [item.dish_id for item in order.items],
            "content_type": "product",
        }
        write_log(con, "purchase", detail, user_id=order.user_id, actor_id=actor_id)
