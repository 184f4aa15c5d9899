"""
订单服务模块
提供订单相关的核心业务逻辑，包括下单、查询、看板和配送费调整

主要功能：
- 下单：锁定单价、按区域计算配送费、扣减使用的积分
- 订单详情和金额计算
- 后台看板（按状态分组）
- 支付回跳后确认支付状态

业务规则：
- 订单行的单价在下单时锁定，之后目录调价不影响历史订单
- 加料只保存选项下标，展示时按当前加料目录解析
- 使用积分与创建订单在同一事务内完成
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import (
    InsufficientPointsError,
    OrderNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ..core.log import write_log
from ..models.base import utcnow
from ..models.order import (
    STATUS_COMMENTS,
    STATUS_LABELS,
    Address,
    Contact,
    LineItem,
    Order,
    OrderStatus,
    StatusHistoryEntry,
)
from ..schemas.order import OrderCreateRequest
from .catalog_service import CatalogService
from .loyalty import POINT_VALUE, LoyaltyService, compute_points, points_delivery_fee
from .pricing import (
    DEFAULT_DELIVERY_FEE,
    OrderTotals,
    compute_totals,
    normalize_price,
    resolve_delivery_fee,
)

logger = logging.getLogger(__name__)

# 支付网关返回的成功状态（已转为小写）
PAYMENT_SUCCESS_STATUSES = {"success", "succeeded", "successful", "completed", "paid"}


class OrderService:
    """订单服务类，封装所有订单相关的业务逻辑"""

    def __init__(self, db: DatabaseManager, catalog: CatalogService, loyalty: LoyaltyService,
                 default_delivery_fee: float = DEFAULT_DELIVERY_FEE):
        self.db = db
        self.catalog = catalog
        self.loyalty = loyalty
        self.default_delivery_fee = default_delivery_fee

    def place_order(self, req: OrderCreateRequest, user_id: Optional[int] = None) -> Order:
        """
        创建新订单

        Args:
            req: 下单请求
            user_id: 登录用户ID，游客下单为 None

        Returns:
            Order: 保存后的订单

        Raises:
            ValidationError: 游客使用积分、缺少联系人、菜品不存在或积分抵扣不符时
            UserNotFoundError: 用户不存在时
            InsufficientPointsError: 积分余额不足时
        """
        if user_id is None and (req.points_used or req.points_reduction):
            raise ValidationError("游客下单不能使用积分")
        if user_id is None and not (req.contact and req.contact.phone):
            raise ValidationError("游客下单必须提供联系电话")

        catalog_items = self.catalog.items_by_id(i.dish_id for i in req.items)
        items = []
        for line in req.items:
            catalog_item = catalog_items.get(line.dish_id)
            if catalog_item is None:
                raise ValidationError(f"菜品不存在: {line.dish_id}", details={"dish_id": line.dish_id})
            items.append(LineItem(
                dish_id=line.dish_id,
                dish_name=catalog_item.name,
                quantity=line.quantity,
                price=normalize_price(catalog_item.price),
                selected_extras=line.selected_extras,
            ))

        order = Order(
            user_id=user_id,
            restaurant_id=req.restaurant_id,
            items=items,
            address=req.address,
            contact=req.contact,
            payment_method=req.payment_method,
            delivery_fee=self._delivery_fee_for(req),
            points_used=req.points_used,
            points_reduction=self._points_reduction_for(req),
            created_at=utcnow(),
        )
        totals = self.compute_order_totals(order)
        if totals.points_reduction > totals.subtotal + totals.delivery_fee:
            raise ValidationError("积分抵扣金额超过订单金额", details={
                "points_reduction": totals.points_reduction,
                "amount": totals.subtotal + totals.delivery_fee,
            })
        order.total = totals.total

        with self.db.transaction() as con:
            if user_id is not None:
                user = con.execute("SELECT points FROM users WHERE id=?", [user_id]).fetchone()
                if not user:
                    raise UserNotFoundError(user_id)
                available = user[0] or 0
                if order.points_used > available:
                    raise InsufficientPointsError(available, order.points_used)

            order_id = con.execute(
                """
                INSERT INTO orders(user_id, restaurant_id, items_json, address_json, contact_json,
                                   payment_method, total, delivery_fee, points_used, points_reduction,
                                   status, is_paid, created_at, updated_at)
                VALUES (?,?,?,?,?,?,?,?,?,?,?,FALSE,?,?)
                RETURNING order_id
                """,
                [
                    user_id, order.restaurant_id,
                    json.dumps([i.model_dump() for i in order.items], ensure_ascii=False),
                    order.address.model_dump_json() if order.address else None,
                    order.contact.model_dump_json() if order.contact else None,
                    order.payment_method, order.total, order.delivery_fee,
                    order.points_used, order.points_reduction,
                    OrderStatus.PENDING.value, order.created_at, order.created_at,
                ]
            ).fetchone()[0]

            if order.points_used:
                con.execute(
                    "UPDATE users SET points = points - ?, updated_at=now() WHERE id=?",
                    [order.points_used, user_id]
                )

            # 满足条件的订单先登记一笔待审核的积分，由后台确认发放
            if user_id is not None and self.loyalty.eligible(order.total, order.created_at):
                points = compute_points(
                    order.total,
                    points_delivery_fee(order.delivery_fee, self.default_delivery_fee),
                    True
                )
                if points > 0:
                    self.loyalty.ledger.record_pending_grant(con, order_id, user_id, points)

            write_log(con, "order_create", {
                "order_id": order_id,
                "total": order.total,
                "delivery_fee": order.delivery_fee,
                "points_used": order.points_used,
            }, user_id=user_id, actor_id=user_id)

        logger.info("Order %s placed (total=%s, user=%s)", order_id, order.total, user_id)
        return self.get_order(order_id)

    @staticmethod
    def _points_reduction_for(req: OrderCreateRequest) -> float:
        """积分抵扣金额按使用的积分折算，客户端传入的金额必须一致"""
        reduction = float(req.points_used * POINT_VALUE)
        if req.points_reduction is not None and req.points_reduction != reduction:
            raise ValidationError("积分抵扣金额与使用的积分不符", details={
                "points_used": req.points_used,
                "expected": reduction,
            })
        return reduction

    def _delivery_fee_for(self, req: OrderCreateRequest) -> float:
        if req.delivery_fee is not None:
            return req.delivery_fee
        if req.address is None:
            return 0.0  # 到店自取
        return resolve_delivery_fee(
            req.address.area, self.catalog.list_quartiers(), self.default_delivery_fee
        )

    def get_order(self, order_id: int) -> Order:
        """获取订单（含状态历史）"""
        row = self.db.fetch_dict("SELECT * FROM orders WHERE order_id=?", [order_id])
        if not row:
            raise OrderNotFoundError(order_id)
        history = self.db.fetch_dicts(
            "SELECT status, reason, created_at FROM order_status_history "
            "WHERE order_id=? ORDER BY history_id",
            [order_id]
        )
        return self._row_to_order(row, history)

    def list_orders(self, status: Optional[OrderStatus] = None,
                    restaurant_id: Optional[str] = None) -> List[Order]:
        """按条件列出订单（不含历史），新订单在前"""
        conditions, params = [], []
        if restaurant_id:
            conditions.append("restaurant_id = ?")
            params.append(restaurant_id)
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.db.fetch_dicts(
            f"SELECT * FROM orders {where} ORDER BY created_at DESC, order_id DESC", params
        )
        orders = [self._row_to_order(row) for row in rows]
        if status is not None:
            # 历史数据可能存的是旧状态值，解析后再过滤
            orders = [o for o in orders if o.status == status]
        return orders

    def board(self, restaurant_id: Optional[str] = None) -> Dict[str, Any]:
        """后台看板：按状态分组的订单和数量"""
        columns = {
            status.value: {"label": STATUS_LABELS[status], "count": 0, "orders": []}
            for status in OrderStatus
        }
        for order in self.list_orders(restaurant_id=restaurant_id):
            column = columns[order.status.value]
            column["count"] += 1
            column["orders"].append({
                "order": order.model_dump(mode="json"),
                "totals": self.compute_order_totals(order).to_dict(),
            })
        return columns

    def compute_order_totals(self, order: Order) -> OrderTotals:
        """按当前目录计算订单金额"""
        extra_list_ids = {eid for item in order.items for eid in item.selected_extras}
        dish_ids = [item.dish_id for item in order.items]
        return compute_totals(
            order,
            self.catalog.extra_lists_by_id(extra_list_ids),
            self.catalog.items_by_id(dish_ids),
            self.default_delivery_fee,
        )

    def order_details(self, order_id: int) -> Dict[str, Any]:
        """订单详情：订单、金额、状态文案"""
        order = self.get_order(order_id)
        return {
            "order": order.model_dump(mode="json"),
            "totals": self.compute_order_totals(order).to_dict(),
            "status_label": STATUS_LABELS[order.status],
            "status_comment": STATUS_COMMENTS[order.status],
        }

    def update_delivery_fee(self, order_id: int, area: str, fee: float,
                            is_admin: bool = False, actor_id: Optional[int] = None) -> Order:
        """
        修改订单配送费并重新计算总额

        管理员修改时，如果区域尚未登记，会同时新增该配送区域。
        """
        if fee < 0:
            raise ValidationError("配送费不能为负数")

        order = self.get_order(order_id)
        if is_admin and self.catalog.find_quartier(area) is None:
            self.catalog.add_quartier(area, int(fee))

        order.delivery_fee = fee
        order.total = self.compute_order_totals(order).total
        with self.db.transaction() as con:
            con.execute(
                "UPDATE orders SET delivery_fee=?, total=?, updated_at=? WHERE order_id=?",
                [fee, order.total, utcnow(), order_id]
            )
            write_log(con, "order_delivery_fee", {
                "order_id": order_id, "area": area, "fee": fee, "total": order.total
            }, user_id=order.user_id, actor_id=actor_id)
        return self.get_order(order_id)

    def confirm_payment(self, order_id: int, transaction_id: str, gateway) -> Dict[str, Any]:
        """
        支付回跳后确认支付结果

        向支付网关查询流水状态，成功时把订单标记为已支付并记录流水号。
        """
        order = self.get_order(order_id)
        status = gateway.get_status(transaction_id)
        paid = status in PAYMENT_SUCCESS_STATUSES
        if paid:
            with self.db.transaction() as con:
                con.execute(
                    "UPDATE orders SET is_paid=TRUE, payment_ref=?, updated_at=? WHERE order_id=?",
                    [transaction_id, utcnow(), order_id]
                )
                write_log(con, "order_paid", {
                    "order_id": order_id, "transaction_id": transaction_id, "status": status
                }, user_id=order.user_id)
        else:
            logger.warning("Payment %s for order %s not successful: %s",
                           transaction_id, order_id, status)
        return {"order_id": order_id, "payment_status": status, "is_paid": paid or order.is_paid}

    @staticmethod
    def _row_to_order(row: Dict[str, Any], history: Optional[List[Dict[str, Any]]] = None) -> Order:
        return Order(
            order_id=row["order_id"],
            user_id=row["user_id"],
            restaurant_id=row["restaurant_id"],
            items=[LineItem(**i) for i in json.loads(row["items_json"] or "[]")],
            address=Address(**json.loads(row["address_json"])) if row["address_json"] else None,
            contact=Contact(**json.loads(row["contact_json"])) if row["contact_json"] else None,
            payment_method=row["payment_method"],
            payment_ref=row["payment_ref"],
            total=row["total"],
            delivery_fee=row["delivery_fee"],
            points_used=row["points_used"] or 0,
            points_reduction=row["points_reduction"],
            status=OrderStatus(row["status"]),
            is_paid=bool(row["is_paid"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            history=[
                StatusHistoryEntry(status=h["status"], reason=h["reason"], timestamp=h["created_at"])
                for h in history or []
            ],
        )
