"""
积分服务模块
提供会员积分的计算和发放功能

业务规则：
- 订单总额 >= 5000 且下单时间不早于积分上线日期才可获得积分
- 配送费不计入积分基数
- 首次发放使用 10% 的比例，其余 5%，每 100 FCFA 折算 1 分
- “首次”按订单判断：该订单没有已审核的 points_grant 即视为首次
- 同一订单最多一笔已审核的发放记录，审核与加积分在同一事务内完成
- 下单使用积分时每分抵扣 100 FCFA
"""

import json
import logging
import math
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional

from ..core.database import DatabaseManager, rows_to_dicts
from ..core.exceptions import (
    NoPointsToCreditError,
    OrderNotEligibleError,
    OrderNotFoundError,
    UserNotFoundError,
)
from ..core.log import write_log
from ..models.base import to_naive_utc
from ..models.order import PointsTransactionStatus
from .pricing import DEFAULT_DELIVERY_FEE, format_price, normalize_price

logger = logging.getLogger(__name__)

LOYALTY_THRESHOLD = 5000
FIRST_RATE = 0.10
NORMAL_RATE = 0.05
CREDIT_PER_POINT = 100
POINT_VALUE = 100  # 下单时每分可抵扣的金额
INTEGRATION_DATE = datetime(2025, 1, 1)  # UTC

POINTS_GRANT = "points_grant"


def is_eligible(order_total: Any, created_at: Optional[datetime],
                threshold: float = LOYALTY_THRESHOLD,
                integration_date: datetime = INTEGRATION_DATE) -> bool:
    """订单是否满足积分条件（阈值包含边界）"""
    if normalize_price(order_total) < threshold:
        return False
    if created_at is None:
        return False
    return to_naive_utc(created_at) >= to_naive_utc(integration_date)


def points_delivery_fee(delivery_fee: Any, default: float = DEFAULT_DELIVERY_FEE) -> float:
    """计算积分时扣除的配送费，未保存或为 0 时按默认配送费"""
    return normalize_price(delivery_fee) or float(default)


def compute_points(order_total: Any, delivery_fee: Any, is_first_qualifying_order: bool) -> int:
    """
    计算应发放的积分

    points = floor((总额 - 配送费) * 比例 / 100)

    Args:
        order_total: 订单总额
        delivery_fee: 配送费（不计入积分基数）
        is_first_qualifying_order: 是否首次发放

    Returns:
        int: 积分，不会为负数
    """
    base = normalize_price(order_total) - normalize_price(delivery_fee)
    if not math.isfinite(base) or base <= 0:
        return 0
    rate = FIRST_RATE if is_first_qualifying_order else NORMAL_RATE
    points = Decimal(str(base)) * Decimal(str(rate)) / CREDIT_PER_POINT
    return int(points.to_integral_value(rounding=ROUND_FLOOR))


class PointsLedger:
    """积分账本：发放记录与用户积分余额的原子更新"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def has_approved_grant(self, order_id: int, con=None) -> bool:
        query = (
            "SELECT 1 FROM points_transactions "
            "WHERE order_id=? AND type=? AND status='approved'"
        )
        params = [order_id, POINTS_GRANT]
        if con is not None:
            return con.execute(query, params).fetchone() is not None
        return self.db.execute_one(query, params) is not None

    def record_pending_grant(self, con, order_id: int, user_id: int, points: int):
        """下单时登记待审核的积分发放"""
        con.execute(
            "INSERT INTO points_transactions(order_id, user_id, points_amount, type, status) "
            "VALUES (?,?,?,?,?)",
            [order_id, user_id, points, POINTS_GRANT, PointsTransactionStatus.PENDING.value]
        )

    def credit_points(self, order_id: int, user_id: int, points: int,
                      actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        发放积分（审核待处理记录或新建已审核记录，并增加用户余额）

        已存在已审核记录时不做任何修改，返回 already_credited=True。
        """
        with self.db.transaction() as con:
            user = con.execute("SELECT points FROM users WHERE id=?", [user_id]).fetchone()
            if not user:
                raise UserNotFoundError(user_id)

            if self.has_approved_grant(order_id, con):
                return {
                    "order_id": order_id,
                    "user_id": user_id,
                    "points_credited": 0,
                    "balance": user[0] or 0,
                    "already_credited": True,
                }

            pending = rows_to_dicts(con.execute(
                "SELECT transaction_id FROM points_transactions "
                "WHERE order_id=? AND type=? AND status='pending' ORDER BY transaction_id LIMIT 1",
                [order_id, POINTS_GRANT]
            ))
            if pending:
                transaction_id = pending[0]["transaction_id"]
                con.execute(
                    "UPDATE points_transactions SET status='approved', points_amount=?, updated_at=now() "
                    "WHERE transaction_id=?",
                    [points, transaction_id]
                )
            else:
                transaction_id = con.execute(
                    "INSERT INTO points_transactions(order_id, user_id, points_amount, type, status) "
                    "VALUES (?,?,?,?,?) RETURNING transaction_id",
                    [order_id, user_id, points, POINTS_GRANT, PointsTransactionStatus.APPROVED.value]
                ).fetchone()[0]

            con.execute(
                "UPDATE users SET points = COALESCE(points, 0) + ?, updated_at=now() WHERE id=?",
                [points, user_id]
            )
            balance = con.execute("SELECT points FROM users WHERE id=?", [user_id]).fetchone()[0]

            write_log(con, "points_credit", {
                "order_id": order_id,
                "transaction_id": transaction_id,
                "points": points,
                "balance_after": balance,
            }, user_id=user_id, actor_id=actor_id)

        logger.info("Credited %s points to user %s for order %s", points, user_id, order_id)
        return {
            "order_id": order_id,
            "user_id": user_id,
            "transaction_id": transaction_id,
            "points_credited": points,
            "balance": balance,
            "already_credited": False,
        }


class LoyaltyService:
    """积分服务类"""

    def __init__(self, db: DatabaseManager,
                 threshold: float = LOYALTY_THRESHOLD,
                 integration_date: datetime = INTEGRATION_DATE,
                 default_delivery_fee: float = DEFAULT_DELIVERY_FEE):
        self.db = db
        self.ledger = PointsLedger(db)
        self.threshold = threshold
        self.integration_date = integration_date
        self.default_delivery_fee = default_delivery_fee

    def eligible(self, order_total: Any, created_at: Optional[datetime]) -> bool:
        return is_eligible(order_total, created_at, self.threshold, self.integration_date)

    def points_for_order(self, order_id: int, total: Any, delivery_fee: Any) -> int:
        """按订单当前的发放记录计算可得积分"""
        is_first = not self.ledger.has_approved_grant(order_id)
        return compute_points(
            total, points_delivery_fee(delivery_fee, self.default_delivery_fee), is_first
        )

    def list_eligible_orders(self) -> List[Dict[str, Any]]:
        """
        获取可发放积分的订单列表（按下单时间倒序）

        Returns:
            list: 每项包含客户名称、订单金额和可发放积分
        """
        rows = self.db.fetch_dicts(
            """
            SELECT o.order_id, o.user_id, o.total, o.delivery_fee, o.contact_json,
                   o.created_at, u.first_name, u.last_name, u.email
            FROM orders o
            LEFT JOIN users u ON o.user_id = u.id
            WHERE o.total >= ?
            ORDER BY o.created_at DESC, o.order_id DESC
            """,
            [self.threshold]
        )

        result = []
        for row in rows:
            if not self.eligible(row["total"], row["created_at"]):
                continue
            result.append({
                "order_id": row["order_id"],
                "user_id": row["user_id"],
                "client_name": self._client_name(row),
                "total": row["total"],
                "total_label": f"{format_price(row['total'])} FCFA",
                "created_at": row["created_at"],
                "points_to_credit": self.points_for_order(
                    row["order_id"], row["total"], row["delivery_fee"]
                ),
                "already_credited": self.ledger.has_approved_grant(row["order_id"]),
            })
        return result

    def credit_points(self, order_id: int, actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        为订单发放积分

        Raises:
            OrderNotFoundError: 订单不存在
            OrderNotEligibleError: 订单不满足积分条件
            NoPointsToCreditError: 计算结果为 0
            UserNotFoundError: 游客订单或用户不存在
        """
        order = self.db.fetch_dict(
            "SELECT order_id, user_id, total, delivery_fee, created_at FROM orders WHERE order_id=?",
            [order_id]
        )
        if not order:
            raise OrderNotFoundError(order_id)
        if order["user_id"] is not None and self.ledger.has_approved_grant(order_id):
            return self.ledger.credit_points(order_id, order["user_id"], 0, actor_id)
        if not self.eligible(order["total"], order["created_at"]):
            raise OrderNotEligibleError(order_id)

        points = self.points_for_order(order_id, order["total"], order["delivery_fee"])
        if points <= 0:
            raise NoPointsToCreditError(order_id)
        if order["user_id"] is None:
            raise UserNotFoundError(None)

        return self.ledger.credit_points(order_id, order["user_id"], points, actor_id)

    @staticmethod
    def _client_name(row: Dict[str, Any]) -> str:
        if row.get("user_id") is not None:
            name = f"{row.get('first_name') or ''} {row.get('last_name') or ''}".strip()
            return name or row.get("email") or "Utilisateur inconnu"
        contact = row.get("contact_json")
        if contact:
            name = (json.loads(contact) or {}).get("name")
            if name:
                return name
        return "Utilisateur inconnu"
