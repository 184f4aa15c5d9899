"""
通知服务
订单状态变更后给用户生成的站内通知
"""

from typing import Any, Dict, List

from ..core.database import DatabaseManager
from ..core.exceptions import BusinessLogicError


class NotificationService:
    """通知服务"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def list_for_user(self, user_id: int, unread_only: bool = False) -> List[Dict[str, Any]]:
        """获取用户的通知，新通知在前"""
        query = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            query += " AND NOT is_read"
        query += " ORDER BY created_at DESC, notification_id DESC"
        return self.db.fetch_dicts(query, [user_id])

    def mark_read(self, notification_id: int, user_id: int) -> Dict[str, Any]:
        """把通知标记为已读，只能操作自己的通知"""
        row = self.db.fetch_dict(
            "SELECT * FROM notifications WHERE notification_id = ? AND user_id = ?",
            [notification_id, user_id]
        )
        if not row:
            raise BusinessLogicError("通知不存在", "NOTIFICATION_NOT_FOUND",
                                     {"notification_id": notification_id})
        self.db.execute_query(
            "UPDATE notifications SET is_read = TRUE WHERE notification_id = ?", [notification_id]
        )
        row["is_read"] = True
        return row
