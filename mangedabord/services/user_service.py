"""
用户服务
处理用户资料、游客账户和积分余额
"""

import logging
from typing import Optional

from ..core.database import DatabaseManager
from ..core.exceptions import UserNotFoundError, ValidationError
from ..core.log import write_log
from ..models.user import User, UserCreate

logger = logging.getLogger(__name__)


class UserService:
    """用户服务"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def get_user(self, user_id: int) -> User:
        """获取用户资料"""
        row = self.db.fetch_dict("SELECT * FROM users WHERE id = ?", [user_id])
        if not row:
            raise UserNotFoundError(user_id)
        return User(**row)

    def create_user(self, data: UserCreate, is_admin: bool = False) -> User:
        """创建用户"""
        with self.db.transaction() as con:
            user_id = con.execute(
                "INSERT INTO users(email, phone, first_name, last_name, is_admin, is_guest) "
                "VALUES (?,?,?,?,?,?) RETURNING id",
                [data.email, data.phone, data.first_name, data.last_name, is_admin, data.is_guest]
            ).fetchone()[0]
            write_log(con, "user_create", {"is_guest": data.is_guest, "is_admin": is_admin},
                      user_id=user_id, actor_id=user_id)
        return self.get_user(user_id)

    def get_or_create_guest(self, phone: str, name: Optional[str] = None) -> User:
        """
        按手机号获取游客账户，不存在时创建

        游客只以手机号识别，不需要登录凭证。
        """
        phone = (phone or "").strip()
        if not phone:
            raise ValidationError("游客账户必须提供手机号")

        row = self.db.fetch_dict(
            "SELECT * FROM users WHERE phone = ? AND is_guest ORDER BY id LIMIT 1", [phone]
        )
        if row:
            return User(**row)

        logger.info("Creating guest account for phone %s", phone)
        return self.create_user(UserCreate(phone=phone, first_name=name, is_guest=True))

    def get_points(self, user_id: int) -> int:
        """获取积分余额"""
        return self.get_user(user_id).points
