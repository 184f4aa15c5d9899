"""
基础数据模型
定义通用的模型基类和常用字段
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel


def utcnow() -> datetime:
    """当前 UTC 时间（不带时区，与数据库 TIMESTAMP 字段一致）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """把任意 datetime 统一为不带时区的 UTC 时间"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TimestampMixin(BaseModel):
    """时间戳混入类"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BaseEntity(BaseModel):
    """基础实体模型"""

    model_config = {"from_attributes": True}
