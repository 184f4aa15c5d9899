"""
用户相关数据模型
"""

from typing import Optional

from pydantic import BaseModel, Field

from .base import BaseEntity, TimestampMixin


class UserBase(BaseModel):
    """用户基础字段"""
    email: Optional[str] = Field(None, description="邮箱")
    phone: Optional[str] = Field(None, description="手机号（游客以手机号识别）")
    first_name: Optional[str] = Field(None, max_length=100, description="名")
    last_name: Optional[str] = Field(None, max_length=100, description="姓")


class UserCreate(UserBase):
    """用户创建模型"""
    is_guest: bool = Field(False, description="是否为游客账户")


class User(UserBase, BaseEntity, TimestampMixin):
    """用户完整模型"""
    id: int = Field(..., description="用户ID")
    is_admin: bool = Field(False, description="是否为管理员")
    is_guest: bool = Field(False, description="是否为游客账户")
    points: int = Field(0, description="积分余额")

