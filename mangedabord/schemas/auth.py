"""
认证相关的请求/响应模式
"""

from typing import Optional

from pydantic import BaseModel, Field


class GuestLoginRequest(BaseModel):
    """游客登录请求（以手机号识别）"""
    phone: str = Field(..., min_length=1, description="手机号", examples=["+237690000000"])
    name: Optional[str] = Field(None, description="称呼")


class LoginResponse(BaseModel):
    """登录响应"""
    token: str = Field(description="JWT访问令牌")
    user_id: int = Field(description="用户ID")
    is_admin: bool = Field(description="是否为管理员")
    is_guest: bool = Field(description="是否为游客")
