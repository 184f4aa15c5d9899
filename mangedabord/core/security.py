"""
安全相关功能
JWT 令牌的签发和校验，以及 FastAPI 的认证依赖

令牌内容：user_id、is_admin、exp、iat
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .exceptions import AuthenticationError, AuthorizationError


class SecurityManager:
    """安全管理器"""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_hours: int = 24 * 7):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_hours = expire_hours

    def create_jwt_token(self, user_id: int, is_admin: bool = False,
                         additional_claims: Dict[str, Any] = None) -> str:
        """创建JWT token"""
        now = datetime.now(timezone.utc)
        payload = {
            "user_id": user_id,
            "is_admin": is_admin,
            "exp": now + timedelta(hours=self.expire_hours),
            "iat": now,
        }
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        """解码JWT token"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("登录已过期")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"无效的令牌: {e}")
        if payload.get("user_id") is None:
            raise AuthenticationError("令牌缺少 user_id")
        return payload


bearer_scheme = HTTPBearer(auto_error=False)


def get_security_manager(request: Request) -> SecurityManager:
    return request.app.state.security


async def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    security: SecurityManager = Depends(get_security_manager),
) -> Optional[Dict[str, Any]]:
    """解析 Authorization 头，没有提供时返回 None"""
    if credentials is None:
        return None
    return security.decode_jwt_token(credentials.credentials)


async def get_optional_user_id(
    payload: Optional[Dict[str, Any]] = Depends(get_token_payload),
) -> Optional[int]:
    """当前用户ID，游客访问时为 None"""
    return payload["user_id"] if payload else None


async def get_current_user_id(
    payload: Optional[Dict[str, Any]] = Depends(get_token_payload),
) -> int:
    """获取当前用户ID，未登录时返回 401"""
    if not payload:
        raise AuthenticationError("请先登录")
    return payload["user_id"]


async def require_admin(
    payload: Optional[Dict[str, Any]] = Depends(get_token_payload),
) -> int:
    """要求管理员权限，返回管理员的用户ID"""
    if not payload:
        raise AuthenticationError("请先登录")
    if not payload.get("is_admin"):
        raise AuthorizationError("需要管理员权限")
    return payload["user_id"]
