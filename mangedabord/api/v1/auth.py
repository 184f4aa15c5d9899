"""
用户认证路由模块
游客以手机号换取令牌，已登录用户可查询自己的资料和积分
"""

from fastapi import APIRouter, Depends

from ...core.security import SecurityManager, get_current_user_id, get_security_manager
from ...models.user import User
from ...schemas.auth import GuestLoginRequest, LoginResponse
from ...services import UserService
from ..deps import get_user_service

router = APIRouter()


@router.post("/guest", response_model=LoginResponse)
def guest_login(
    req: GuestLoginRequest,
    users: UserService = Depends(get_user_service),
    security: SecurityManager = Depends(get_security_manager),
):
    """
    游客登录

    按手机号查找或创建游客账户，并签发访问令牌。
    """
    user = users.get_or_create_guest(req.phone, req.name)
    return LoginResponse(
        token=security.create_jwt_token(user.id, user.is_admin),
        user_id=user.id,
        is_admin=user.is_admin,
        is_guest=user.is_guest,
    )


@router.get("/me", response_model=User)
def me(
    user_id: int = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
):
    """当前用户资料（含积分余额）"""
    return users.get_user(user_id)
