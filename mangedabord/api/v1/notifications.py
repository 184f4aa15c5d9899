"""
用户通知路由模块
"""

from fastapi import APIRouter, Depends

from ...core.security import get_current_user_id
from ...services import NotificationService
from ..deps import get_notification_service

router = APIRouter()


@router.get("")
def list_notifications(
    unread_only: bool = False,
    user_id: int = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    """当前用户的通知"""
    items = notifications.list_for_user(user_id, unread_only)
    return {"count": len(items), "notifications": items}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    notifications: NotificationService = Depends(get_notification_service),
):
    return notifications.mark_read(notification_id, user_id)
