"""
Business logic services.
Contains service layer implementations for core business operations.
"""

from .catalog_service import CatalogService
from .loyalty import LoyaltyService, PointsLedger
from .notification_service import NotificationService
from .order_service import OrderService
from .order_workflow import OrderWorkflowService
from .payment_gateway import PaymentGatewayProxy
from .token_cache import AccessTokenCache
from .user_service import UserService

__all__ = [
    "AccessTokenCache",
    "CatalogService",
    "LoyaltyService",
    "NotificationService",
    "OrderService",
    "OrderWorkflowService",
    "PaymentGatewayProxy",
    "PointsLedger",
    "UserService",
]
