"""
路由依赖
服务实例在 create_app 中创建并挂在 app.state 上，路由通过这些函数获取
"""

from fastapi import Request

from ..services import (
    CatalogService,
    LoyaltyService,
    NotificationService,
    OrderService,
    OrderWorkflowService,
    PaymentGatewayProxy,
    UserService,
)


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_order_service(request: Request) -> OrderService:
    return request.app.state.orders


def get_workflow_service(request: Request) -> OrderWorkflowService:
    return request.app.state.workflow


def get_loyalty_service(request: Request) -> LoyaltyService:
    return request.app.state.loyalty


def get_user_service(request: Request) -> UserService:
    return request.app.state.users


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notifications


def get_payment_gateway(request: Request) -> PaymentGatewayProxy:
    return request.app.state.gateway
