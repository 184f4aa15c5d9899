"""
支付网关代理
把前端的支付请求转发给上游支付网关（Flashup），并统一错误格式

上游接口：
- POST {base_api_url}/rest/api/v1/payments/init
- GET  {base_api_url}/rest/api/v1/payments/{transaction_id}
"""

import logging
import math
from typing import Any, Dict, Optional

import requests

from ..core.exceptions import PaymentValidationError, UpstreamGatewayError
from .token_cache import AccessTokenCache

logger = logging.getLogger(__name__)

INIT_PATH = "/rest/api/v1/payments/init"
STATUS_PATH = "/rest/api/v1/payments/{transaction_id}"

REQUIRED_INIT_FIELDS = ("amount", "description", "success_url", "failure_url")
OPTIONAL_INIT_FIELDS = ("customer_email", "customer_phone", "order_id", "callback_url")

INIT_ERROR_MESSAGE = "支付初始化失败"
STATUS_ERROR_MESSAGE = "支付状态查询失败"


def validate_init_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    校验并规范化支付初始化请求

    必填字段缺失（或为空值）、金额不是正数时抛出 PaymentValidationError；
    可选字段只有非空时才转发，金额统一转为浮点数。

    Returns:
        dict: 转发给上游的请求体
    """
    if not isinstance(payload, dict):
        raise PaymentValidationError("请求体必须是 JSON 对象")

    if any(not payload.get(field) for field in REQUIRED_INIT_FIELDS):
        raise PaymentValidationError(
            "缺少必填字段（amount, description, success_url, failure_url）"
        )

    amount = payload["amount"]
    if isinstance(amount, bool):
        raise PaymentValidationError("金额必须是正数")
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise PaymentValidationError("金额必须是正数")
    if not math.isfinite(amount) or amount <= 0:
        raise PaymentValidationError("金额必须是正数")

    body = {
        "amount": amount,
        "description": payload["description"],
        "success_url": payload["success_url"],
        "failure_url": payload["failure_url"],
    }
    for field in OPTIONAL_INIT_FIELDS:
        if payload.get(field):
            body[field] = payload[field]
    return body


def upstream_error(response: Optional[requests.Response], default_message: str) -> UpstreamGatewayError:
    """把上游的错误响应体映射为 UpstreamGatewayError，响应体缺失或格式不对时使用默认值"""
    details: Dict[str, Any] = {}
    if response is not None:
        try:
            data = response.json()
            if isinstance(data, dict):
                details = data
        except ValueError:
            pass  # 上游返回的不是 JSON

    status = details.get("status")
    if not isinstance(status, int) or isinstance(status, bool) or not 400 <= status <= 599:
        status = None
    error_details = details.get("error_details")
    return UpstreamGatewayError(
        details.get("title") or default_message,
        status=status,
        code=details.get("code"),
        error_details=error_details if isinstance(error_details, list) else None,
    )


class PaymentGatewayProxy:
    """支付网关代理"""

    def __init__(self, base_api_url: str, token_cache: AccessTokenCache,
                 session: Optional[requests.Session] = None, timeout: float = 30):
        self.base_api_url = base_api_url.rstrip("/")
        self.token_cache = token_cache
        self.session = session or requests.Session()
        self.timeout = timeout

    def init_payment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        初始化支付

        Args:
            payload: 前端提交的支付请求

        Returns:
            dict: {"paymentUrl": ..., "transactionId": ...}

        Raises:
            PaymentValidationError: 请求参数不合法
            AuthenticationFailed: 无法获取访问令牌
            UpstreamGatewayError: 上游返回错误或结果不是 SAVED
        """
        body = validate_init_payload(payload)
        token = self.token_cache.get_token()

        data = self._request(
            "POST", self.base_api_url + INIT_PATH, token, INIT_ERROR_MESSAGE, json=body
        )
        payment_url = data.get("payment_url")
        if not payment_url or data.get("status") != "SAVED":
            logger.error("Payment init returned status=%s payment_url=%s",
                         data.get("status"), payment_url)
            raise UpstreamGatewayError(INIT_ERROR_MESSAGE)

        logger.info("Payment initialised: %s", data.get("transaction_code"))
        return {"paymentUrl": payment_url, "transactionId": data.get("transaction_code")}

    def get_status(self, transaction_id: Optional[str]) -> str:
        """
        查询支付状态

        Returns:
            str: 小写的支付状态，例如 "succeeded"
        """
        if not transaction_id:
            raise PaymentValidationError("缺少交易流水号")

        token = self.token_cache.get_token()
        url = self.base_api_url + STATUS_PATH.format(
            transaction_id=requests.utils.quote(str(transaction_id), safe="")
        )
        data = self._request("GET", url, token, STATUS_ERROR_MESSAGE)
        status = data.get("status")
        if not isinstance(status, str):
            logger.error("Payment status response without status for %s", transaction_id)
            raise UpstreamGatewayError(STATUS_ERROR_MESSAGE)
        return status.lower()

    def _request(self, method: str, url: str, token: str, default_message: str,
                 **kwargs) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error("Payment gateway unreachable: %s", e)
            raise UpstreamGatewayError(default_message)

        if not 200 <= response.status_code < 300:
            logger.error("Payment gateway returned HTTP %s: %s",
                         response.status_code, response.text[:500])
            raise upstream_error(response, default_message)

        try:
            data = response.json()
        except ValueError:
            raise UpstreamGatewayError(default_message)
        if not isinstance(data, dict):
            raise UpstreamGatewayError(default_message)
        return data
