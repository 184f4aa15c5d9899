"""
支付网关访问令牌缓存
使用 OAuth2 client-credentials 模式换取令牌，并在过期前提前失效

令牌有效期 = expires_in - 安全余量（默认 100 秒），
保证永远不会用到临近真实过期时间的令牌。
"""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from ..core.exceptions import AuthenticationFailed

logger = logging.getLogger(__name__)

DEFAULT_SAFETY_MARGIN = 100


class AccessTokenCache:
    """
    访问令牌缓存

    同一时刻只允许一个线程去换取令牌，其余线程等待后直接复用结果。
    换取失败时不缓存任何内容，下一次调用会重新请求。
    """

    def __init__(self, token_url: str, client_id: str, client_secret: str,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.monotonic,
                 safety_margin: int = DEFAULT_SAFETY_MARGIN,
                 timeout: float = 10):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.clock = clock
        self.safety_margin = safety_margin
        self.timeout = timeout

        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def get_token(self) -> str:
        """
        获取有效的访问令牌

        Returns:
            str: 访问令牌

        Raises:
            AuthenticationFailed: 令牌换取失败
        """
        with self._lock:
            if self._token is not None and self.clock() < self._expires_at:
                return self._token

            token, expires_in = self._exchange()
            self._token = token
            self._expires_at = self.clock() + (expires_in - self.safety_margin)
            logger.info("Payment gateway token refreshed, valid for %ss",
                        expires_in - self.safety_margin)
            return token

    def invalidate(self):
        """清除缓存的令牌"""
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _exchange(self):
        try:
            response = self.session.post(
                self.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Token exchange failed: %s", e)
            raise AuthenticationFailed()

        if not 200 <= response.status_code < 300:
            logger.error("Token exchange rejected with HTTP %s", response.status_code)
            raise AuthenticationFailed()

        try:
            data = response.json()
            token = data["access_token"]
            expires_in = float(data.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Unexpected token response: %s", e)
            raise AuthenticationFailed()

        if not token:
            raise AuthenticationFailed()
        return token, expires_in
