import threading

import pytest
import requests

from mangedabord.core.exceptions import AuthenticationFailed
from mangedabord.services.token_cache import AccessTokenCache

from conftest import TOKEN_URL, FakeClock, FakeSession


def token_body(token, expires_in=1800):
    return 200, {"access_token": token, "expires_in": expires_in}


class TestAccessTokenCache:
    """访问令牌缓存测试"""

    def test_exchange_uses_client_credentials(self, token_cache, fake_session):
        fake_session.add("POST", TOKEN_URL, token_body("tok-1"))

        assert token_cache.get_token() == "tok-1"

        method, url, kwargs = fake_session.calls[0]
        assert kwargs["data"] == {"grant_type": "client_credentials"}
        assert kwargs["auth"] == ("client-id", "client-secret")

    def test_token_served_until_safety_margin(self, token_cache, fake_session, fake_clock):
        fake_session.add("POST", TOKEN_URL, token_body("tok-1"), token_body("tok-2"))

        assert token_cache.get_token() == "tok-1"
        fake_clock.now = 1699
        assert token_cache.get_token() == "tok-1"
        assert len(fake_session.calls) == 1

        fake_clock.now = 1700
        assert token_cache.get_token() == "tok-2"
        assert token_cache.get_token() == "tok-2"
        assert len(fake_session.calls) == 2

    def test_rejected_exchange_is_not_cached(self, token_cache, fake_session):
        fake_session.add("POST", TOKEN_URL, (401, {"error": "invalid_client"}), token_body("tok-1"))

        with pytest.raises(AuthenticationFailed):
            token_cache.get_token()

        assert token_cache.get_token() == "tok-1"
        assert len(fake_session.calls) == 2

    def test_network_error(self, token_cache, fake_session):
        fake_session.add("POST", TOKEN_URL, requests.ConnectionError("boom"))
        with pytest.raises(AuthenticationFailed) as exc_info:
            token_cache.get_token()
        assert exc_info.value.error_code == "FLASHP_AUTH_99"

    def test_malformed_response(self, token_cache, fake_session):
        fake_session.add("POST", TOKEN_URL, (200, {"token_type": "Bearer"}))
        with pytest.raises(AuthenticationFailed):
            token_cache.get_token()

    def test_invalidate_forces_new_exchange(self, token_cache, fake_session):
        fake_session.add("POST", TOKEN_URL, token_body("tok-1"), token_body("tok-2"))
        token_cache.get_token()
        token_cache.invalidate()
        assert token_cache.get_token() == "tok-2"

    def test_concurrent_misses_share_one_exchange(self):
        session = FakeSession(delay=0.05)
        session.add("POST", TOKEN_URL, token_body("tok-1"))
        cache = AccessTokenCache(TOKEN_URL, "client-id", "client-secret",
                                 session=session, clock=FakeClock())

        results = []
        threads = [threading.Thread(target=lambda: results.append(cache.get_token()))
                   for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results == ["tok-1"] * 5
        assert len(session.calls) == 1
