import pytest
from pydantic import ValidationError

from mangedabord.config.settings import Settings


class TestSettings:
    """配置测试"""

    def test_allowed_origins_merge_production(self, test_settings):
        assert test_settings.allowed_origins == [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "https://mangedabord.test",
        ]

    def test_token_url(self, test_settings):
        assert test_settings.token_url == (
            "https://auth.test/realms/flashup/protocol/openid-connect/token"
        )

    def test_defaults(self, test_settings):
        assert test_settings.port == 3000
        assert test_settings.default_delivery_fee == 1000
        assert test_settings.token_safety_margin_seconds == 100

    def test_gateway_settings_are_required(self, monkeypatch):
        for name in ("AUTH_BASE_URL", "REALM", "CLIENT_ID", "CLIENT_SECRET", "BASE_API_URL"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, client_url="http://localhost:5173")
