from datetime import datetime, timezone
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # 支付网关配置（必填，缺失时启动失败）
    auth_base_url: str
    realm: str
    client_id: str
    client_secret: str
    base_api_url: str

    # CORS配置：逗号分隔的前端地址
    client_url: str
    production_url: Optional[str] = None

    # 服务配置
    port: int = 3000

    # 数据库配置
    database_url: str = "duckdb://./mangedabord/data/mangedabord.duckdb"

    # JWT配置
    jwt_secret_key: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 7天

    # API配置
    api_title: str = "Mange d'abord API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # 业务常量
    default_delivery_fee: int = 1000
    token_safety_margin_seconds: int = 100
    loyalty_threshold: int = 5000
    loyalty_integration_date: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc)

    # 开发模式
    debug: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @property
    def allowed_origins(self) -> List[str]:
        """允许跨域访问的来源列表"""
        origins = [o.strip() for o in self.client_url.split(",") if o.strip()]
        if self.production_url and self.production_url not in origins:
            origins.append(self.production_url)
        return origins

    @property
    def token_url(self) -> str:
        """OAuth2 client-credentials 令牌地址"""
        return f"{self.auth_base_url.rstrip('/')}/realms/{self.realm}/protocol/openid-connect/token"


@lru_cache
def get_settings() -> Settings:
    """获取全局设置实例（首次调用时读取环境变量）"""
    return Settings()
