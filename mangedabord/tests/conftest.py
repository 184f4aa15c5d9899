"""
测试配置文件
提供测试所需的fixtures和配置
"""

import threading

import pytest
from fastapi.testclient import TestClient

from mangedabord.app import create_app
from mangedabord.config.settings import Settings
from mangedabord.core.database import DatabaseManager
from mangedabord.models.catalog import CatalogItem, ExtraList, ExtraOption
from mangedabord.models.user import UserCreate
from mangedabord.services import (
    AccessTokenCache,
    CatalogService,
    LoyaltyService,
    NotificationService,
    OrderService,
    OrderWorkflowService,
    PaymentGatewayProxy,
    UserService,
)

TOKEN_URL = "https://auth.test/realms/flashup/protocol/openid-connect/token"
API_BASE = "https://api.test"
INIT_URL = API_BASE + "/rest/api/v1/payments/init"


class FakeResponse:
    """模拟 requests.Response"""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.text = "" if body is None else str(body)

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeSession:
    """
    模拟 requests.Session

    按 (method, url) 排队返回结果：元组 (status_code, body) 或异常。
    队列只剩最后一个结果时会一直重复返回它。
    """

    def __init__(self, delay: float = 0):
        self.calls = []
        self.delay = delay
        self._routes = {}
        self._lock = threading.Lock()

    def add(self, method, url, *results):
        self._routes.setdefault((method, url), []).extend(results)

    def request(self, method, url, **kwargs):
        with self._lock:
            self.calls.append((method, url, kwargs))
            queue = self._routes.get((method, url))
            if not queue:
                raise AssertionError(f"Unexpected request {method} {url}")
            result = queue.pop(0) if len(queue) > 1 else queue[0]
        if self.delay:
            threading.Event().wait(self.delay)
        if isinstance(result, Exception):
            raise result
        status_code, body = result
        return FakeResponse(status_code, body)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def calls_to(self, url):
        return [c for c in self.calls if c[1] == url]


class FakeClock:
    """可手动拨动的时钟"""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def test_settings():
    """测试配置"""
    return Settings(
        _env_file=None,
        auth_base_url="https://auth.test",
        realm="flashup",
        client_id="client-id",
        client_secret="client-secret",
        base_api_url=API_BASE,
        client_url="http://localhost:5173, http://127.0.0.1:5173",
        production_url="https://mangedabord.test",
        database_url="duckdb://:memory:",
        jwt_secret_key="test-secret-key",
        api_title="Mange d'abord API (Test)",
    )


@pytest.fixture
def test_db():
    """测试数据库（内存）"""
    db = DatabaseManager(":memory:")
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def token_cache(fake_session, fake_clock):
    return AccessTokenCache(
        TOKEN_URL, "client-id", "client-secret", session=fake_session, clock=fake_clock
    )


@pytest.fixture
def gateway(token_cache, fake_session):
    return PaymentGatewayProxy(API_BASE, token_cache, session=fake_session)


@pytest.fixture
def catalog(test_db):
    return CatalogService(test_db)


@pytest.fixture
def loyalty(test_db):
    return LoyaltyService(test_db)


@pytest.fixture
def order_service(test_db, catalog, loyalty):
    return OrderService(test_db, catalog, loyalty)


@pytest.fixture
def workflow(test_db, order_service, catalog):
    return OrderWorkflowService(test_db, order_service, catalog)


@pytest.fixture
def user_service(test_db):
    return UserService(test_db)


@pytest.fixture
def notification_service(test_db):
    return NotificationService(test_db)


@pytest.fixture
def sample_catalog(catalog):
    """样例目录：四道菜、一个配菜列表、两个配送区域"""
    catalog.save_item(CatalogItem(item_id="poulet-dg", name="Poulet DG", price="3.500",
                                  extra_list_ids=["sides"]))
    catalog.save_item(CatalogItem(item_id="ndole", name="Ndolé", price=2500))
    catalog.save_item(CatalogItem(item_id="beignets", name="Beignets haricots", price="1.500"))
    catalog.save_item(CatalogItem(item_id="jus", name="Jus de foléré", price=500))
    catalog.save_extra_list(ExtraList(extra_list_id="sides", name="Accompagnements", options=[
        ExtraOption(name="Plantain", price=500),
        ExtraOption(name="Frites", price="1.000", multiple=True),
        ExtraOption(name="Riz", price=0),
    ]))
    catalog.add_quartier("Bonapriso", 1500)
    catalog.add_quartier("Bonamoussadi", 1000)
    return catalog


@pytest.fixture
def sample_user(user_service):
    """普通用户"""
    return user_service.create_user(
        UserCreate(email="awa@example.com", first_name="Awa", last_name="Ndiaye")
    )


@pytest.fixture
def admin_user(user_service):
    """管理员"""
    return user_service.create_user(UserCreate(email="admin@example.com", first_name="Admin"),
                                    is_admin=True)


@pytest.fixture
def app_instance(test_settings, test_db, token_cache, gateway):
    """测试应用"""
    return create_app(test_settings, db=test_db, token_cache=token_cache, gateway=gateway)


@pytest.fixture
def client(app_instance):
    """测试客户端"""
    return TestClient(app_instance)


@pytest.fixture
def admin_headers(app_instance, admin_user):
    token = app_instance.state.security.create_jwt_token(admin_user.id, True)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(app_instance, sample_user):
    token = app_instance.state.security.create_jwt_token(sample_user.id, False)
    return {"Authorization": f"Bearer {token}"}
