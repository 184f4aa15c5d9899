"""
数据库连接和管理模块
封装 DuckDB 连接、表结构初始化和事务控制

数据库表说明（与前端使用的集合一一对应）：
- users: 用户资料和积分余额（usersrestau）
- items: 菜品目录
- extra_lists: 配菜/加料列表
- quartiers: 配送区域及配送费
- orders: 订单
- order_status_history: 订单状态变更历史
- points_transactions: 积分发放记录
- notifications: 用户通知
- logs: 系统操作日志和埋点事件
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import duckdb

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError

# 数据文件存储目录
DATA_DIR = Path(__file__).parent.parent / "data"

# 完整的表结构定义
# JSON 内容以 TEXT 存储，读写时由服务层序列化
SCHEMA_SQL = r"""
CREATE SEQUENCE IF NOT EXISTS users_id_seq;
CREATE TABLE IF NOT EXISTS users (
  id INTEGER DEFAULT nextval('users_id_seq') PRIMARY KEY,
  email TEXT,
  phone TEXT,
  first_name TEXT,
  last_name TEXT,
  is_admin BOOLEAN DEFAULT FALSE,
  is_guest BOOLEAN DEFAULT FALSE,
  points INTEGER DEFAULT 0,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS items (
  item_id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  price TEXT,
  restaurant_id TEXT,
  category_id TEXT,
  extra_list_ids TEXT,
  created_at TIMESTAMP DEFAULT now()
);

CREATE TABLE IF NOT EXISTS extra_lists (
  extra_list_id TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  elements_json TEXT NOT NULL,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS quartiers_id_seq;
CREATE TABLE IF NOT EXISTS quartiers (
  quartier_id INTEGER DEFAULT nextval('quartiers_id_seq') PRIMARY KEY,
  name TEXT NOT NULL,
  fee INTEGER NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS orders_id_seq;
CREATE TABLE IF NOT EXISTS orders (
  order_id INTEGER DEFAULT nextval('orders_id_seq') PRIMARY KEY,
  user_id INTEGER,
  restaurant_id TEXT,
  items_json TEXT NOT NULL,
  address_json TEXT,
  contact_json TEXT,
  payment_method TEXT,
  payment_ref TEXT,
  total DOUBLE NOT NULL,
  delivery_fee DOUBLE,
  points_used INTEGER DEFAULT 0,
  points_reduction DOUBLE DEFAULT 0,
  status TEXT NOT NULL,
  is_paid BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS status_history_id_seq;
CREATE TABLE IF NOT EXISTS order_status_history (
  history_id INTEGER DEFAULT nextval('status_history_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  status TEXT NOT NULL,
  reason TEXT,
  created_at TIMESTAMP NOT NULL
);

CREATE SEQUENCE IF NOT EXISTS points_tx_id_seq;
CREATE TABLE IF NOT EXISTS points_transactions (
  transaction_id INTEGER DEFAULT nextval('points_tx_id_seq') PRIMARY KEY,
  order_id INTEGER NOT NULL,
  user_id INTEGER,
  points_amount INTEGER NOT NULL,
  type TEXT CHECK(type IN ('points_grant')) NOT NULL,
  status TEXT CHECK(status IN ('pending','approved')) NOT NULL,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS notifications_id_seq;
CREATE TABLE IF NOT EXISTS notifications (
  notification_id INTEGER DEFAULT nextval('notifications_id_seq') PRIMARY KEY,
  user_id INTEGER,
  order_id INTEGER,
  restaurant_id TEXT,
  old_status TEXT,
  new_status TEXT,
  reason TEXT,
  item_names TEXT,
  points_used INTEGER DEFAULT 0,
  points_reduction DOUBLE DEFAULT 0,
  is_read BOOLEAN DEFAULT FALSE,
  created_at TIMESTAMP DEFAULT now()
);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  user_id INTEGER,
  actor_id INTEGER,
  action TEXT,
  detail_json TEXT,
  created_at TIMESTAMP DEFAULT now()
);
"""


def run(con, query: str, params: list = None):
    """执行 SQL，无参数时不传参数列表"""
    if params:
        return con.execute(query, params)
    return con.execute(query)


def rows_to_dicts(cursor) -> List[Dict[str, Any]]:
    """把游标结果转换为字典列表"""
    columns = [d[0] for d in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]


class DatabaseManager:
    """数据库管理器，封装所有数据库操作"""

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        self.db_path = db_path

    @classmethod
    def from_url(cls, database_url: str) -> "DatabaseManager":
        """根据 duckdb:// 形式的连接串创建管理器"""
        if database_url.startswith("duckdb://"):
            database_url = database_url.replace("duckdb://", "", 1)
        if database_url != ":memory:":
            Path(database_url).parent.mkdir(parents=True, exist_ok=True)
        return cls(database_url)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取数据库连接"""
        with self._lock:
            if self._connection is None:
                path = self.db_path or str((DATA_DIR / "mangedabord.duckdb").resolve())
                if path != ":memory:":
                    Path(path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(path)
                self._init_schema()
            return self._connection

    def get_connection(self) -> duckdb.DuckDBPyConnection:
        return self.connection

    def _init_schema(self):
        """初始化数据库表结构"""
        try:
            self._connection.execute(SCHEMA_SQL)
        except Exception as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")

    def init_database(self):
        """初始化数据库"""
        self.get_connection()

    def close(self):
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        数据库事务上下文管理器

        同一时刻只允许一个事务持有连接，出错时整体回滚。
        业务异常原样抛出，其他异常包装为 DatabaseError。
        """
        with self._lock:
            conn = self.connection
            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                try:
                    conn.execute("ROLLBACK")
                except duckdb.Error:
                    pass  # 事务可能已被 DuckDB 自动中止

                if isinstance(e, BaseApplicationError):
                    raise
                if "conflict" in str(e).lower() or "serialization" in str(e).lower():
                    raise ConcurrencyError("系统繁忙，请稍后重试")
                raise DatabaseError(f"数据库操作失败: {str(e)}")

    def execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        try:
            with self._lock:
                con = self.get_connection()
                return run(con, query, params).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        try:
            with self._lock:
                con = self.get_connection()
                return run(con, query, params).fetchone()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dicts(self, query: str, params: list = None) -> List[Dict[str, Any]]:
        """执行查询并以字典列表返回"""
        try:
            with self._lock:
                con = self.get_connection()
                return rows_to_dicts(run(con, query, params))
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")

    def fetch_dict(self, query: str, params: list = None) -> Optional[Dict[str, Any]]:
        """执行查询并返回第一行（字典）"""
        rows = self.fetch_dicts(query, params)
        return rows[0] if rows else None
