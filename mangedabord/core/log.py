"""
日志工具
- 进程日志：标准 logging 输出到控制台
- 业务日志：写入 logs 表，供后台审计和统计
"""

import json
import logging
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(debug: bool = False):
    """初始化控制台日志"""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )


def write_log(con, action: str, detail: Dict[str, Any],
              user_id: Optional[int] = None, actor_id: Optional[int] = None):
    """在当前连接（通常处于事务中）写入一条业务日志"""
    con.execute(
        "INSERT INTO logs(user_id, actor_id, action, detail_json) VALUES (?,?,?,?)",
        [user_id, actor_id, action, json.dumps(detail, ensure_ascii=False, default=str)]
    )
