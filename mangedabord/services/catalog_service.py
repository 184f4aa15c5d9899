"""
菜品目录服务
菜品、加料列表和配送区域的读写
"""

import json
from typing import Dict, Iterable, List, Optional

from ..core.database import DatabaseManager
from ..core.exceptions import ValidationError
from ..models.catalog import CatalogItem, ExtraList, ExtraOption, Quartier


class CatalogService:
    """目录服务"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    # 菜品

    def save_item(self, item: CatalogItem) -> CatalogItem:
        """新增或覆盖菜品"""
        price = json.dumps(item.price)
        self.db.execute_query(
            "INSERT OR REPLACE INTO items(item_id, name, price, restaurant_id, category_id, extra_list_ids) "
            "VALUES (?,?,?,?,?,?)",
            [item.item_id, item.name, price, item.restaurant_id, item.category_id,
             json.dumps(item.extra_list_ids)]
        )
        return item

    def items_by_id(self, item_ids: Optional[Iterable[str]] = None) -> Dict[str, CatalogItem]:
        """按ID加载菜品，不传ID时加载全部"""
        rows = self._select("items", "item_id", item_ids)
        return {
            row["item_id"]: CatalogItem(
                item_id=row["item_id"],
                name=row["name"],
                price=json.loads(row["price"]) if row["price"] else None,
                restaurant_id=row["restaurant_id"],
                category_id=row["category_id"],
                extra_list_ids=json.loads(row["extra_list_ids"] or "[]"),
                created_at=row["created_at"],
            )
            for row in rows
        }

    # 加料列表

    def save_extra_list(self, extra_list: ExtraList) -> ExtraList:
        """新增或覆盖加料列表，同一选项不能既必选又多选"""
        for option in extra_list.options:
            if option.required and option.multiple:
                raise ValidationError(
                    f"选项 {option.name} 不能同时为必选和多选",
                    details={"extra_list_id": extra_list.extra_list_id, "option": option.name}
                )
        elements = [o.model_dump() for o in extra_list.options]
        self.db.execute_query(
            "INSERT OR REPLACE INTO extra_lists(extra_list_id, name, elements_json) VALUES (?,?,?)",
            [extra_list.extra_list_id, extra_list.name, json.dumps(elements, ensure_ascii=False)]
        )
        return extra_list

    def extra_lists_by_id(self, extra_list_ids: Optional[Iterable[str]] = None) -> Dict[str, ExtraList]:
        rows = self._select("extra_lists", "extra_list_id", extra_list_ids)
        return {
            row["extra_list_id"]: ExtraList(
                extra_list_id=row["extra_list_id"],
                name=row["name"],
                options=[ExtraOption(**o) for o in json.loads(row["elements_json"] or "[]")],
            )
            for row in rows
        }

    # 配送区域

    def list_quartiers(self) -> List[Quartier]:
        rows = self.db.fetch_dicts("SELECT quartier_id, name, fee FROM quartiers ORDER BY name")
        return [Quartier(**row) for row in rows]

    def find_quartier(self, name: str) -> Optional[Quartier]:
        """按名称（不区分大小写）查找配送区域"""
        row = self.db.fetch_dict(
            "SELECT quartier_id, name, fee FROM quartiers WHERE lower(name) = lower(?)",
            [name.strip()]
        )
        return Quartier(**row) if row else None

    def add_quartier(self, name: str, fee: int) -> Quartier:
        if fee < 0:
            raise ValidationError("配送费不能为负数")
        existing = self.find_quartier(name)
        if existing:
            return existing
        row = self.db.execute_one(
            "INSERT INTO quartiers(name, fee) VALUES (?,?) RETURNING quartier_id",
            [name.strip(), fee]
        )
        return Quartier(quartier_id=row[0], name=name.strip(), fee=fee)

    def _select(self, table: str, key: str, ids: Optional[Iterable[str]]) -> List[dict]:
        if ids is None:
            return self.db.fetch_dicts(f"SELECT * FROM {table}")
        ids = [str(i) for i in dict.fromkeys(ids)]
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        return self.db.fetch_dicts(f"SELECT * FROM {table} WHERE {key} IN ({placeholders})", ids)
