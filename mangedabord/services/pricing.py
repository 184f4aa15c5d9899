"""
价格与订单金额计算
纯函数模块，不访问数据库，任何缺失的引用都按 0 处理而不是抛出异常

金额统一为 FCFA（无小数位），目录中的价格可能是数字，
也可能是 "1.500" 这类带千分位的字符串。
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from ..models.catalog import CatalogItem, ExtraList, Quartier
from ..models.order import LineItem, Order

logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_FEE = 1000

# 千分位和小数逗号，以及 fr-FR 格式化产生的各种空格
_SEPARATORS_RE = re.compile(r"[.,\s]")
_LEADING_NUMBER_RE = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class OrderTotals:
    """订单金额汇总"""
    subtotal: float
    delivery_fee: float
    points_reduction: float
    total: float

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "delivery_fee": self.delivery_fee,
            "points_reduction": self.points_reduction,
            "total": self.total,
        }


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def parse_price(value: Any) -> Optional[float]:
    """解析价格，无法解析时返回 None（用于区分“缺失”和“0”）"""
    if value is None:
        return None
    if isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(_SEPARATORS_RE.sub("", value))
        if not match:
            return None
        return float(match.group(0))
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_price(value: Any) -> float:
    """把数字或格式化字符串统一为数值金额，无法解析时为 0"""
    parsed = parse_price(value)
    return parsed if parsed is not None else 0.0


def format_price(amount: Any) -> str:
    """按 fr-FR 习惯格式化金额，例如 12500 -> '12 500'"""
    return f"{round(normalize_price(amount)):,}".replace(",", "\u202f")


def resolve_delivery_fee(area: Optional[str], quartiers: Iterable[Quartier],
                         default: float = DEFAULT_DELIVERY_FEE) -> float:
    """根据配送区域名称（不区分大小写）查找配送费，找不到时使用默认值"""
    if not area:
        return default
    key = area.strip().lower()
    for quartier in quartiers:
        if quartier.name.strip().lower() == key:
            return float(quartier.fee)
    return default


def resolve_unit_price(item: LineItem,
                       catalog_items_by_id: Mapping[str, CatalogItem]) -> float:
    """单价优先取下单时锁定的价格，其次取目录当前价格"""
    for captured in (item.price, item.dish_price):
        parsed = parse_price(captured)
        if parsed is not None:
            return parsed

    catalog_item = catalog_items_by_id.get(item.dish_id)
    if catalog_item is None:
        logger.warning("Dish %s missing from catalog, unit price counted as 0", item.dish_id)
        return 0.0
    return normalize_price(catalog_item.price)


def extras_total(item: LineItem, extra_lists_by_id: Mapping[str, ExtraList]) -> float:
    """已选加料的价格之和"""
    total = 0.0
    for extra_list_id, indexes in item.selected_extras.items():
        extra_list = extra_lists_by_id.get(extra_list_id)
        if extra_list is None:
            logger.warning(
                "Extra list %s referenced by dish %s not found, counted as 0",
                extra_list_id, item.dish_id
            )
            continue
        for index in indexes:
            if not isinstance(index, int) or not 0 <= index < len(extra_list.options):
                logger.warning(
                    "Option index %r out of range for extra list %s, counted as 0",
                    index, extra_list_id
                )
                continue
            total += normalize_price(extra_list.options[index].price)
    return _finite(total)


def line_total(item: LineItem, extra_lists_by_id: Mapping[str, ExtraList],
               catalog_items_by_id: Mapping[str, CatalogItem]) -> float:
    unit_price = resolve_unit_price(item, catalog_items_by_id)
    return _finite((unit_price + extras_total(item, extra_lists_by_id)) * item.quantity)


def compute_totals(
    order: Order,
    extra_lists_by_id: Mapping[str, ExtraList],
    catalog_items_by_id: Mapping[str, CatalogItem],
    default_delivery_fee: float = DEFAULT_DELIVERY_FEE
) -> OrderTotals:
    """
    计算订单金额

    行金额 = (单价 + 加料价格之和) * 数量，所有行相加得到小计；
    配送费取订单上保存的值，没有则用默认值；积分抵扣没有则为 0；
    总额 = 小计 + 配送费 - 积分抵扣。

    Args:
        order: 订单
        extra_lists_by_id: 加料列表目录
        catalog_items_by_id: 菜品目录
        default_delivery_fee: 订单未保存配送费时使用的默认值

    Returns:
        OrderTotals: 金额汇总，所有字段都是有限数值
    """
    subtotal = _finite(sum(
        line_total(item, extra_lists_by_id, catalog_items_by_id) for item in order.items
    ))

    delivery_fee = parse_price(order.delivery_fee)
    if delivery_fee is None:
        delivery_fee = float(default_delivery_fee)

    points_reduction = normalize_price(order.points_reduction)

    total = _finite(subtotal + delivery_fee - points_reduction)
    return OrderTotals(
        subtotal=subtotal,
        delivery_fee=_finite(delivery_fee),
        points_reduction=points_reduction,
        total=total,
    )
