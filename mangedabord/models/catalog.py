"""
菜品目录相关数据模型
"""

from typing import List, Optional, Union

from pydantic import BaseModel, Field

from .base import BaseEntity, TimestampMixin


class ExtraOption(BaseModel):
    """加料选项（如份量、配菜）"""
    name: str = Field(..., description="选项名称")
    price: Union[float, str, None] = Field(0, description="选项价格")
    required: bool = Field(False, description="是否必选")
    multiple: bool = Field(False, description="是否可多选")


class ExtraList(BaseEntity):
    """加料列表"""
    extra_list_id: str = Field(..., description="加料列表ID")
    name: str = Field(..., description="名称")
    options: List[ExtraOption] = Field(default_factory=list, description="选项（有序）")


class CatalogItem(BaseEntity, TimestampMixin):
    """菜品"""
    item_id: str = Field(..., description="菜品ID")
    name: str = Field(..., description="菜品名称")
    price: Union[float, str, None] = Field(None, description="当前价格（可能是格式化字符串）")
    restaurant_id: Optional[str] = Field(None, description="所属餐厅")
    category_id: Optional[str] = Field(None, description="分类")
    extra_list_ids: List[str] = Field(default_factory=list, description="关联的加料列表")


class Quartier(BaseEntity):
    """配送区域"""
    quartier_id: Optional[int] = Field(None, description="区域ID")
    name: str = Field(..., description="区域名称")
    fee: int = Field(..., ge=0, description="配送费")
