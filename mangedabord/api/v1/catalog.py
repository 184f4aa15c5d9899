"""
菜品目录路由模块
读取对所有人开放，写入需要管理员权限
"""

from typing import List

from fastapi import APIRouter, Depends

from ...core.security import require_admin
from ...models.catalog import CatalogItem, ExtraList, Quartier
from ...services import CatalogService
from ..deps import get_catalog_service

router = APIRouter()


@router.get("/items", response_model=List[CatalogItem])
def list_items(catalog: CatalogService = Depends(get_catalog_service)):
    return list(catalog.items_by_id().values())


@router.post("/items", response_model=CatalogItem)
def save_item(
    item: CatalogItem,
    admin_id: int = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.save_item(item)


@router.get("/extra-lists", response_model=List[ExtraList])
def list_extra_lists(catalog: CatalogService = Depends(get_catalog_service)):
    return list(catalog.extra_lists_by_id().values())


@router.post("/extra-lists", response_model=ExtraList)
def save_extra_list(
    extra_list: ExtraList,
    admin_id: int = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service),
):
    """新增或覆盖加料列表"""
    return catalog.save_extra_list(extra_list)


@router.get("/quartiers", response_model=List[Quartier])
def list_quartiers(catalog: CatalogService = Depends(get_catalog_service)):
    """配送区域及配送费"""
    return catalog.list_quartiers()


@router.post("/quartiers", response_model=Quartier)
def add_quartier(
    quartier: Quartier,
    admin_id: int = Depends(require_admin),
    catalog: CatalogService = Depends(get_catalog_service),
):
    return catalog.add_quartier(quartier.name, quartier.fee)
