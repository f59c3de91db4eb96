"""Catalog API routes."""

from fastapi import APIRouter, Depends, Query

from common.protocol import CatalogEntry, CatalogPage
from server.config import LATEST_LIMIT, SERVER_API_PREFIX
from server.store import AssetStore, PublishedAsset, get_asset_store

router = APIRouter(prefix=f"{SERVER_API_PREFIX}/catalog", tags=["Catalog"])


def _entry(asset: PublishedAsset) -> CatalogEntry:
    return CatalogEntry(
        id=asset.asset_id,
        name=asset.file_name,
        content=asset.description,
        thumbnail=asset.thumbnail,
    )


@router.get("/search", response_model=CatalogPage, response_model_exclude_none=True)
async def search_catalog(
    q: str = Query("", description="Text matched against names and descriptions"),
    page: int = Query(0, ge=0),
    size: int = Query(10, gt=0, le=100),
    store: AssetStore = Depends(get_asset_store)
):
    """
    Search published assets, newest first.

    Returns:
        - items: Matching assets on the requested page
        - page, size, total: Paging information
    """
    assets, total = store.search(q, page, size)
    return CatalogPage(items=[_entry(a) for a in assets], page=page, size=size, total=total)


@router.get("/latest", response_model=CatalogPage, response_model_exclude_none=True)
async def latest_assets(store: AssetStore = Depends(get_asset_store)):
    """
    List the most recently published assets.
    """
    assets = store.latest(LATEST_LIMIT)
    return CatalogPage(items=[_entry(a) for a in assets], page=0, size=LATEST_LIMIT, total=store.count())
