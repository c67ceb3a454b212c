from fastapi import APIRouter, Depends

from delivery.catalog.cache import CatalogCache
from delivery.catalog.models import RestaurantMenu
from delivery.config.dependencies import get_catalog_cache
from delivery.shared.errors import ValidationError

router = APIRouter(tags=["catalog"])


@router.get("/menu", response_model=RestaurantMenu)
async def get_menu(restaurant_id: str = "", cache: CatalogCache = Depends(get_catalog_cache)):
    if not restaurant_id:
        raise ValidationError("restaurant_id is required")
    return await cache.get_menu(restaurant_id)


@router.get("/restaurant")
async def list_restaurants(cache: CatalogCache = Depends(get_catalog_cache)):
    restaurants = await cache.get_restaurants()
    return {"restaurant": [r.model_dump() for r in restaurants]}


@router.get("/rider")
async def list_riders(cache: CatalogCache = Depends(get_catalog_cache)):
    riders = await cache.get_riders()
    return {"rider": [r.model_dump() for r in riders]}
