import asyncio
import json
from pathlib import Path
from typing import Any, Optional, Protocol

from delivery.catalog.models import RESTAURANT_LIST_KEY, RIDER_LIST_KEY
from delivery.shared.errors import SourceFetchError
from delivery.shared.logger import JohnWickLogger


class CatalogStore(Protocol):
    """Read-only catalog lookup: ``load(key) -> record``."""

    async def load(self, key: str) -> Any:
        ...


class JsonCatalogStore(CatalogStore):
    """
    Catalog backed by JSON seed files.

    Keys:
        ``restaurant-list``  -> the ``restaurant`` array of restaurants.json
        ``rider-list``       -> the ``rider`` array of rider.json
        anything else        -> the menu of that restaurant id in menu.json

    menu.json holds either one ``{"restaurant_id", "menu"}`` object or a list
    of them. Files are re-read on every load; the cache in front of this
    store is what keeps reads cheap.
    """

    def __init__(
        self,
        seed_dir: Path,
        menu_file: str = "menu.json",
        restaurants_file: str = "restaurants.json",
        riders_file: str = "rider.json",
        logger: Optional[JohnWickLogger] = None,
    ):
        self.seed_dir = Path(seed_dir)
        self.menu_file = menu_file
        self.restaurants_file = restaurants_file
        self.riders_file = riders_file
        self.logger = logger or JohnWickLogger("JsonCatalogStore")

    async def load(self, key: str) -> Any:
        if key == RESTAURANT_LIST_KEY:
            return await self._load_list(self.restaurants_file, "restaurant")
        if key == RIDER_LIST_KEY:
            return await self._load_list(self.riders_file, "rider")
        return await self._load_menu(key)

    async def _read_json(self, file_name: str) -> Any:
        path = self.seed_dir / file_name
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as exc:
            self.logger.error("Error reading seed file", extra={"path": str(path), "error": str(exc)})
            raise SourceFetchError(f"error reading file {file_name}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            self.logger.error("Error parsing seed file", extra={"path": str(path), "error": str(exc)})
            raise SourceFetchError(f"error parsing JSON in {file_name}") from exc

    async def _load_list(self, file_name: str, field: str) -> list:
        data = await self._read_json(file_name)
        if not isinstance(data, dict) or not isinstance(data.get(field), list):
            raise SourceFetchError(f"{file_name} has no '{field}' array")
        return data[field]

    async def _load_menu(self, restaurant_id: str) -> dict:
        data = await self._read_json(self.menu_file)
        menus = data if isinstance(data, list) else [data]
        for menu in menus:
            if isinstance(menu, dict) and menu.get("restaurant_id") == restaurant_id:
                return {"restaurant_id": restaurant_id, "menu": menu.get("menu") or []}

        self.logger.warning("Menu not found", extra={"restaurant_id": restaurant_id})
        raise SourceFetchError(f"menu for restaurant {restaurant_id} not found")
