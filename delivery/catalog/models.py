from typing import List

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

RESTAURANT_LIST_KEY = "restaurant-list"
RIDER_LIST_KEY = "rider-list"
# List keys share the cache keyspace with restaurant ids
RESERVED_KEYS = frozenset({RESTAURANT_LIST_KEY, RIDER_LIST_KEY})


class MenuItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    price: float = Field(ge=0)
    description: str = ""


class RestaurantMenu(BaseModel):
    model_config = ConfigDict(frozen=True)

    restaurant_id: str
    menu: List[MenuItem] = Field(default_factory=list)

    def find(self, menu_id: str):
        """First menu item with ``menu_id``, or None."""
        return next((item for item in self.menu if item.id == menu_id), None)


class Restaurant(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""


class Rider(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""


RestaurantList = TypeAdapter(List[Restaurant])
RiderList = TypeAdapter(List[Rider])
