from decimal import Decimal
from typing import Iterable

from delivery.catalog.models import RestaurantMenu
from delivery.orders.models import OrderItem
from delivery.shared.errors import ValidationError


def price(items: Iterable[OrderItem], menu: RestaurantMenu, strict: bool = False) -> Decimal:
    """
    Sum ``price * quantity`` over the requested items found in ``menu``.

    Items whose menu_id is not on the menu contribute nothing. With
    ``strict`` they raise ValidationError instead.
    """
    total = Decimal("0")
    for item in items:
        menu_item = menu.find(item.menu_id)
        if menu_item is None:
            if strict:
                raise ValidationError(
                    f"menu item {item.menu_id!r} not found for restaurant {menu.restaurant_id}"
                )
            continue
        # str() keeps the float's shortest repr, e.g. 0.1 -> Decimal("0.1")
        total += Decimal(str(menu_item.price)) * item.quantity
    return total
