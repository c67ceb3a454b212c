import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from delivery.orders.models import OrderStatus
from delivery.shared.errors import InvalidTransitionError, OrderNotFoundError

# Current status -> statuses it may move to. Forward-only, no skips.
ALLOWED_TRANSITIONS: Dict[Optional[OrderStatus], frozenset] = {
    None: frozenset({OrderStatus.CREATED}),
    OrderStatus.CREATED: frozenset({OrderStatus.ACCEPTED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.PICKED_UP}),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
}

DEFAULT_RETIRED_CAPACITY = 10_000


def is_valid_transition(current: Optional[OrderStatus], target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class OrderStateStore:
    """
    Process-local map of order id -> current status.

    Callers hold ``lock(order_id)`` around check-publish-advance so two
    requests for the same order cannot both pass the guard. A lock lives only
    while someone holds or waits for it.

    Delivered orders leave the active map. The most recent
    ``retired_capacity`` of them are remembered so a repeated delivery is
    still a conflict rather than an unknown order.
    """

    def __init__(self, retired_capacity: int = DEFAULT_RETIRED_CAPACITY):
        self.retired_capacity = retired_capacity
        self._status: Dict[str, OrderStatus] = {}
        self._retired: "OrderedDict[str, None]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, order_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(order_id)
        if lock is None:
            lock = self._locks[order_id] = asyncio.Lock()
        self._lock_users[order_id] = self._lock_users.get(order_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[order_id] -= 1
            if not self._lock_users[order_id]:
                del self._lock_users[order_id]
                del self._locks[order_id]

    def get(self, order_id: str) -> Optional[OrderStatus]:
        if order_id in self._retired:
            return OrderStatus.DELIVERED
        return self._status.get(order_id)

    def check(self, order_id: str, target: OrderStatus):
        """Raise unless ``order_id`` may move to ``target``."""
        current = self.get(order_id)
        if current is None and target is not OrderStatus.CREATED:
            raise OrderNotFoundError(f"order {order_id} not found", detail={"order_id": order_id})
        if not is_valid_transition(current, target):
            raise InvalidTransitionError(
                f"order {order_id} cannot move from {current.value if current else 'new'} to {target.value}",
                detail={"order_id": order_id, "current": current.value if current else None, "target": target.value},
            )

    def advance(self, order_id: str, target: OrderStatus):
        if target is not OrderStatus.DELIVERED:
            self._status[order_id] = target
            return

        self._status.pop(order_id, None)
        self._retired[order_id] = None
        self._retired.move_to_end(order_id)
        while len(self._retired) > self.retired_capacity:
            self._retired.popitem(last=False)

    def __len__(self) -> int:
        return len(self._status)
