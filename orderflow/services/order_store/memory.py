"""
In-Memory Order Store

Dict-backed store used by the test suite and for running the API without
a database (ORDER_STORE_BACKEND=memory). Contents are lost on restart.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from orderflow.schemas import Order
from orderflow.services.order_store.base import (
    BaseOrderStore,
    OrderFilter,
    phone_matches,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrderStore(BaseOrderStore):
    """Process-local order store guarded by a single asyncio lock."""

    def __init__(
        self,
        phone_match_min_digits: int = 8,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._orders: dict[str, Order] = {}
        self._lock = asyncio.Lock()
        self.phone_match_min_digits = phone_match_min_digits
        self.clock = clock

    @property
    def provider_name(self) -> str:
        return "memory"

    async def create(self, order: Order) -> str:
        order_id = uuid.uuid4().hex
        async with self._lock:
            self._orders[order_id] = order.model_copy(update={"id": order_id}, deep=True)
        logger.debug(f"Stored order {order_id}")
        return order_id

    async def get(self, order_id: str) -> Optional[Order]:
        async with self._lock:
            order = self._orders.get(order_id)
            return order.model_copy(deep=True) if order else None

    async def find(self, order_filter: OrderFilter) -> list[Order]:
        async with self._lock:
            orders = list(self._orders.values())

        if order_filter.order_id:
            orders = [o for o in orders if o.id == order_filter.order_id]
        if order_filter.phone and order_filter.phone.strip():
            orders = [
                o for o in orders
                if phone_matches(o.customer.phone, order_filter.phone, self.phone_match_min_digits)
            ]

        orders.sort(key=lambda o: o.created_at, reverse=True)
        return [o.model_copy(deep=True) for o in orders]

    async def update_fields(self, order_id: str, fields: dict[str, Any]) -> bool:
        async with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                return False
            merged = {**current.model_dump(), **fields, "id": order_id, "updated_at": self.clock()}
            # Raises before touching the stored document.
            self._orders[order_id] = Order.model_validate(merged)
        return True

    async def delete(self, order_id: str) -> bool:
        async with self._lock:
            return self._orders.pop(order_id, None) is not None
