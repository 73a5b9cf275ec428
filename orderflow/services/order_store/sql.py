"""
SQLAlchemy Order Store

Document store on top of a relational database: the full order lives in a
JSON column, with phone, status and timestamps mirrored into indexed
columns. Every call runs in its own transaction, so `update_fields` is
all-or-nothing. Concurrent updates to one order are last-write-wins.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import delete, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orderflow.models import OrderRecord
from orderflow.schemas import Order
from orderflow.services.order_store.base import (
    BaseOrderStore,
    OrderFilter,
    StoreUnavailableError,
    normalize_phone,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_record_values(order: Order) -> dict[str, Any]:
    return {
        "customer_phone": order.customer.phone,
        "customer_phone_digits": normalize_phone(order.customer.phone),
        "status": order.status.value,
        "document": order.model_dump(mode="json"),
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class SqlAlchemyOrderStore(BaseOrderStore):
    """Order store backed by an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        phone_match_min_digits: int = 8,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._session_maker = session_maker
        self.phone_match_min_digits = phone_match_min_digits
        self.clock = clock

    @property
    def provider_name(self) -> str:
        return "sqlalchemy"

    async def create(self, order: Order) -> str:
        order_id = uuid.uuid4().hex
        stored = order.model_copy(update={"id": order_id})
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    session.add(OrderRecord(id=order_id, **_to_record_values(stored)))
        except SQLAlchemyError as e:
            logger.error(f"Failed to create order: {e}")
            raise StoreUnavailableError("order store unavailable") from e
        return order_id

    async def get(self, order_id: str) -> Optional[Order]:
        try:
            async with self._session_maker() as session:
                record = await session.get(OrderRecord, order_id)
                return Order.model_validate(record.document) if record else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load order {order_id}: {e}")
            raise StoreUnavailableError("order store unavailable") from e

    async def find(self, order_filter: OrderFilter) -> list[Order]:
        query = select(OrderRecord).order_by(OrderRecord.created_at.desc())

        if order_filter.order_id:
            query = query.where(OrderRecord.id == order_filter.order_id)

        phone = (order_filter.phone or "").strip()
        if phone:
            digits = normalize_phone(phone)
            if len(digits) >= self.phone_match_min_digits:
                query = query.where(or_(
                    OrderRecord.customer_phone == order_filter.phone,
                    OrderRecord.customer_phone_digits.contains(digits),
                ))
            else:
                query = query.where(OrderRecord.customer_phone == order_filter.phone)

        try:
            async with self._session_maker() as session:
                result = await session.execute(query)
                return [Order.model_validate(r.document) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to query orders: {e}")
            raise StoreUnavailableError("order store unavailable") from e

    async def update_fields(self, order_id: str, fields: dict[str, Any]) -> bool:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    record = await session.get(OrderRecord, order_id, with_for_update=True)
                    if record is None:
                        return False
                    current = Order.model_validate(record.document)
                    merged = Order.model_validate({
                        **current.model_dump(),
                        **fields,
                        "id": order_id,
                        "updated_at": self.clock(),
                    })
                    for key, value in _to_record_values(merged).items():
                        setattr(record, key, value)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update order {order_id}: {e}")
            raise StoreUnavailableError("order store unavailable") from e
        return True

    async def delete(self, order_id: str) -> bool:
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(OrderRecord).where(OrderRecord.id == order_id)
                    )
                    return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete order {order_id}: {e}")
            raise StoreUnavailableError("order store unavailable") from e

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Order store health check failed: {e}")
            return False
