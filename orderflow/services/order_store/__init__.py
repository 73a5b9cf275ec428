"""
Order Store Factory

Returns the SQLAlchemy or in-memory order store based on
ORDER_STORE_BACKEND.

Usage:
    from orderflow.services.order_store import build_order_store

    store = build_order_store(settings)
    order_id = await store.create(order)
"""

import logging

from orderflow.core.config import Settings, OrderStoreBackend
from orderflow.services.order_store.base import (
    BaseOrderStore,
    OrderFilter,
    StoreUnavailableError,
    normalize_phone,
    phone_matches,
)
from orderflow.services.order_store.memory import InMemoryOrderStore

logger = logging.getLogger(__name__)


def build_order_store(settings: Settings) -> BaseOrderStore:
    """
    Build the configured order store.

    The SQL backend is imported lazily so the memory backend runs without
    a database driver installed.
    """
    if settings.order_store_backend == OrderStoreBackend.MEMORY:
        logger.info("Order Store: Using InMemoryOrderStore")
        return InMemoryOrderStore(phone_match_min_digits=settings.phone_match_min_digits)

    from orderflow.database import get_session_maker
    from orderflow.services.order_store.sql import SqlAlchemyOrderStore

    logger.info("Order Store: Using SqlAlchemyOrderStore")
    return SqlAlchemyOrderStore(
        get_session_maker(),
        phone_match_min_digits=settings.phone_match_min_digits,
    )


__all__ = [
    "build_order_store",
    "BaseOrderStore",
    "OrderFilter",
    "StoreUnavailableError",
    "InMemoryOrderStore",
    "normalize_phone",
    "phone_matches",
]
