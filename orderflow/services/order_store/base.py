"""
Order Store Abstract Base Class

Persistence abstraction over an externally supplied document store.
Carries no business rules: the Order Service decides what to write.

Identity by phone is deliberately loose. Phones are free text used as an
informal lookup key, matched exactly or by digits-only substring, so a
short number may match inside a longer one. Not a security boundary.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from orderflow.schemas import Order


class StoreUnavailableError(Exception):
    """Storage backend unreachable or a write failed."""


@dataclass(frozen=True)
class OrderFilter:
    """
    Query for `BaseOrderStore.find`.

    Attributes:
        order_id: Match a single order id
        phone: Match by customer phone (see `phone_matches`)
    Both unset means unrestricted (privileged staff view).
    """
    order_id: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_unrestricted(self) -> bool:
        return not (self.order_id and self.order_id.strip()) and not (self.phone and self.phone.strip())


def normalize_phone(phone: str) -> str:
    """Keep digits only: "(11) 98765-4321" -> "11987654321"."""
    return re.sub(r"\D", "", phone or "")


def phone_matches(stored: str, query: str, min_digits: int = 8) -> bool:
    """
    Match a stored phone against a query.

    Exact match always counts. When the normalized query has at least
    `min_digits` digits it also matches as a substring of the stored
    phone's digits.
    """
    if stored == query:
        return True
    digits = normalize_phone(query)
    if len(digits) < min_digits:
        return False
    return digits in normalize_phone(stored)


class BaseOrderStore(ABC):
    """Abstract async order store."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def create(self, order: Order) -> str:
        """
        Assign an id, persist the order and return the id.

        Raises:
            StoreUnavailableError: Storage unavailable
        """
        pass

    @abstractmethod
    async def get(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def find(self, order_filter: OrderFilter) -> list[Order]:
        """Return matching orders, newest `created_at` first."""
        pass

    @abstractmethod
    async def update_fields(self, order_id: str, fields: dict[str, Any]) -> bool:
        """
        Merge `fields` into the order and refresh `updated_at`.

        All-or-nothing: the merged document is validated before anything
        is written. Returns False when the order does not exist.
        """
        pass

    @abstractmethod
    async def delete(self, order_id: str) -> bool:
        pass

    async def health_check(self) -> bool:
        return True
