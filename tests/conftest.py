"""
Shared fixtures for the Orderflow test suite.

Everything runs against in-memory collaborators: no database, broker or
SMS provider is needed.
"""

import os
from datetime import datetime, timezone

import pytest

# Module-level app in orderflow.main is built from these on import.
os.environ.setdefault("ORDER_STORE_BACKEND", "memory")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
os.environ.setdefault("ENV_MODE", "development")

from orderflow.schemas import (  # noqa: E402
    BusinessHours,
    BusinessHoursConfig,
    CatalogSnapshot,
    DAY_KEYS,
    Order,
    OrderStatus,
)
from orderflow.services.establishment import InMemoryEstablishmentProvider
from orderflow.services.events import EventHub
from orderflow.services.order_store import InMemoryOrderStore
from orderflow.services.orders import OrderService
from orderflow.services.proof_storage import ProofStorage

# Friday 2026-10-16, 20:00 in America/Sao_Paulo (UTC-3).
FRIDAY_EVENING = datetime(2026, 10, 16, 23, 0, tzinfo=timezone.utc)

STAFF_KEY = "test-staff-key"


# ============================================================================
# ESTABLISHMENT CONFIGURATION
# ============================================================================

def make_catalog(allow_half_and_half: bool = True) -> CatalogSnapshot:
    return CatalogSnapshot.model_validate({
        "allow_half_and_half": allow_half_and_half,
        "categories": [
            {"value": "pizzas", "label": "Pizzas", "allow_half_and_half": True},
            {"value": "massas", "label": "Massas", "allow_half_and_half": False},
            {"value": "bebidas", "label": "Bebidas", "allow_half_and_half": False},
        ],
        "items": [
            {
                "id": "pz-margherita",
                "name": "Margherita",
                "category": "pizzas",
                "price": 30.0,
                "sizes": {"P": 30.0, "G": 45.0},
                "border_options": {"catupiry": 8.0, "cheddar": 8.0},
                "extra_options": {"bacon": 5.0, "azeitona": 3.0},
            },
            {
                "id": "pz-calabresa",
                "name": "Calabresa",
                "category": "pizzas",
                "price": 35.0,
                "sizes": {"P": 35.0, "G": 50.0},
                "border_options": {"catupiry": 8.0},
            },
            {
                "id": "pz-especial",
                "name": "Especial da Casa",
                "category": "pizzas",
                "price": 40.0,
                "sizes": {"P": 40.0, "G": 60.0},
                "is_available": False,
            },
            {
                "id": "ms-bolonhesa",
                "name": "Espaguete à Bolonhesa",
                "category": "massas",
                "price": 28.0,
                "sizes": {"P": 28.0, "G": 39.0},
            },
            {
                "id": "bb-refri-2l",
                "name": "Refrigerante 2L",
                "category": "bebidas",
                "price": 12.0,
            },
        ],
    })


def hours_every_day(start: str = "00:00", end: str = "23:59", is_open: bool = True) -> BusinessHoursConfig:
    return BusinessHoursConfig(**{
        day: BusinessHours(open=is_open, start=start, end=end) for day in DAY_KEYS
    })


@pytest.fixture
def catalog() -> CatalogSnapshot:
    return make_catalog()


@pytest.fixture
def establishment(catalog):
    return InMemoryEstablishmentProvider(
        business_hours=hours_every_day(),
        catalog=catalog,
        delivery_fees={"Centro": 5.0},
    )


# ============================================================================
# ORDER FIXTURES
# ============================================================================

def order_payload(**overrides) -> dict:
    """A valid delivery order for one large Margherita with catupiry border."""
    payload = {
        "items": [
            {
                "item_id": "pz-margherita",
                "name": "Margherita",
                "quantity": 1,
                "size": "G",
                "border": "catupiry",
                "unit_price": 1.0,
            }
        ],
        "delivery_mode": "delivery",
        "delivery_details": {
            "address": {"street": "Rua das Flores", "number": "120", "neighborhood": "Centro"},
            "delivery_fee": 3.0,
            "estimated_time": "40-50 min",
        },
        "customer": {"name": "Maria Silva", "phone": "(11) 98765-4321"},
        "payment_method": "pix",
        "total": 1.0,
    }
    payload.update(overrides)
    return payload


def make_order(
    phone: str = "(11) 98765-4321",
    created_at: datetime = FRIDAY_EVENING,
    status: OrderStatus = OrderStatus.PENDING,
    payment_method: str = "pix",
) -> Order:
    return Order.model_validate({
        "items": [{"name": "Margherita", "quantity": 1, "unit_price": 45.0, "line_total": 45.0, "size": "G"}],
        "total": 45.0,
        "delivery_mode": "pickup",
        "customer": {"name": "Maria Silva", "phone": phone},
        "payment_method": payment_method,
        "status": status,
        "created_at": created_at,
        "updated_at": created_at,
    })


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

class RecordingNotifier:
    """Status notifier double that remembers what it was asked to send."""

    def __init__(self, error: Exception = None):
        self.calls: list[tuple[str, OrderStatus, OrderStatus]] = []
        self.error = error

    def __call__(self, order: Order, previous_status: OrderStatus) -> None:
        self.calls.append((order.id, previous_status, order.status))
        if self.error is not None:
            raise self.error


@pytest.fixture
def store() -> InMemoryOrderStore:
    return InMemoryOrderStore(clock=lambda: FRIDAY_EVENING)


@pytest.fixture
def hub() -> EventHub:
    return EventHub(queue_size=10)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def proof_storage(tmp_path) -> ProofStorage:
    return ProofStorage(tmp_path / "uploads", url_prefix="/uploads")


@pytest.fixture
def service(store, hub, establishment, notifier, proof_storage) -> OrderService:
    return OrderService(
        store,
        hub,
        establishment,
        notifier=notifier,
        proof_storage=proof_storage,
        clock=lambda: FRIDAY_EVENING,
    )
