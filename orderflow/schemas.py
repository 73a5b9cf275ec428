"""
Pydantic Schemas

Domain documents (Order, OrderItem), request/response validation, the
read-only catalog snapshot consumed by the Pricing Engine and the weekly
business hours consumed by the Schedule Evaluator.

Version: 1.0.0
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, List, Dict

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELED = "canceled"


class DeliveryMode(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(str, Enum):
    CASH = "cash"
    PIX = "pix"
    CARD = "card"


# =============================================================================
# STATE MACHINE
# =============================================================================

# Linear successor chain; canceled is handled separately.
STATUS_SUCCESSORS: dict[OrderStatus, OrderStatus] = {
    OrderStatus.PENDING: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.OUT_FOR_DELIVERY: OrderStatus.DELIVERED,
}

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """
    Check whether `current -> target` is an allowed status transition.

    Allowed: the defined successor in the linear chain, or `canceled`
    while the order is not yet in a terminal state.
    """
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.CANCELED:
        return True
    return STATUS_SUCCESSORS.get(current) == target


# =============================================================================
# ORDER DOCUMENT
# =============================================================================

class Address(BaseModel):
    street: str = Field(..., min_length=1, max_length=200)
    number: str = Field(..., min_length=1, max_length=20)
    complement: Optional[str] = Field(None, max_length=200)
    neighborhood: str = Field(..., min_length=1, max_length=100)
    reference_point: Optional[str] = Field(None, max_length=200)


class DeliveryDetails(BaseModel):
    address: Address
    delivery_fee: float = Field(default=0.0, ge=0)
    estimated_time: str = Field(default="", max_length=50, examples=["40-50 min"])


class Customer(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Maria Silva"])
    phone: str = Field(..., min_length=1, max_length=30, examples=["(11) 98765-4321"])


class ProofOfPayment(BaseModel):
    url: str
    uploaded_at: datetime


def _dedupe(values: List[str]) -> List[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class OrderItem(BaseModel):
    """A priced line item embedded in an Order. Never mutated after submission."""
    item_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    line_total: float = Field(..., ge=0)
    size: Optional[str] = None
    border: Optional[str] = None
    extras: List[str] = Field(default_factory=list)
    observation: Optional[str] = Field(None, max_length=500)
    flavors: Optional[List[str]] = Field(None, min_length=2, max_length=2)

    @field_validator("extras")
    @classmethod
    def dedupe_extras(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


class Order(BaseModel):
    """
    The central order document.

    `id` is None until the Order Store assigns it. `total` is always the
    server-computed sum of line totals plus delivery fee.
    """
    id: Optional[str] = None
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., ge=0)
    delivery_mode: DeliveryMode
    delivery_details: Optional[DeliveryDetails] = None
    customer: Customer
    payment_method: PaymentMethod
    change_for: Optional[str] = None
    notes: Optional[str] = None
    proof_of_payment: Optional[ProofOfPayment] = None
    push_subscription: Optional[Dict[str, Any]] = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def check_invariants(self) -> "Order":
        if self.delivery_mode == DeliveryMode.DELIVERY and self.delivery_details is None:
            raise ValueError("delivery_details is required for delivery orders")
        if self.delivery_mode == DeliveryMode.PICKUP and self.delivery_details is not None:
            raise ValueError("delivery_details is not allowed for pickup orders")
        if self.change_for and self.payment_method != PaymentMethod.CASH:
            raise ValueError("change_for is only allowed for cash payments")
        lines = round(sum(item.line_total for item in self.items), 2)
        if round(self.total, 2) < lines:
            raise ValueError("total must not be lower than the sum of line totals")
        return self

    @property
    def delivery_fee(self) -> float:
        return self.delivery_details.delivery_fee if self.delivery_details else 0.0


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """
    Client-proposed line item.

    Only identity and selections are trusted; `unit_price` is advisory and
    discarded before pricing.
    """
    item_id: Optional[str] = Field(None, examples=["pz-margherita"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Margherita"])
    quantity: int = Field(..., ge=1, le=99, examples=[1])
    size: Optional[str] = Field(None, examples=["G"])
    border: Optional[str] = Field(None, examples=["catupiry"])
    extras: List[str] = Field(default_factory=list)
    observation: Optional[str] = Field(None, max_length=500)
    flavors: Optional[List[str]] = Field(None, min_length=2, max_length=2)
    unit_price: Optional[float] = Field(None, description="Advisory only, ignored")

    @field_validator("extras")
    @classmethod
    def dedupe_extras(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    items: List[OrderItemCreate] = Field(..., min_length=1)
    delivery_mode: DeliveryMode = Field(..., examples=["delivery"])
    delivery_details: Optional[DeliveryDetails] = None
    customer: Customer
    payment_method: PaymentMethod = Field(..., examples=["pix"])
    change_for: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)
    total: Optional[float] = Field(None, description="Advisory only, recomputed server-side")

    @model_validator(mode="after")
    def check_delivery_and_payment(self) -> "OrderCreate":
        if self.delivery_mode == DeliveryMode.DELIVERY and self.delivery_details is None:
            raise ValueError("delivery_details is required for delivery orders")
        if self.delivery_mode == DeliveryMode.PICKUP and self.delivery_details is not None:
            raise ValueError("delivery_details is not allowed for pickup orders")
        if self.change_for and self.payment_method != PaymentMethod.CASH:
            raise ValueError("change_for is only allowed for cash payments")
        return self


class StatusUpdate(BaseModel):
    status: str = Field(..., examples=["preparing"])


class PushSubscriptionCreate(BaseModel):
    subscription: Dict[str, Any]


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderCreateResponse(BaseModel):
    """Response after successfully creating an order."""
    success: bool = True
    order_id: str
    total: float
    status: str


class OrderListResponse(BaseModel):
    success: bool = True
    total: int
    orders: List[Order]


class ProofUploadResponse(BaseModel):
    success: bool = True
    url: str
    uploaded_at: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class EstablishmentStatusResponse(BaseModel):
    is_open: bool
    current_day: str
    current_time: str
    local_time: str
    reason: str
    timezone: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    order_store: str
    redis: str
    notification_service: str
    subscribers: int
    timestamp: datetime


# =============================================================================
# BUSINESS HOURS
# =============================================================================

DAY_KEYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class BusinessHours(BaseModel):
    open: bool = False
    start: str = Field(default="00:00", pattern=_HHMM_PATTERN)
    end: str = Field(default="00:00", pattern=_HHMM_PATTERN)


class BusinessHoursConfig(BaseModel):
    """One optional entry per day of week. A missing day means not configured."""
    monday: Optional[BusinessHours] = None
    tuesday: Optional[BusinessHours] = None
    wednesday: Optional[BusinessHours] = None
    thursday: Optional[BusinessHours] = None
    friday: Optional[BusinessHours] = None
    saturday: Optional[BusinessHours] = None
    sunday: Optional[BusinessHours] = None

    def for_day(self, day: str) -> Optional[BusinessHours]:
        return getattr(self, day, None) if day in DAY_KEYS else None


# =============================================================================
# CATALOG SNAPSHOT
# =============================================================================

class Category(BaseModel):
    value: str
    label: str = ""
    allow_half_and_half: bool = False


class CatalogItem(BaseModel):
    """
    Menu item as seen by the Pricing Engine.

    `sizes` is declared smallest first; the last key is the largest size.
    """
    id: str
    name: str
    price: float = Field(..., ge=0)
    category: str
    description: str = ""
    sizes: Dict[str, float] = Field(default_factory=dict)
    border_options: Dict[str, float] = Field(default_factory=dict)
    extra_options: Dict[str, float] = Field(default_factory=dict)
    is_available: bool = True

    @property
    def largest_size(self) -> Optional[str]:
        return list(self.sizes)[-1] if self.sizes else None


class CatalogSnapshot(BaseModel):
    """Read-only view of the menu at pricing time."""
    items: List[CatalogItem] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    allow_half_and_half: bool = True

    def find_item(self, item_id: Optional[str] = None, name: Optional[str] = None) -> Optional[CatalogItem]:
        if item_id:
            for item in self.items:
                if item.id == item_id:
                    return item
            return None
        if name:
            for item in self.items:
                if item.name == name:
                    return item
        return None

    def find_in_category(self, category: str, name: str) -> Optional[CatalogItem]:
        for item in self.items:
            if item.category == category and item.name == name:
                return item
        return None

    def category(self, value: str) -> Optional[Category]:
        for category in self.categories:
            if category.value == value:
                return category
        return None


class DeliveryFee(BaseModel):
    neighborhood: str
    fee: float = Field(..., ge=0)
