"""
Notification Gateway Abstract Base Class

Delivers order status changes to customers outside the live staff stream.
Called fire-and-forget from a Celery task: a failure here never affects
the already committed status change.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from orderflow.schemas import Order, OrderStatus


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


STATUS_MESSAGES = {
    OrderStatus.PREPARING: "is being prepared",
    OrderStatus.READY: "is ready",
    OrderStatus.OUT_FOR_DELIVERY: "is out for delivery",
    OrderStatus.DELIVERED: "was delivered. Enjoy your meal",
    OrderStatus.CANCELED: "was canceled",
}


def build_status_message(order: Order, restaurant_name: str) -> str:
    """Short customer-facing text for the order's current status."""
    description = STATUS_MESSAGES.get(order.status, f"is now {order.status.value}")
    short_id = (order.id or "")[:8]
    return (
        f"Hi {order.customer.name}! Your order #{short_id} {description}.\n"
        f"- {restaurant_name}"
    )


class BaseNotificationGateway(ABC):
    """Abstract base class for notification gateways."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def notify_status_change(
        self,
        order: Order,
        previous_status: OrderStatus,
    ) -> NotificationResult:
        """Tell the customer their order moved to `order.status`."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
