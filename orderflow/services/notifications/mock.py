"""
Mock Notification Gateway

Simulates customer notifications for development.
No actual messages are sent - just logged.
"""

import asyncio
import random
import uuid
import logging

from orderflow.core.config import get_settings
from orderflow.schemas import Order, OrderStatus
from orderflow.services.notifications.base import (
    BaseNotificationGateway,
    NotificationResult,
    build_status_message,
)

logger = logging.getLogger(__name__)


class MockNotificationGateway(BaseNotificationGateway):
    """Mock notification gateway for development."""

    def __init__(self, failure_rate: float = 0.0, max_latency: float = 0.0):
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        self.sent: list[tuple[str, str]] = []
        logger.info(f"MockNotificationGateway initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(0, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def notify_status_change(
        self,
        order: Order,
        previous_status: OrderStatus,
    ) -> NotificationResult:
        """Simulate notifying the customer."""
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock notification failed (simulated) for order {order.id}")
            return NotificationResult(
                success=False,
                error_message="Simulated notification failure",
                provider="mock",
            )

        message = build_status_message(order, get_settings().restaurant_name)
        message_id = f"ntf_mock_{uuid.uuid4().hex[:12]}"
        self.sent.append((order.customer.phone, message))
        logger.info(
            f"Mock notification to {order.customer.phone}: "
            f"{previous_status.value} -> {order.status.value} (ID: {message_id})"
        )

        return NotificationResult(
            success=True,
            message_id=message_id,
            provider="mock",
        )

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
