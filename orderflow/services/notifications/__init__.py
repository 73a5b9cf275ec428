"""
Notification Gateway Factory

Returns the Mock or Twilio notification gateway based on ENV_MODE.
"""

import logging
from functools import lru_cache

from orderflow.core.config import get_settings
from orderflow.services.notifications.base import (
    BaseNotificationGateway,
    NotificationResult,
)
from orderflow.services.notifications.mock import MockNotificationGateway

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_gateway() -> BaseNotificationGateway:
    """Get the configured notification gateway."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Gateway: Using MockNotificationGateway (development mode)")
        return MockNotificationGateway(failure_rate=0.05, max_latency=0.3)

    from orderflow.services.notifications.real import TwilioNotificationGateway

    logger.info(f"Notification Gateway: Using TwilioNotificationGateway ({settings.env_mode.value} mode)")
    return TwilioNotificationGateway()


def reset_notification_gateway() -> None:
    """Clear the cached gateway instance."""
    get_notification_gateway.cache_clear()


__all__ = [
    "get_notification_gateway",
    "reset_notification_gateway",
    "BaseNotificationGateway",
    "NotificationResult",
    "MockNotificationGateway",
]
