"""
Twilio Notification Gateway

Production implementation: status changes are texted to the customer's
phone through Twilio SMS.
"""

import asyncio
import logging

from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioException

from orderflow.core.config import get_settings
from orderflow.schemas import Order, OrderStatus
from orderflow.services.notifications.base import (
    BaseNotificationGateway,
    NotificationResult,
    build_status_message,
)

logger = logging.getLogger(__name__)


class TwilioNotificationGateway(BaseNotificationGateway):
    """Production notification gateway using Twilio SMS."""

    def __init__(self):
        settings = get_settings()
        self.restaurant_name = settings.restaurant_name

        if settings.twilio_account_sid and settings.twilio_auth_token:
            self.twilio_client = TwilioClient(
                settings.twilio_account_sid,
                settings.twilio_auth_token
            )
            self.twilio_from_number = settings.twilio_phone_number
        else:
            self.twilio_client = None
            logger.warning("Twilio credentials not configured")

        logger.info("TwilioNotificationGateway initialized")

    @property
    def provider_name(self) -> str:
        return "twilio"

    async def notify_status_change(
        self,
        order: Order,
        previous_status: OrderStatus,
    ) -> NotificationResult:
        """Send the status SMS via Twilio."""
        if not self.twilio_client:
            return NotificationResult(
                success=False,
                error_message="Twilio not configured",
                provider="twilio"
            )

        body = build_status_message(order, self.restaurant_name)

        try:
            # The Twilio client is blocking.
            result = await asyncio.to_thread(
                self.twilio_client.messages.create,
                body=body,
                from_=self.twilio_from_number,
                to=order.customer.phone,
            )

            logger.info(f"SMS sent to {order.customer.phone}: {result.sid}")

            return NotificationResult(
                success=True,
                message_id=result.sid,
                provider="twilio"
            )

        except TwilioException as e:
            logger.error(f"Twilio error: {e}")
            return NotificationResult(
                success=False,
                error_message=str(e),
                provider="twilio"
            )

    async def health_check(self) -> bool:
        """Check the Twilio account is reachable."""
        if not self.twilio_client:
            return False
        try:
            await asyncio.to_thread(
                self.twilio_client.api.accounts(self.twilio_client.account_sid).fetch
            )
            return True
        except TwilioException as e:
            logger.error(f"Twilio health check failed: {e}")
            return False
