"""
Request dependencies: the per-application service instances and the staff
privilege check.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request

from orderflow.core.config import Settings
from orderflow.services.events import EventHub
from orderflow.services.orders import OrderService

logger = logging.getLogger(__name__)

STAFF_KEY_HEADER = "X-Staff-Key"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_event_hub(request: Request) -> EventHub:
    return request.app.state.event_hub


def is_staff(request: Request, staff_key: Optional[str]) -> bool:
    expected = get_app_settings(request).staff_api_key
    if not staff_key or not expected:
        return False
    return hmac.compare_digest(staff_key.encode(), expected.encode())


async def require_staff(
    request: Request,
    x_staff_key: Optional[str] = Header(None, alias=STAFF_KEY_HEADER),
) -> None:
    """Reject the request unless it carries the staff key."""
    if not is_staff(request, x_staff_key):
        logger.warning(f"Rejected staff request to {request.url.path}")
        raise HTTPException(status_code=401, detail="Staff credentials required")
