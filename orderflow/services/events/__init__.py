"""
Live event fan-out for staff dashboards.

The EventHub is built once per application (see `create_app`) and passed
to whoever publishes or subscribes. There is no module-level registry.
"""

from orderflow.services.events.base import (
    CONNECTED_FRAME,
    PING_FRAME,
    DeliveryFailure,
    DomainEvent,
    EventType,
    encode_frame,
)
from orderflow.services.events.hub import EventHub, Subscription

__all__ = [
    "CONNECTED_FRAME",
    "PING_FRAME",
    "DeliveryFailure",
    "DomainEvent",
    "EventType",
    "EventHub",
    "Subscription",
    "encode_frame",
]
