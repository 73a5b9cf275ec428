"""
Domain Events and Stream Frames

Domain events are immutable facts about an order, published once and never
stored. Subscribers that connect later do not see earlier events and must
re-fetch state through the order query endpoint.

Frames use the Server-Sent Events wire format: newline-delimited fields,
one blank line between frames.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventType(str, Enum):
    NEW_ORDER = "new-order"
    STATUS_CHANGED = "status-changed"
    PROOF_UPLOADED = "proof-uploaded"


class DeliveryFailure(Exception):
    """A frame could not be written to one subscriber's channel."""


@dataclass(frozen=True)
class DomainEvent:
    type: EventType
    order_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "type": self.type.value,
            "order_id": self.order_id,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload,
        }


PING_FRAME = "event: ping\ndata: ok\n\n"
CONNECTED_FRAME = 'data: {"type": "connected"}\n\n'


def encode_frame(data: dict) -> str:
    return f"data: {json.dumps(data, default=str)}\n\n"
