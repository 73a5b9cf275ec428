"""
Event Hub Tests

Subscription lifecycle, wire framing and broadcast isolation: one failing
subscriber never blocks delivery to the others.
"""

import json
from datetime import datetime, timezone

import pytest

from orderflow.api.routes import stream_frames
from orderflow.services.events import (
    CONNECTED_FRAME,
    PING_FRAME,
    DeliveryFailure,
    DomainEvent,
    EventHub,
    EventType,
    encode_frame,
)


def new_order_event(order_id: str = "abc123") -> DomainEvent:
    return DomainEvent(
        type=EventType.NEW_ORDER,
        order_id=order_id,
        timestamp=datetime(2026, 10, 16, 23, 0, tzinfo=timezone.utc),
        payload={"total": 58.0},
    )


def decode(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


# ============================================================================
# FRAMING
# ============================================================================

class TestFraming:

    def test_data_frame_format(self):
        frame = encode_frame({"type": "new-order", "order_id": "x"})

        assert frame == 'data: {"type": "new-order", "order_id": "x"}\n\n'

    def test_event_serialization(self):
        body = new_order_event().to_dict()

        assert body == {
            "type": "new-order",
            "order_id": "abc123",
            "timestamp": "2026-10-16T23:00:00+00:00",
            "payload": {"total": 58.0},
        }

    def test_control_frames(self):
        assert PING_FRAME == "event: ping\ndata: ok\n\n"
        assert decode(CONNECTED_FRAME) == {"type": "connected"}


# ============================================================================
# SUBSCRIPTION LIFECYCLE
# ============================================================================

@pytest.mark.asyncio
class TestSubscriptions:

    async def test_publish_reaches_subscriber(self, hub):
        subscription = hub.subscribe("staff-1")

        delivered = hub.publish(new_order_event())

        assert delivered == 1
        [frame] = subscription.pending()
        assert decode(frame)["order_id"] == "abc123"

    async def test_frames_keep_publish_order(self, hub):
        subscription = hub.subscribe("staff-1")

        for order_id in ("a", "b", "c"):
            hub.publish(new_order_event(order_id))

        assert [decode(f)["order_id"] for f in subscription.pending()] == ["a", "b", "c"]

    async def test_late_subscriber_gets_no_replay(self, hub):
        hub.publish(new_order_event("before"))
        subscription = hub.subscribe("staff-1")

        assert subscription.pending() == []

    async def test_unsubscribe_twice_is_noop(self, hub):
        hub.subscribe("staff-1")

        assert hub.unsubscribe("staff-1") is True
        assert hub.unsubscribe("staff-1") is False
        assert hub.subscriber_count == 0

    async def test_unsubscribe_unknown_id(self, hub):
        assert hub.unsubscribe("nobody") is False

    async def test_resubscribe_replaces_previous_channel(self, hub):
        old = hub.subscribe("staff-1")
        new = hub.subscribe("staff-1")

        assert old.closed is True
        assert hub.subscriber_ids() == ["staff-1"]

        hub.publish(new_order_event())
        assert len(new.pending()) == 1

    async def test_stale_stream_does_not_evict_reconnected_client(self, hub):
        old = hub.subscribe("staff-1")
        new = hub.subscribe("staff-1")

        assert hub.unsubscribe("staff-1", old) is False
        assert hub.subscriber_ids() == ["staff-1"]
        assert hub.unsubscribe("staff-1", new) is True

    async def test_close_all_ends_iteration(self, hub):
        subscription = hub.subscribe("staff-1")
        hub.publish(new_order_event())
        hub.close_all()

        frames = [frame async for frame in subscription]

        assert hub.subscriber_count == 0
        assert len(frames) == 1

    async def test_ping_all(self, hub):
        first = hub.subscribe("staff-1")
        second = hub.subscribe("staff-2")

        assert hub.ping_all() == 2
        assert first.pending() == [PING_FRAME]
        assert second.pending() == [PING_FRAME]


# ============================================================================
# BROADCAST ISOLATION
# ============================================================================

@pytest.mark.asyncio
class TestBroadcastIsolation:

    async def test_failing_subscriber_is_dropped_others_receive(self, hub):
        first = hub.subscribe("staff-1")
        broken = hub.subscribe("staff-2")
        third = hub.subscribe("staff-3")

        def explode(frame):
            raise DeliveryFailure("connection reset")

        broken.send = explode

        delivered = hub.publish(new_order_event())

        assert delivered == 2
        assert len(first.pending()) == 1
        assert len(third.pending()) == 1
        assert sorted(hub.subscriber_ids()) == ["staff-1", "staff-3"]
        assert broken.closed is True

    async def test_unexpected_error_is_contained(self, hub):
        healthy = hub.subscribe("staff-1")
        broken = hub.subscribe("staff-2")

        def explode(frame):
            raise RuntimeError("boom")

        broken.send = explode

        assert hub.publish(new_order_event()) == 1
        assert len(healthy.pending()) == 1

    async def test_slow_subscriber_is_dropped_when_queue_fills(self):
        hub = EventHub(queue_size=2)
        slow = hub.subscribe("slow")

        hub.publish(new_order_event("a"))
        hub.publish(new_order_event("b"))
        delivered = hub.publish(new_order_event("c"))

        assert delivered == 0
        assert hub.subscriber_count == 0
        assert slow.closed is True

    async def test_send_on_closed_subscription_fails(self, hub):
        subscription = hub.subscribe("staff-1")
        subscription.close()

        with pytest.raises(DeliveryFailure):
            subscription.send("data: {}\n\n")


# ============================================================================
# STREAMING
# ============================================================================

@pytest.mark.asyncio
class TestStream:

    async def test_stream_starts_with_connected_frame(self, hub):
        subscription = hub.subscribe("staff-1")
        stream = stream_frames(hub, subscription)

        assert await stream.__anext__() == CONNECTED_FRAME

        hub.publish(new_order_event())
        assert decode(await stream.__anext__())["type"] == "new-order"

        await stream.aclose()

    async def test_closing_stream_unsubscribes(self, hub):
        subscription = hub.subscribe("staff-1")
        stream = stream_frames(hub, subscription)
        await stream.__anext__()

        await stream.aclose()

        assert hub.subscriber_count == 0
        assert subscription.closed is True
