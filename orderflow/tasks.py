"""
Celery Tasks
Background delivery of customer notifications after status changes.

The Order Service never waits on these: `enqueue_status_notification`
publishes the task without broker retries and any failure stays here.
"""

import asyncio
import logging
import time

from orderflow.celery_worker import celery_app
from orderflow.schemas import Order, OrderStatus
from orderflow.services.notifications import get_notification_gateway

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(ConnectionError, TimeoutError),
    retry_backoff=True
)
def send_status_notification(self, order_data: dict, previous_status: str) -> dict:
    """
    Notify the customer that their order changed status.

    Args:
        order_data: Order document (JSON mode dump)
        previous_status: Status before the transition

    Returns:
        dict: Result of the notification attempt
    """
    task_id = self.request.id
    order = Order.model_validate(order_data)
    start_time = time.time()

    gateway = get_notification_gateway()
    result = asyncio.run(gateway.notify_status_change(order, OrderStatus(previous_status)))

    elapsed = round(time.time() - start_time, 3)
    if result.success:
        logger.info(f"Task {task_id}: order {order.id} notified in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: order {order.id} notification failed - {result.error_message}")

    return {
        'task_id': task_id,
        'order_id': order.id,
        'success': result.success,
        'message_id': result.message_id,
        'provider': result.provider,
        'processing_time_seconds': elapsed,
    }


def enqueue_status_notification(order: Order, previous_status: OrderStatus) -> None:
    """Publish a notification task. Raises if the broker is unreachable."""
    send_status_notification.apply_async(
        args=(order.model_dump(mode="json"), previous_status.value),
        retry=False,
    )
