"""
HTTP Routes

Thin transport over the Order Service: parse the request, call the
service, map a failed ServiceResult to its structured error body.

Endpoints:
    - GET /api/status: Establishment open/closed status
    - POST /api/orders: Create order
    - GET /api/orders: List orders (by phone, or everything for staff)
    - GET /api/orders/{order_id}: Get one order
    - PATCH /api/orders/{order_id}/status: Advance status (staff)
    - POST /api/orders/{order_id}/proof: Upload proof of payment
    - POST /api/orders/{order_id}/push-subscription: Save push subscription
    - DELETE /api/orders/{order_id}: Remove order (staff)
    - GET /api/events: Live event stream (staff)
"""

import logging
import uuid
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from orderflow.api.dependencies import (
    STAFF_KEY_HEADER,
    get_app_settings,
    get_event_hub,
    get_order_service,
    is_staff,
    require_staff,
)
from orderflow.core.errors import ServiceResult
from orderflow.schemas import (
    ErrorResponse,
    EstablishmentStatusResponse,
    Order,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    ProofUploadResponse,
    PushSubscriptionCreate,
    StatusUpdate,
)
from orderflow.services.events import CONNECTED_FRAME, EventHub, Subscription
from orderflow.services.order_store import OrderFilter
from orderflow.services.orders import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def error_response(result: ServiceResult) -> JSONResponse:
    return JSONResponse(status_code=result.error.http_status, content=result.error.to_dict())


# =============================================================================
# ESTABLISHMENT
# =============================================================================

@router.get(
    "/status",
    response_model=EstablishmentStatusResponse,
    tags=["Establishment"],
    summary="Establishment Open/Closed Status",
)
async def establishment_status(
    request: Request,
    service: OrderService = Depends(get_order_service),
) -> EstablishmentStatusResponse:
    status = await service.establishment_status()
    return EstablishmentStatusResponse(
        is_open=status.is_open,
        current_day=status.current_day,
        current_time=status.current_time,
        local_time=status.local_time,
        reason=status.reason,
        timezone=get_app_settings(request).timezone,
    )


# =============================================================================
# ORDERS
# =============================================================================

@router.post(
    "/orders",
    status_code=201,
    response_model=OrderCreateResponse,
    responses={403: {"model": ErrorResponse}, **ERROR_RESPONSES},
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
):
    """
    Submit a new order.

    Prices and totals sent by the client are advisory; the stored total is
    recomputed from the current catalog.
    """
    logger.info(f"Creating order for: {order_data.customer.name}")
    result = await service.create_order(order_data)
    if not result.success:
        return error_response(result)

    order = result.value
    return OrderCreateResponse(order_id=order.id, total=order.total, status=order.status.value)


@router.get(
    "/orders",
    response_model=OrderListResponse,
    responses={401: {"model": ErrorResponse}, **ERROR_RESPONSES},
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    request: Request,
    phone: Optional[str] = Query(None, description="Customer phone, digits or formatted"),
    order_id: Optional[str] = Query(None),
    x_staff_key: Optional[str] = Header(None, alias=STAFF_KEY_HEADER),
    service: OrderService = Depends(get_order_service),
):
    """Customers look up their orders by phone; listing everything is staff only."""
    phone = (phone or "").strip() or None
    order_id = (order_id or "").strip() or None
    if OrderFilter(order_id=order_id, phone=phone).is_unrestricted and not is_staff(request, x_staff_key):
        raise HTTPException(status_code=401, detail="Staff credentials required to list all orders")

    result = await service.list_orders(order_id=order_id, phone=phone)
    if not result.success:
        return error_response(result)
    return OrderListResponse(total=len(result.value), orders=result.value)


@router.get(
    "/orders/{order_id}",
    response_model=Order,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    result = await service.get_order(order_id)
    if not result.success:
        return error_response(result)
    return result.value


@router.patch(
    "/orders/{order_id}/status",
    response_model=Order,
    responses={409: {"model": ErrorResponse}, **ERROR_RESPONSES},
    dependencies=[Depends(require_staff)],
    tags=["Orders"],
    summary="Advance Order Status",
)
async def update_order_status(
    order_id: str,
    update: StatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    result = await service.advance_status(order_id, update.status)
    if not result.success:
        return error_response(result)
    return result.value


@router.post(
    "/orders/{order_id}/proof",
    response_model=ProofUploadResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Upload Proof of Payment",
)
async def upload_proof(
    order_id: str,
    file: UploadFile = File(...),
    service: OrderService = Depends(get_order_service),
):
    """Attach a pix receipt image to the order. A new upload replaces the old one."""
    # One byte past the limit is enough to reject an oversized upload.
    limit = service.proof_storage.max_bytes + 1 if service.proof_storage else -1
    data = await file.read(limit)
    result = await service.upload_proof_of_payment(
        order_id,
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=data,
    )
    if not result.success:
        return error_response(result)
    return ProofUploadResponse(url=result.value.url, uploaded_at=result.value.uploaded_at)


@router.post(
    "/orders/{order_id}/push-subscription",
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def register_push_subscription(
    order_id: str,
    body: PushSubscriptionCreate,
    service: OrderService = Depends(get_order_service),
):
    result = await service.register_push_subscription(order_id, body.subscription)
    if not result.success:
        return error_response(result)
    return {"success": True}


@router.delete(
    "/orders/{order_id}",
    responses=ERROR_RESPONSES,
    dependencies=[Depends(require_staff)],
    tags=["Orders"],
)
async def delete_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
):
    result = await service.remove_order(order_id)
    if not result.success:
        return error_response(result)
    return {"success": True}


# =============================================================================
# LIVE EVENTS
# =============================================================================

async def stream_frames(hub: EventHub, subscription: Subscription) -> AsyncIterator[str]:
    """
    Yield frames for one staff session until the hub closes it.

    When the client goes away the response task is cancelled and the
    `finally` block removes the subscription.
    """
    try:
        yield CONNECTED_FRAME
        async for frame in subscription:
            yield frame
    finally:
        hub.unsubscribe(subscription.subscriber_id, subscription)


@router.get(
    "/events",
    dependencies=[Depends(require_staff)],
    tags=["Events"],
    summary="Live Order Events (Server-Sent Events)",
)
async def order_events(
    subscriber_id: Optional[str] = Query(None, description="Stable id to resume under after reconnecting"),
    hub: EventHub = Depends(get_event_hub),
) -> StreamingResponse:
    subscription = hub.subscribe(subscriber_id or uuid.uuid4().hex)
    return StreamingResponse(
        stream_frames(hub, subscription),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
