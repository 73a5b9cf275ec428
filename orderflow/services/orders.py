"""
Order Service

Orchestrates the order lifecycle:
    - admissibility against the business hours (Schedule Evaluator)
    - authoritative repricing of every line (Pricing Engine)
    - status transitions through the state machine
    - persistence (Order Store) and live events (Event Hub)
    - fire-and-forget customer notification on status changes

Every public operation returns a ServiceResult. Expected business failures
come back as typed errors; nothing is retried here, callers own retry
policy.

Accepted limitation: transitions are read-then-write without optimistic
concurrency control. Two staff sessions advancing the same order at once
resolve as last-write-wins in the store.
"""

import functools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from orderflow.core.config import Settings
from orderflow.core.errors import (
    EstablishmentClosed,
    InvalidTransition,
    NotFound,
    PersistenceError,
    ServiceResult,
    ValidationError,
)
from orderflow.schemas import (
    Order,
    OrderCreate,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    ProofOfPayment,
    can_transition,
)
from orderflow.services import schedule
from orderflow.services.establishment import BaseEstablishmentProvider
from orderflow.services.events import DomainEvent, EventHub, EventType
from orderflow.services.order_store import BaseOrderStore, OrderFilter, StoreUnavailableError
from orderflow.services.pricing import BorderSurcharges, ItemSelection, PricingError, price_line
from orderflow.services.proof_storage import ArtifactRejected, ProofStorage

logger = logging.getLogger(__name__)

StatusNotifier = Callable[[Order, OrderStatus], None]

CLOSED_MESSAGE = "Establishment closed. Orders are not accepted at the moment."
PERSISTENCE_MESSAGE = "Order storage is temporarily unavailable. Please try again."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _pydantic_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    return [{"loc": list(err["loc"]), "msg": err["msg"]} for err in exc.errors()]


def persistence_guarded(action: str):
    """Turn store outages inside an operation into a PersistenceError result."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except StoreUnavailableError:
                logger.exception(f"Order store failure while {action}")
                return ServiceResult.fail(PersistenceError(PERSISTENCE_MESSAGE))
        return wrapper
    return decorator


class OrderService:
    """
    Order lifecycle orchestration.

    Collaborators are passed in explicitly; the service holds no global
    state and can be built once per application or per test.
    """

    def __init__(
        self,
        store: BaseOrderStore,
        hub: EventHub,
        establishment: BaseEstablishmentProvider,
        *,
        tz_name: str = "America/Sao_Paulo",
        surcharges: BorderSurcharges = BorderSurcharges(),
        notifier: Optional[StatusNotifier] = None,
        proof_storage: Optional[ProofStorage] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.hub = hub
        self.establishment = establishment
        self.tz_name = tz_name
        self.surcharges = surcharges
        self.notifier = notifier
        self.proof_storage = proof_storage
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: BaseOrderStore,
        hub: EventHub,
        establishment: BaseEstablishmentProvider,
        notifier: Optional[StatusNotifier] = None,
    ) -> "OrderService":
        return cls(
            store,
            hub,
            establishment,
            tz_name=settings.timezone,
            surcharges=BorderSurcharges(
                large=settings.border_surcharge_large,
                small=settings.border_surcharge_small,
            ),
            notifier=notifier,
            proof_storage=ProofStorage(
                settings.upload_directory,
                url_prefix=settings.upload_url_prefix,
                max_bytes=settings.proof_max_bytes,
                allowed_types=tuple(settings.proof_allowed_types_list),
            ),
        )

    # =========================================================================
    # ESTABLISHMENT STATUS
    # =========================================================================

    async def establishment_status(self) -> schedule.ScheduleStatus:
        hours = await self.establishment.get_business_hours()
        return schedule.evaluate(hours, self.clock(), self.tz_name)

    # =========================================================================
    # ORDER CREATION
    # =========================================================================

    @persistence_guarded("creating an order")
    async def create_order(self, payload: Union[OrderCreate, dict]) -> ServiceResult[Order]:
        """
        Validate, price and persist a new order, then announce it.

        Client-supplied prices and totals are discarded: every line is
        repriced from the current catalog snapshot. When the establishment
        is closed nothing is written.

        Returns:
            ServiceResult whose value is the stored Order (with its new id)
        """
        if isinstance(payload, dict):
            try:
                payload = OrderCreate.model_validate(payload)
            except PydanticValidationError as e:
                return ServiceResult.fail(
                    ValidationError("Invalid order payload", errors=_pydantic_errors(e))
                )

        now = self.clock()
        hours = await self.establishment.get_business_hours()
        status = schedule.evaluate(hours, now, self.tz_name)
        if not status.is_open:
            logger.info(f"Order rejected, establishment closed ({status.reason})")
            return ServiceResult.fail(EstablishmentClosed(CLOSED_MESSAGE, reason=status.reason))

        snapshot = await self.establishment.get_catalog_snapshot()
        items: list[OrderItem] = []
        for index, line in enumerate(payload.items):
            catalog_item = snapshot.find_item(item_id=line.item_id, name=line.name)
            if catalog_item is None:
                return ServiceResult.fail(ValidationError(
                    f"Unknown menu item: {line.name}",
                    errors=[{"loc": ["items", index], "msg": "unknown menu item"}],
                ))

            selection = ItemSelection(
                size=line.size,
                border=line.border,
                extras=tuple(line.extras),
                flavors=tuple(line.flavors) if line.flavors else None,
            )
            try:
                priced = price_line(catalog_item, selection, line.quantity, snapshot, self.surcharges)
            except PricingError as e:
                return ServiceResult.fail(ValidationError(
                    str(e),
                    errors=[{"loc": ["items", index], "msg": str(e)}],
                ))

            items.append(OrderItem(
                item_id=catalog_item.id,
                name=catalog_item.name,
                quantity=line.quantity,
                unit_price=priced.unit_price,
                line_total=priced.line_total,
                size=line.size,
                border=line.border,
                extras=line.extras,
                observation=line.observation,
                flavors=line.flavors,
            ))

        delivery_details = payload.delivery_details
        if delivery_details is not None:
            configured_fee = await self.establishment.get_delivery_fee(
                delivery_details.address.neighborhood
            )
            if configured_fee is not None:
                delivery_details = delivery_details.model_copy(update={"delivery_fee": configured_fee})

        subtotal = round(sum(item.line_total for item in items), 2)
        delivery_fee = delivery_details.delivery_fee if delivery_details else 0.0
        total = round(subtotal + delivery_fee, 2)

        if payload.total is not None and round(payload.total, 2) != total:
            logger.warning(
                f"Client total {payload.total:.2f} differs from server total {total:.2f}, "
                f"using server value"
            )

        order = Order(
            items=items,
            total=total,
            delivery_mode=payload.delivery_mode,
            delivery_details=delivery_details,
            customer=payload.customer,
            payment_method=payload.payment_method,
            change_for=payload.change_for,
            notes=payload.notes,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        order_id = await self.store.create(order)
        order = order.model_copy(update={"id": order_id})
        logger.info(
            f"Order {order_id} created for {order.customer.name}: "
            f"{len(items)} item(s), total {total:.2f}"
        )

        self._publish(EventType.NEW_ORDER, order_id, {
            "total": order.total,
            "customer_name": order.customer.name,
            "delivery_mode": order.delivery_mode.value,
            "payment_method": order.payment_method.value,
        })
        return ServiceResult.ok(order)

    # =========================================================================
    # STATUS TRANSITIONS
    # =========================================================================

    @persistence_guarded("advancing order status")
    async def advance_status(self, order_id: str, target: Union[OrderStatus, str]) -> ServiceResult[Order]:
        """
        Move an order to `target` if the state machine allows it.

        The status change is committed before the event is published and
        the customer notification enqueued; neither of those can undo it.
        """
        try:
            target_status = OrderStatus(target)
        except ValueError:
            valid = [s.value for s in OrderStatus]
            return ServiceResult.fail(ValidationError(
                f"Unknown status '{target}'. Options: {valid}"
            ))

        order = await self.store.get(order_id)
        if order is None:
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))

        previous = order.status
        if not can_transition(previous, target_status):
            return ServiceResult.fail(InvalidTransition(
                f"Cannot change status from {previous.value} to {target_status.value}",
                current_status=previous.value,
                target_status=target_status.value,
            ))

        if not await self.store.update_fields(order_id, {"status": target_status}):
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))

        updated = order.model_copy(update={"status": target_status, "updated_at": self.clock()})
        logger.info(f"Order {order_id}: {previous.value} -> {target_status.value}")

        self._publish(EventType.STATUS_CHANGED, order_id, {
            "previous_status": previous.value,
            "status": target_status.value,
        })
        self._notify(updated, previous)
        return ServiceResult.ok(updated)

    # =========================================================================
    # PROOF OF PAYMENT
    # =========================================================================

    async def _load_pix_order(self, order_id: str) -> ServiceResult[Order]:
        order = await self.store.get(order_id)
        if order is None:
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))
        if order.payment_method != PaymentMethod.PIX:
            return ServiceResult.fail(ValidationError(
                "Proof of payment is only accepted for pix orders"
            ))
        return ServiceResult.ok(order)

    @persistence_guarded("attaching proof of payment")
    async def attach_proof_of_payment(self, order_id: str, artifact_ref: str) -> ServiceResult[ProofOfPayment]:
        """
        Record the proof-of-payment reference on a pix order.

        A new upload overwrites the previous one; no history is kept.
        """
        loaded = await self._load_pix_order(order_id)
        if not loaded.success:
            return ServiceResult.fail(loaded.error)

        proof = ProofOfPayment(url=artifact_ref, uploaded_at=self.clock())
        if not await self.store.update_fields(order_id, {"proof_of_payment": proof}):
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))

        logger.info(f"Proof of payment attached to order {order_id}")
        self._publish(EventType.PROOF_UPLOADED, order_id, {
            "url": proof.url,
            "uploaded_at": proof.uploaded_at.isoformat(),
        })
        return ServiceResult.ok(proof)

    @persistence_guarded("uploading proof of payment")
    async def upload_proof_of_payment(
        self,
        order_id: str,
        filename: str,
        content_type: str,
        data: bytes,
    ) -> ServiceResult[ProofOfPayment]:
        """Validate and store an uploaded image, then attach it to the order."""
        if self.proof_storage is None:
            raise RuntimeError("Proof storage is not configured")

        try:
            self.proof_storage.validate(content_type, len(data))
        except ArtifactRejected as e:
            return ServiceResult.fail(ValidationError(str(e)))

        loaded = await self._load_pix_order(order_id)
        if not loaded.success:
            return ServiceResult.fail(loaded.error)

        try:
            stored = await self.proof_storage.save(order_id, filename, content_type, data)
        except OSError:
            logger.exception(f"Failed to write proof of payment for order {order_id}")
            return ServiceResult.fail(PersistenceError(PERSISTENCE_MESSAGE))

        attached = await self.attach_proof_of_payment(order_id, stored.url)
        if not attached.success:
            try:
                await self.proof_storage.discard(stored)
            except OSError:
                logger.exception(f"Failed to remove unattached proof {stored.path}")
        return attached

    # =========================================================================
    # PUSH SUBSCRIPTIONS
    # =========================================================================

    @persistence_guarded("registering a push subscription")
    async def register_push_subscription(self, order_id: str, subscription: dict) -> ServiceResult[None]:
        """Keep the customer's browser push subscription on the order."""
        if not subscription:
            return ServiceResult.fail(ValidationError("Push subscription is empty"))
        if not await self.store.update_fields(order_id, {"push_subscription": subscription}):
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))
        logger.info(f"Push subscription saved for order {order_id}")
        return ServiceResult.ok()

    # =========================================================================
    # QUERIES & REMOVAL
    # =========================================================================

    @persistence_guarded("loading an order")
    async def get_order(self, order_id: str) -> ServiceResult[Order]:
        order = await self.store.get(order_id)
        if order is None:
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))
        return ServiceResult.ok(order)

    @persistence_guarded("listing orders")
    async def list_orders(
        self,
        order_id: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> ServiceResult[list[Order]]:
        """List orders newest first; no filter returns every order."""
        orders = await self.store.find(OrderFilter(order_id=order_id, phone=phone))
        return ServiceResult.ok(orders)

    @persistence_guarded("removing an order")
    async def remove_order(self, order_id: str) -> ServiceResult[None]:
        if not await self.store.delete(order_id):
            return ServiceResult.fail(NotFound(f"Order {order_id} not found", resource_id=order_id))
        logger.info(f"Order {order_id} removed")
        return ServiceResult.ok()

    # =========================================================================
    # SIDE CHANNELS
    # =========================================================================

    def _publish(self, event_type: EventType, order_id: str, payload: dict) -> None:
        event = DomainEvent(type=event_type, order_id=order_id, timestamp=self.clock(), payload=payload)
        try:
            self.hub.publish(event)
        except Exception:
            # The mutation is committed; a broken broadcast must not fail it.
            logger.exception(f"Failed to publish {event_type.value} for order {order_id}")

    def _notify(self, order: Order, previous: OrderStatus) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(order, previous)
        except Exception as e:
            logger.warning(f"Status notification for order {order.id} not enqueued: {e}")
