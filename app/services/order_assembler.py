# app/services/order_assembler.py
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.domain.entities import OrderStatus
from app.domain.errors import (
    EmptyCartError,
    FulfillmentError,
    InsufficientStockError,
    NotFoundError,
)
from app.domain.schemas import (
    EnrichedLine,
    OrderOut,
    OrderPlacementOut,
    PaymentCompletedIn,
    Shortfall,
)
from app.repos.order_repo import OrderRepo
from app.services.cart_service import CartStore
from app.services.enrichment import EnrichmentJoiner
from app.utils.logging import get_logger
from app.utils.storage import storage_guard

logger = get_logger(__name__)

Notifier = Callable[[Dict[str, Any]], None]
ReconciliationHook = Callable[[str, List[Dict[str, Any]]], None]


class OrderAssembler:
    """
    Turns a completed payment into an order.

    1. fetch the owner's cart (empty -> EmptyCartError, no order)
    2. enrich the lines with product data
    3. persist a PENDING order with a frozen copy of the lines
    4. decrement stock per line; shortfalls are logged, the order stands
    5. delete the cart
    6. send the confirmation

    Nothing is compensated: a failure after step 3 leaves the order PENDING.
    Redeliveries of one event are absorbed through the event id, stored as
    the order's unique idempotency key.

    `stock` is anything with decrement(product_id, quantity) -> StockLevel:
    InventoryLedger or StockUpdateClient.
    """

    def __init__(
        self,
        db: Session,
        carts: CartStore,
        joiner: EnrichmentJoiner,
        stock,
        notify: Notifier | None = None,
        reconcile: ReconciliationHook | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.carts = carts
        self.joiner = joiner
        self.stock = stock
        self.notify = notify
        self.reconcile = reconcile

    def handle_payment_completed(self, event: PaymentCompletedIn) -> OrderPlacementOut:
        owner_id = event.owner_id
        logger.info(f"Received payment-completed event {event.event_id} for user {owner_id}")

        if event.event_id:
            existing = self._find_by_key(event.event_id)
            if existing is not None:
                logger.info(f"Event {event.event_id} already produced order {existing.order_id}, skipping")
                return self._placement(existing, duplicate=True)

        # 1. fetch
        cart = self.carts.find(owner_id)
        if cart is None or not cart.items:
            logger.info(f"Cart is empty for user {owner_id}, no order created")
            raise EmptyCartError(owner_id)
        # read while fresh: later commits expire the row
        cart_id = cart.id
        lines = CartStore.lines_of(cart)
        logger.info(f"Found {len(lines)} items in cart for user {owner_id}")

        # 2. enrich
        enriched = self.joiner.enrich(lines)

        # 3. persist
        order, created = self._persist(event, enriched)
        if not created:
            return self._placement(order, duplicate=True)
        order_id = order.order_id
        logger.info(f"Order {order_id} created for user {owner_id}")

        # 4. decrement
        try:
            shortfalls = self._decrement_stock(order_id, enriched)
        except FulfillmentError as e:
            logger.error(f"Order {order_id} left PENDING, stock decrement failed: {e}")
            raise
        if shortfalls:
            self._hand_over_shortfalls(order_id, shortfalls)

        # 5. clear
        self.carts.delete_by_id(cart_id, owner_id)

        # 6. notify
        order_out = OrderOut.model_validate(order)
        self._send_confirmation(order_out)

        return OrderPlacementOut(
            order_id=order_id,
            order_status=order_out.status,
            duplicate=False,
            items=enriched,
            shortfalls=shortfalls,
        )

    def _find_by_key(self, key: str) -> OrderModel | None:
        with storage_guard(self.db, f"order lookup by key {key}"):
            return self.orders.get_by_idempotency_key(key)

    def _persist(self, event: PaymentCompletedIn, enriched: List[EnrichedLine]) -> Tuple[OrderModel, bool]:
        now = datetime.now(timezone.utc)
        snapshot = [line.model_dump(mode="json") for line in enriched]

        order = OrderModel(
            order_id=str(uuid.uuid4()),
            owner_id=event.owner_id,
            idempotency_key=event.event_id,
            status=OrderStatus.PENDING.value,
            total_amount=event.amount_total,
            customer=event.shipping_details.name,
            lines=snapshot,
            shipping_details=event.shipping_details.model_dump(mode="json", by_alias=True),
            created_at=now,
            updated_at=now,
        )

        try:
            # not retried: a failed insert may still have been committed
            with storage_guard(self.db, f"order insert for {event.owner_id}", ambiguous=True):
                try:
                    return self.orders.create_order(order), True
                except IntegrityError:
                    self.db.rollback()
                    if event.event_id:
                        existing = self.orders.get_by_idempotency_key(event.event_id)
                        if existing is not None:
                            logger.info(f"Event {event.event_id} lost the race to order {existing.order_id}")
                            return existing, False
                    raise
        except FulfillmentError:
            logger.error(
                f"Error creating order for user {event.owner_id}, manual replay needed. "
                f"event={event.event_id} amount={event.amount_total} lines={json.dumps(snapshot)}"
            )
            raise

    def _decrement_stock(self, order_id: str, enriched: List[EnrichedLine]) -> List[Shortfall]:
        shortfalls = []
        for line in enriched:
            try:
                self.stock.decrement(line.product_id, line.quantity)
            except InsufficientStockError as e:
                logger.warning(f"Order {order_id}: {e.message}")
                shortfalls.append(
                    Shortfall(product_id=line.product_id, requested=line.quantity, reason="insufficient_stock")
                )
            except NotFoundError as e:
                logger.warning(f"Order {order_id}: {e.message}")
                shortfalls.append(
                    Shortfall(product_id=line.product_id, requested=line.quantity, reason="unknown_product")
                )
        return shortfalls

    def _hand_over_shortfalls(self, order_id: str, shortfalls: List[Shortfall]):
        if self.reconcile is None:
            return
        payload = [s.model_dump(by_alias=True) for s in shortfalls]
        try:
            self.reconcile(order_id, payload)
        except Exception:
            logger.exception(f"Could not hand shortfalls of order {order_id} to reconciliation: {payload}")

    def _send_confirmation(self, order: OrderOut):
        if self.notify is None:
            return
        try:
            self.notify(order.model_dump(mode="json", by_alias=True))
        except Exception:
            logger.exception(f"Could not send confirmation for order {order.order_id}")

    @staticmethod
    def _placement(order: OrderModel, duplicate: bool) -> OrderPlacementOut:
        return OrderPlacementOut(
            order_id=order.order_id,
            order_status=OrderStatus(order.status),
            duplicate=duplicate,
            items=[EnrichedLine.model_validate(line) for line in order.lines],
            shortfalls=[],
        )
