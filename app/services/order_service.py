# app/services/order_service.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.domain.entities import OrderStatus
from app.domain.errors import InvalidTransitionError, NotFoundError
from app.domain.schemas import OrderOut, OrderPage
from app.repos.order_repo import OrderRepo
from app.services.pagination import PageRequest, split_page
from app.utils.logging import get_logger
from app.utils.storage import storage_guard

logger = get_logger(__name__)


class OrderService:
    """
    Order reads and status changes.
    Orders are created only by the OrderAssembler; afterwards only the
    status moves, and only forward: PENDING -> FULFILLED | FAILED.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def get_order(self, order_id: str) -> OrderOut:
        with storage_guard(self.db, f"order lookup {order_id}"):
            order = self.repo.get_order(order_id)

        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        return OrderOut.model_validate(order)

    def list_orders(self, page: PageRequest, owner_id: str | None = None) -> OrderPage:
        start_key = page.start_key({"orderId": str})

        with storage_guard(self.db, "order list"):
            rows = self.repo.page(page.page_size + 1, start_key=start_key, owner_id=owner_id)

        orders, next_token = split_page(rows, page.page_size, key_of=lambda o: {"orderId": o.order_id})
        items = [OrderOut.model_validate(o) for o in orders]

        logger.info(f"Successfully got orders, count {len(items)}")

        return OrderPage(items=items, total_count=len(items), next_token=next_token)

    def transition(self, order_id: str, status: OrderStatus) -> OrderOut:
        status = OrderStatus(status)
        if not status.terminal:
            raise InvalidTransitionError(f"Order cannot be moved back to {status.value}")

        now = datetime.now(timezone.utc)
        with storage_guard(self.db, f"order status update {order_id}"):
            rowcount = self.repo.transition_status(
                order_id,
                from_status=OrderStatus.PENDING.value,
                to_status=status.value,
                now=now,
            )
            if rowcount == 0:
                self.repo.rollback()
                order = self.repo.get_order(order_id)
                if order is None:
                    raise NotFoundError(f"Order {order_id} not found")
                raise InvalidTransitionError(
                    f"Order {order_id} is already {order.status}, cannot move to {status.value}"
                )
            self.repo.commit()

        logger.info(f"Order {order_id} moved to {status.value}")
        return self.get_order(order_id)
