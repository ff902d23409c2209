# app/services/inventory_ledger.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.domain.entities import StockLevel
from app.domain.errors import ClientInputError, InsufficientStockError, NotFoundError
from app.repos.product_repo import ProductRepo
from app.utils.logging import get_logger
from app.utils.storage import storage_guard

logger = get_logger(__name__)


class InventoryLedger:
    """
    Conditional stock decrements.

    Overselling is prevented by the store itself: the decrement is a single
    UPDATE guarded by `stock_quantity >= quantity`, so concurrent decrements
    on one product are serialized by the database, not by this process.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProductRepo(db)

    def decrement(self, product_id: str, quantity: int) -> StockLevel:
        if quantity <= 0:
            raise ClientInputError("Quantity must be a positive integer")

        now = datetime.now(timezone.utc)

        with storage_guard(self.db, f"stock decrement of {product_id}"):
            remaining = self.repo.conditional_decrement(product_id, quantity, now)

            if remaining is None:
                self.db.rollback()
                product = self.repo.get(product_id)
                if product is None:
                    raise NotFoundError(f"Product {product_id} not found")
                logger.warning(
                    f"Insufficient stock for {product_id}: requested {quantity}, "
                    f"available {product.stock_quantity}"
                )
                raise InsufficientStockError(product_id, quantity, product.stock_quantity)

            # crossing zero flips in_stock in the same transaction
            if remaining == 0:
                self.repo.mark_out_of_stock(product_id, now)

        # a failed commit may still have been applied: never retry it blindly
        with storage_guard(self.db, f"stock decrement commit of {product_id}", ambiguous=True):
            self.db.commit()

        logger.info(f"Stock of {product_id} decremented by {quantity}, remaining {remaining}")

        return StockLevel(
            product_id=product_id,
            remaining_stock=remaining,
            in_stock=remaining > 0,
        )
