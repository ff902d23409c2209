# app/repos/product_repo.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, product_id: str) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def batch_get(self, product_ids: List[str]) -> List[ProductModel]:
        if not product_ids:
            return []
        return list(
            self.db.execute(
                select(ProductModel).where(ProductModel.product_id.in_(product_ids))
            ).scalars()
        )

    def create(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def update_fields(self, product_id: str, values: Dict[str, Any]) -> int:
        result = self.db.execute(
            update(ProductModel)
            .where(ProductModel.product_id == product_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete(self, product_id: str) -> int:
        result = self.db.execute(
            delete(ProductModel)
            .where(ProductModel.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def conditional_decrement(self, product_id: str, quantity: int, now: datetime) -> Optional[int]:
        """
        UPDATE products SET stock_quantity = stock_quantity - :q
        WHERE product_id = :id AND stock_quantity >= :q
        RETURNING stock_quantity

        None when the precondition failed or the product does not exist.
        """
        return self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.product_id == product_id,
                ProductModel.stock_quantity >= quantity,
            )
            .values(
                stock_quantity=ProductModel.stock_quantity - quantity,
                updated_at=now,
            )
            .returning(ProductModel.stock_quantity)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

    def mark_out_of_stock(self, product_id: str, now: datetime) -> int:
        # only while still exhausted, so a concurrent restock is never overwritten
        result = self.db.execute(
            update(ProductModel)
            .where(
                ProductModel.product_id == product_id,
                ProductModel.stock_quantity == 0,
            )
            .values(in_stock=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def page(self, limit: int, start_key: Optional[Dict[str, Any]] = None,
             category: Optional[str] = None) -> List[ProductModel]:
        """Range query ordered by (name, product_id), keyset continuation."""
        stmt = select(ProductModel)
        if category is not None:
            stmt = stmt.where(ProductModel.category == category)
        if start_key is not None:
            name, product_id = start_key["name"], start_key["productId"]
            stmt = stmt.where(
                or_(
                    ProductModel.name > name,
                    and_(ProductModel.name == name, ProductModel.product_id > product_id),
                )
            )
        stmt = stmt.order_by(ProductModel.name, ProductModel.product_id).limit(limit)
        return list(self.db.execute(stmt).scalars())

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
