# app/repos/order_repo.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        # unique idempotency_key makes this a create-if-absent
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_by_idempotency_key(self, key: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.idempotency_key == key)
        ).scalar_one_or_none()

    def transition_status(self, order_id: str, from_status: str, to_status: str, now: datetime) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.order_id == order_id, OrderModel.status == from_status)
            .values(status=to_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def page(self, limit: int, start_key: Optional[Dict[str, Any]] = None,
             owner_id: Optional[str] = None) -> List[OrderModel]:
        stmt = select(OrderModel)
        if owner_id is not None:
            stmt = stmt.where(OrderModel.owner_id == owner_id)
        if start_key is not None:
            stmt = stmt.where(OrderModel.order_id > start_key["orderId"])
        stmt = stmt.order_by(OrderModel.order_id).limit(limit)
        return list(self.db.execute(stmt).scalars())

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
