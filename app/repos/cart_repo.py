# app/repos/cart_repo.py
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.entities import CartLine


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_owner(self, owner_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.owner_id == owner_id).limit(1)
        ).scalar_one_or_none()

    def insert_cart(self, cart: CartModel, lines: List[CartLine]) -> None:
        """Conditional create: the unique owner key rejects a second cart."""
        cart.items = [self._item(cart.id, line) for line in lines]
        self.db.add(cart)
        self.db.flush()

    def update_cart_version(self, cart_id: str, old_version: int, new_data: dict) -> int:
        # UPDATE carts SET version = old + 1 ... WHERE id = :id AND version = :old
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def replace_items(self, cart_id: str, lines: List[CartLine]) -> None:
        self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        self.db.add_all([self._item(cart_id, line) for line in lines])
        self.db.flush()

    def delete_cart(self, cart_id: str) -> int:
        self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(
            delete(CartModel)
            .where(CartModel.id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def get_expired_cart_ids(self, now_epoch: int) -> List[str]:
        return list(
            self.db.execute(
                select(CartModel.id).where(CartModel.expires_at < now_epoch)
            ).scalars()
        )

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    @staticmethod
    def _item(cart_id: str, line: CartLine) -> CartItemModel:
        return CartItemModel(
            cart_id=cart_id,
            product_id=line.product_id,
            quantity=line.quantity,
            added_at=line.added_at,
        )
