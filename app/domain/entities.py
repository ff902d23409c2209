# app/domain/entities.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.domain.errors import ClientInputError


class CartAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    CLEAR = "clearCart"

    @classmethod
    def parse(cls, value) -> "CartAction":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ClientInputError("Invalid action") from None


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    FULFILLED = "FULFILLED"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self is not OrderStatus.PENDING


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    added_at: datetime


@dataclass(frozen=True)
class ProductSnapshot:
    """Product fields needed to price a cart line, detached from the session."""

    product_id: str
    name: str
    unit_price: int
    image_ref: str


@dataclass(frozen=True)
class StockLevel:
    product_id: str
    remaining_stock: int
    in_stock: bool
