# app/domain/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.domain.entities import OrderStatus


class ApiModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------- cart

class CartItemIn(ApiModel):
    """One entry of a cart mutation batch. `action` is validated by the cart store."""

    owner_id: str = Field(..., min_length=1)
    product_id: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = None
    action: str


class CartUpdateIn(ApiModel):
    items: List[CartItemIn] = Field(..., min_length=1)


class CartUpdateOut(ApiModel):
    messages: List[str]


class EnrichedLine(ApiModel):
    """Cart line joined with the product data valid at read time."""

    product_id: str
    quantity: int
    added_at: datetime
    name: str = "Unknown"
    unit_price: int = 0
    image_ref: str = ""


class CartOut(ApiModel):
    cart_id: str
    owner_id: str
    expires_at: int
    items: List[EnrichedLine]
    total_count: int
    total_price: int
    next_token: Optional[str] = None


# ---------------------------------------------------------------- orders

class ShippingAddress(ApiModel):
    line1: str = Field(..., min_length=1)
    line2: Optional[str] = None
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    state: Optional[str] = None
    country: str = Field(..., min_length=2)


class ShippingDetails(ApiModel):
    name: str = Field(..., min_length=1)
    address: ShippingAddress
    phone: Optional[str] = None


class PaymentCompletedIn(ApiModel):
    """Completed-payment notification, delivered at least once."""

    event_id: Optional[str] = Field(None, min_length=1, description="Stable id of the upstream event")
    owner_id: str = Field(..., min_length=1)
    amount_total: int = Field(..., ge=0, description="Paid amount in minor currency units")
    shipping_details: ShippingDetails


class Shortfall(ApiModel):
    product_id: str
    requested: int
    reason: str


class OrderPlacementOut(ApiModel):
    order_id: str
    order_status: OrderStatus
    duplicate: bool = False
    items: List[EnrichedLine]
    shortfalls: List[Shortfall] = []


class OrderOut(ApiModel):
    order_id: str
    owner_id: str
    customer: Optional[str] = None
    status: OrderStatus
    total_amount: int
    lines: List[EnrichedLine]
    shipping_details: Dict[str, Any]
    created_at: datetime
    updated_at: datetime


class OrderPage(ApiModel):
    items: List[OrderOut]
    total_count: int
    next_token: Optional[str] = None


class OrderStatusIn(ApiModel):
    status: OrderStatus


# ---------------------------------------------------------------- products

class ProductCreate(ApiModel):
    name: str = Field(..., min_length=2)
    description: str = ""
    category: str = Field(..., min_length=1)
    unit_price: int = Field(..., gt=0, description="Minor currency units")
    image_ref: str = ""
    stock_quantity: int = Field(0, ge=0)


class ProductUpdate(ApiModel):
    """Partial update. Only these fields can ever be written."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=2)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    unit_price: Optional[int] = Field(None, gt=0)
    image_ref: Optional[str] = None
    stock_quantity: Optional[int] = Field(None, ge=0)


class ProductOut(ApiModel):
    product_id: str
    name: str
    description: str
    category: str
    unit_price: int
    image_ref: str
    stock_quantity: int
    in_stock: bool
    created_at: datetime
    updated_at: datetime


class ProductPage(ApiModel):
    items: List[ProductOut]
    total_count: int
    next_token: Optional[str] = None


class StockItemIn(ApiModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class StockUpdateIn(ApiModel):
    items: List[StockItemIn] = Field(..., min_length=1)


class StockLevelOut(ApiModel):
    product_id: str
    remaining_stock: int
    in_stock: bool


class StockUpdateOut(ApiModel):
    results: List[StockLevelOut]


class MessageOut(ApiModel):
    message: str
