#app/data/models/cart.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from app.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(String(36), primary_key=True)
    # one active cart per owner
    owner_id = Column(String(128), nullable=False, unique=True, index=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    # epoch seconds
    expires_at = Column(Integer, nullable=False, index=True)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.product_id",
        lazy="selectin",
    )
