from sqlalchemy import Column, Integer, String, DateTime, JSON

from app.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    order_id = Column(String(36), primary_key=True)
    owner_id = Column(String(128), nullable=False, index=True)
    # derived from the payment event; unique so a redelivery cannot create a second order
    idempotency_key = Column(String(255), nullable=True, unique=True)

    status = Column(String(20), nullable=False, default="PENDING")  # PENDING, FULFILLED, FAILED
    total_amount = Column(Integer, nullable=False)
    customer = Column(String(200), nullable=True)

    # frozen copies, never joined back to products
    lines = Column(JSON, nullable=False)
    shipping_details = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
