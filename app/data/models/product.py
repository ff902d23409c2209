from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, CheckConstraint

from app.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    product_id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String(50), nullable=False, index=True)

    # minor currency units
    unit_price = Column(Integer, nullable=False)
    image_ref = Column(String(500), nullable=False, default="")

    stock_quantity = Column(Integer, nullable=False, default=0)
    in_stock = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
    )
