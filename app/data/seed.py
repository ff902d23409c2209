# app/data/seed.py
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.data.database import Base, SessionLocal, engine
from app.data.models.product import ProductModel
from app.utils.logging import get_logger

logger = get_logger(__name__)

# prices in minor units
DEMO_PRODUCTS = [
    ("KB-001", "Keyboard", "peripherals", 19999, 25),
    ("MS-001", "Mouse", "peripherals", 4950, 40),
    ("MN-001", "Monitor", "displays", 89900, 5),
    ("CB-001", "USB-C Cable", "accessories", 1290, 0),
]


def seed(db: Session) -> int:
    # not forcing: only seed if empty
    if db.query(ProductModel).first():
        return 0

    now = datetime.now(timezone.utc)
    for product_id, name, category, unit_price, stock in DEMO_PRODUCTS:
        db.add(
            ProductModel(
                product_id=product_id,
                name=name,
                description="",
                category=category,
                unit_price=unit_price,
                image_ref=f"images/{product_id.lower()}.png",
                stock_quantity=stock,
                in_stock=stock > 0,
                created_at=now,
                updated_at=now,
            )
        )
    db.commit()
    logger.info(f"Seeded {len(DEMO_PRODUCTS)} products")
    return len(DEMO_PRODUCTS)


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        seed(session)
    finally:
        session.close()
