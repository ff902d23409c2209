# app/services/product_service.py
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from app.data.models.product import ProductModel
from app.domain.errors import ClientInputError, NotFoundError
from app.domain.schemas import ProductCreate, ProductOut, ProductPage, ProductUpdate
from app.repos.product_repo import ProductRepo
from app.services.pagination import PageRequest, split_page
from app.utils.logging import get_logger
from app.utils.storage import storage_guard

logger = get_logger(__name__)

# fields a partial update may write; in_stock is always derived
UPDATABLE_FIELDS = (
    "name",
    "description",
    "category",
    "unit_price",
    "image_ref",
    "stock_quantity",
)


def merge_product_update(update: ProductUpdate, now: datetime) -> Dict[str, Any]:
    """
    Allow-listed field merge: only fields present in the request and named
    in UPDATABLE_FIELDS end up in the write.
    """
    present = update.model_dump(exclude_unset=True)

    values = {}
    for field_name in UPDATABLE_FIELDS:
        if field_name in present:
            if present[field_name] is None:
                raise ClientInputError(f"{field_name} cannot be null")
            values[field_name] = present[field_name]

    if not values:
        raise ClientInputError("No valid attributes found to update")

    if "stock_quantity" in values:
        values["in_stock"] = values["stock_quantity"] > 0
    values["updated_at"] = now
    return values


class ProductService:
    """Catalog records the fulfillment core reads prices and stock from."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProductRepo(db)

    def create_product(self, payload: ProductCreate) -> ProductOut:
        now = datetime.now(timezone.utc)
        product = ProductModel(
            product_id=str(uuid.uuid4()),
            name=payload.name,
            description=payload.description,
            category=payload.category,
            unit_price=payload.unit_price,
            image_ref=payload.image_ref,
            stock_quantity=payload.stock_quantity,
            in_stock=payload.stock_quantity > 0,
            created_at=now,
            updated_at=now,
        )

        with storage_guard(self.db, "product create"):
            created = self.repo.create(product)

        logger.info(f"Successfully created product {created.product_id}")
        return ProductOut.model_validate(created)

    def get_product(self, product_id: str) -> ProductOut:
        with storage_guard(self.db, f"product lookup {product_id}"):
            product = self.repo.get(product_id)

        if not product:
            raise NotFoundError("Product not found")
        return ProductOut.model_validate(product)

    def update_product(self, product_id: str, update: ProductUpdate) -> ProductOut:
        values = merge_product_update(update, datetime.now(timezone.utc))

        with storage_guard(self.db, f"product update {product_id}"):
            rowcount = self.repo.update_fields(product_id, values)
            if rowcount == 0:
                self.repo.rollback()
                raise NotFoundError("Product not found")
            self.repo.commit()

        logger.info(f"Product {product_id} updated: {sorted(values)}")
        return self.get_product(product_id)

    def delete_product(self, product_id: str) -> None:
        with storage_guard(self.db, f"product delete {product_id}"):
            self.repo.delete(product_id)
            self.repo.commit()

        logger.info(f"Product {product_id} deleted")

    def list_products(self, page: PageRequest, category: str | None = None) -> ProductPage:
        start_key = page.start_key({"name": str, "productId": str})

        with storage_guard(self.db, "product list"):
            rows = self.repo.page(page.page_size + 1, start_key=start_key, category=category)

        products, next_token = split_page(
            rows,
            page.page_size,
            key_of=lambda p: {"name": p.name, "productId": p.product_id},
        )
        items = [ProductOut.model_validate(p) for p in products]

        logger.info(f"Successfully retrieved products, count {len(items)}")
        return ProductPage(items=items, total_count=len(items), next_token=next_token)
