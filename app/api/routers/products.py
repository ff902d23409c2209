# app/api/routers/products.py
from fastapi import APIRouter, Depends

from app.api.dependencies import (
    get_ledger,
    get_product_service,
    page_request,
    require_admin,
)
from app.domain.schemas import (
    MessageOut,
    ProductCreate,
    ProductOut,
    ProductPage,
    ProductUpdate,
    StockLevelOut,
    StockUpdateIn,
    StockUpdateOut,
)
from app.services.inventory_ledger import InventoryLedger
from app.services.pagination import PageRequest
from app.services.product_service import ProductService
from app.utils.logging import get_logger
from app.utils.retry import storage_retry

logger = get_logger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductPage)
def list_products(
    page: PageRequest = Depends(page_request),
    svc: ProductService = Depends(get_product_service),
):
    return storage_retry()(svc.list_products)(page)


@router.get("/category/{category}", response_model=ProductPage)
def list_products_by_category(
    category: str,
    page: PageRequest = Depends(page_request),
    svc: ProductService = Depends(get_product_service),
):
    return storage_retry()(svc.list_products)(page, category=category)


@router.post("/stock", response_model=StockUpdateOut)
def update_stock(payload: StockUpdateIn, ledger: InventoryLedger = Depends(get_ledger)):
    """
    Stock-update collaborator endpoint.
    Items are decremented in order; the first failure stops the request,
    decrements already applied stay applied.
    """
    decrement = storage_retry()(ledger.decrement)
    results = []
    for item in payload.items:
        level = decrement(item.product_id, item.quantity)
        results.append(
            StockLevelOut(
                product_id=level.product_id,
                remaining_stock=level.remaining_stock,
                in_stock=level.in_stock,
            )
        )
    logger.info(f"Stock updated for {len(results)} products")
    return StockUpdateOut(results=results)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, svc: ProductService = Depends(get_product_service)):
    return storage_retry()(svc.get_product)(product_id)


@router.post("", response_model=ProductOut, status_code=201, dependencies=[Depends(require_admin)])
def create_product(payload: ProductCreate, svc: ProductService = Depends(get_product_service)):
    return svc.create_product(payload)


@router.patch("/{product_id}", response_model=ProductOut, dependencies=[Depends(require_admin)])
def update_product(
    product_id: str,
    payload: ProductUpdate,
    svc: ProductService = Depends(get_product_service),
):
    return svc.update_product(product_id, payload)


@router.delete("/{product_id}", response_model=MessageOut, dependencies=[Depends(require_admin)])
def delete_product(product_id: str, svc: ProductService = Depends(get_product_service)):
    svc.delete_product(product_id)
    return MessageOut(message="Product deleted successfully")
