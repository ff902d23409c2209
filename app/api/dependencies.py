# app/api/dependencies.py
"""
Bootstrap of the per-request object graph.
Process-wide handles (session factory, settings, Celery) are resolved here
and passed down; the services never reach for globals themselves.
"""
from typing import Optional

from fastapi import Depends, Header, Query
from sqlalchemy.orm import Session, sessionmaker

from app.data.database import SessionLocal, get_db
from app.domain.errors import ForbiddenError
from app.services.cart_service import CartStore
from app.services.enrichment import EnrichmentJoiner, ProductBatchReader
from app.services.inventory_ledger import InventoryLedger
from app.services.notification_service import NotificationService
from app.services.order_assembler import OrderAssembler
from app.services.order_service import OrderService
from app.services.pagination import PageRequest
from app.services.product_service import ProductService
from app.services.stock_client import StockUpdateClient
from app.tasks.reconcile import enqueue_stock_reconciliation
from app.utils.settings import ADMIN_GROUP, STOCK_UPDATE_URL


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_joiner(session_factory: sessionmaker = Depends(get_session_factory)) -> EnrichmentJoiner:
    return EnrichmentJoiner(ProductBatchReader(session_factory))


def get_cart_store(
    db: Session = Depends(get_db),
    joiner: EnrichmentJoiner = Depends(get_joiner),
) -> CartStore:
    return CartStore(db, joiner=joiner)


def get_ledger(db: Session = Depends(get_db)) -> InventoryLedger:
    return InventoryLedger(db)


def get_stock_updater(db: Session = Depends(get_db)):
    if STOCK_UPDATE_URL:
        return StockUpdateClient(STOCK_UPDATE_URL)
    return InventoryLedger(db)


def get_order_assembler(
    db: Session = Depends(get_db),
    carts: CartStore = Depends(get_cart_store),
    joiner: EnrichmentJoiner = Depends(get_joiner),
    stock=Depends(get_stock_updater),
) -> OrderAssembler:
    return OrderAssembler(
        db,
        carts=carts,
        joiner=joiner,
        stock=stock,
        notify=NotificationService.send_order_confirmation,
        reconcile=enqueue_stock_reconciliation,
    )


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_product_service(db: Session = Depends(get_db)) -> ProductService:
    return ProductService(db)


def page_request(
    page_size: Optional[str] = Query(None, alias="pageSize"),
    next_token: Optional[str] = Query(None, alias="nextToken"),
) -> PageRequest:
    # raw strings: a bad pageSize is a 400 from the core, not a 422
    return PageRequest.from_query(page_size, next_token)


def is_admin(x_user_groups: Optional[str] = Header(None)) -> bool:
    if not x_user_groups:
        return False
    groups = {g.strip() for g in x_user_groups.split(",")}
    return ADMIN_GROUP in groups


def require_admin(admin: bool = Depends(is_admin)) -> None:
    if not admin:
        raise ForbiddenError("Forbidden: Admin access required")
