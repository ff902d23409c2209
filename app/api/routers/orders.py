# app/api/routers/orders.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.dependencies import (
    get_order_assembler,
    get_order_service,
    is_admin,
    page_request,
    require_admin,
)
from app.domain.errors import ForbiddenError
from app.domain.schemas import (
    OrderOut,
    OrderPage,
    OrderPlacementOut,
    OrderStatusIn,
    PaymentCompletedIn,
)
from app.services.order_assembler import OrderAssembler
from app.services.order_service import OrderService
from app.services.pagination import PageRequest
from app.utils.retry import storage_retry

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/events/payment-completed", response_model=OrderPlacementOut, status_code=201)
def payment_completed(
    event: PaymentCompletedIn,
    response: Response,
    svc: OrderAssembler = Depends(get_order_assembler),
):
    """
    Consumer of the payment-event source.
    Creates the order from the owner's cart; a redelivered event returns
    the order created the first time (200).
    """
    placement = svc.handle_payment_completed(event)
    if placement.duplicate:
        response.status_code = status.HTTP_200_OK
    return placement


@router.get("", response_model=OrderPage)
def list_orders(
    owner_id: Optional[str] = Query(None, alias="ownerId"),
    page: PageRequest = Depends(page_request),
    admin: bool = Depends(is_admin),
    svc: OrderService = Depends(get_order_service),
):
    if owner_id is None and not admin:
        raise ForbiddenError("Forbidden: Admin access required")
    return storage_retry()(svc.list_orders)(page, owner_id=owner_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, svc: OrderService = Depends(get_order_service)):
    return storage_retry()(svc.get_order)(order_id)


@router.patch("/{order_id}/status", response_model=OrderOut, dependencies=[Depends(require_admin)])
def update_order_status(
    order_id: str,
    payload: OrderStatusIn,
    svc: OrderService = Depends(get_order_service),
):
    return svc.transition(order_id, payload.status)
