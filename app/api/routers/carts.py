#app/api/routers/carts.py
from fastapi import APIRouter, Depends

from app.api.dependencies import get_cart_store, page_request
from app.domain.schemas import CartOut, CartUpdateIn, CartUpdateOut
from app.services.cart_service import CartStore
from app.services.pagination import PageRequest
from app.utils.retry import storage_retry

router = APIRouter(prefix="/carts", tags=["carts"])


@router.post("", response_model=CartUpdateOut)
def update_cart(payload: CartUpdateIn, svc: CartStore = Depends(get_cart_store)):
    """
    Applies a batch of add / remove / clearCart entries in request order.
    One message per entry; an invalid action rejects the whole batch.
    """
    return CartUpdateOut(messages=svc.apply_batch(payload.items))


@router.get("/{owner_id}", response_model=CartOut)
def get_cart(
    owner_id: str,
    page: PageRequest = Depends(page_request),
    svc: CartStore = Depends(get_cart_store),
):
    return storage_retry()(svc.read)(owner_id, page)
