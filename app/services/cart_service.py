# app/services/cart_service.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.domain.entities import CartAction, CartLine
from app.domain.errors import ClientInputError, ConcurrentModificationError, NotFoundError
from app.domain.schemas import CartItemIn, CartOut
from app.repos.cart_repo import CartRepo
from app.services.enrichment import EnrichmentJoiner
from app.services.pagination import PageRequest, split_page
from app.utils.logging import get_logger
from app.utils.settings import CART_TTL_SECONDS
from app.utils.storage import storage_guard

logger = get_logger(__name__)

CART_DELETED_MESSAGE = "Cart deleted successfully"


@dataclass
class CartChangeResult:
    message: str
    deleted: bool
    lines: List[CartLine] = field(default_factory=list)


def merge_line_change(
    lines: Sequence[CartLine],
    product_id: Optional[str],
    delta: Optional[int],
    action: CartAction,
    now: datetime,
) -> List[CartLine]:
    """
    Pure merge of one change into the line set.
    Lines whose quantity drops to zero or below are dropped, never kept.
    """
    if action is CartAction.CLEAR:
        return []

    merged = []
    found = False
    for line in lines:
        if line.product_id != product_id:
            merged.append(line)
            continue

        found = True
        if action is CartAction.ADD:
            quantity = line.quantity + delta
        else:
            quantity = line.quantity - delta

        if quantity > 0:
            merged.append(CartLine(product_id=line.product_id, quantity=quantity, added_at=line.added_at))

    # removing something that is not in the cart changes nothing
    if not found and action is CartAction.ADD:
        merged.append(CartLine(product_id=product_id, quantity=delta, added_at=now))

    return merged


class CartStore:
    """
    Per-owner cart document.

    commands (apply_line_change, apply_batch, delete, purge_expired) write,
    queries (find, read) only read.
    Writes are conditional: a new cart is inserted under the unique owner
    key, an existing one is updated only if its version did not move.
    """

    def __init__(
        self,
        db: Session,
        joiner: EnrichmentJoiner | None = None,
        ttl_seconds: int = CART_TTL_SECONDS,
    ):
        self.db = db
        self.repo = CartRepo(db)
        self.joiner = joiner
        self.ttl_seconds = ttl_seconds

    #queries
    def find(self, owner_id: str) -> CartModel | None:
        with storage_guard(self.db, f"cart lookup for {owner_id}"):
            return self.repo.get_by_owner(owner_id)

    def read(self, owner_id: str, page: PageRequest) -> CartOut:
        """
        Use Case: enriched cart view, one page of lines ordered by product id.
        `total_price` covers the whole cart, not only the page.
        """
        if self.joiner is None:
            raise RuntimeError("CartStore.read needs an EnrichmentJoiner")

        start_key = page.start_key({"productId": str})

        cart = self.find(owner_id)
        if cart is None or not cart.items:
            logger.info(f"No cart found for user {owner_id}")
            raise NotFoundError(f"No cart found for user {owner_id}")

        lines = sorted(self.lines_of(cart), key=lambda line: line.product_id)
        enriched = self.joiner.enrich(lines)
        total_price = sum(line.unit_price * line.quantity for line in enriched)

        if start_key is not None:
            enriched = [line for line in enriched if line.product_id > start_key["productId"]]

        items, next_token = split_page(
            enriched,
            page.page_size,
            key_of=lambda line: {"productId": line.product_id},
        )

        logger.info(f"Found {len(lines)} items in cart for user {owner_id}")

        return CartOut(
            cart_id=cart.id,
            owner_id=cart.owner_id,
            expires_at=cart.expires_at,
            items=items,
            total_count=len(items),
            total_price=total_price,
            next_token=next_token,
        )

    @staticmethod
    def lines_of(cart: CartModel) -> List[CartLine]:
        return [
            CartLine(product_id=i.product_id, quantity=i.quantity, added_at=i.added_at)
            for i in cart.items
        ]

    #commands
    def get_or_create(self, owner_id: str) -> CartModel:
        """
        Single lookup. A missing cart is returned in memory only (version 0);
        it is stored by the first change applied to it.
        """
        existing = self.find(owner_id)
        if existing is not None:
            return existing

        now = datetime.now(timezone.utc)
        cart = CartModel(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            version=0,
            created_at=now,
            updated_at=now,
            expires_at=self._expiry(now),
        )
        cart.items = []

        logger.info(f"Creating new cart {cart.id} for user {owner_id}")
        return cart

    def apply_line_change(
        self,
        cart: CartModel,
        product_id: Optional[str],
        delta: Optional[int],
        mode,
    ) -> CartChangeResult:
        action = CartAction.parse(mode)
        self._check_change(action, product_id, delta)
        cart_id, owner_id = cart.id, cart.owner_id

        now = datetime.now(timezone.utc)
        lines = merge_line_change(self.lines_of(cart), product_id, delta, action, now)

        if not lines:
            self.delete(cart)
            return CartChangeResult(message=CART_DELETED_MESSAGE, deleted=True)

        expires_at = self._expiry(now)

        with storage_guard(self.db, f"cart update {cart_id}"):
            if cart.version == 0:
                self._insert(cart, lines, now, expires_at)
            else:
                self._update(cart, lines, now, expires_at)
            self.repo.commit()

        logger.info(f"Cart {cart_id} of user {owner_id} updated: {action.value} {product_id} x{delta}")

        return CartChangeResult(
            message=f"Cart updated successfully with {delta} items and action {action.value}",
            deleted=False,
            lines=lines,
        )

    def apply_batch(self, entries: Sequence[CartItemIn]) -> List[str]:
        """
        Use Case: cart mutation batch.
        The whole batch is checked first; the first invalid entry rejects it
        before anything is written. Entries then run in request order.
        """
        actions = []
        for entry in entries:
            action = CartAction.parse(entry.action)
            self._check_change(action, entry.product_id, entry.quantity)
            actions.append(action)

        messages = []
        for entry, action in zip(entries, actions):
            cart = self.get_or_create(entry.owner_id)
            result = self.apply_line_change(cart, entry.product_id, entry.quantity, action)
            messages.append(result.message)
        return messages

    def delete(self, cart: CartModel) -> None:
        """Idempotent: deleting a cart that is not stored is not an error."""
        if cart.version == 0:
            return

        self.delete_by_id(cart.id, cart.owner_id)

    def delete_by_id(self, cart_id: str, owner_id: str) -> None:
        """Delete by key only; a missing cart is not an error."""
        with storage_guard(self.db, f"cart delete {cart_id}"):
            deleted = self.repo.delete_cart(cart_id)
            self.repo.commit()

        if deleted:
            logger.info(f"Deleted cart {cart_id} of user {owner_id}")

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        with storage_guard(self.db, "expired cart purge"):
            cart_ids = self.repo.get_expired_cart_ids(int(now.timestamp()))
            for cart_id in cart_ids:
                self.repo.delete_cart(cart_id)
            self.repo.commit()

        if cart_ids:
            logger.info(f"Purged {len(cart_ids)} expired carts")
        return len(cart_ids)

    #helpers
    def _insert(self, cart: CartModel, lines: List[CartLine], now: datetime, expires_at: int):
        cart.version = 1
        cart.updated_at = now
        cart.expires_at = expires_at
        try:
            self.repo.insert_cart(cart, lines)
        except IntegrityError:
            self.repo.rollback()
            # version stays 0 so the in-memory cart is still "not stored"
            cart.version = 0
            raise ConcurrentModificationError(
                f"Cart for user {cart.owner_id} was created by another request"
            ) from None

    def _update(self, cart: CartModel, lines: List[CartLine], now: datetime, expires_at: int):
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "updated_at": now,
                "expires_at": expires_at,
            },
        )
        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrentModificationError(
                f"Cart {cart.id} was modified by another request"
            )
        self.repo.replace_items(cart.id, lines)

    def _expiry(self, now: datetime) -> int:
        return int(now.timestamp()) + self.ttl_seconds

    @staticmethod
    def _check_change(action: CartAction, product_id: Optional[str], delta: Optional[int]):
        if action is CartAction.CLEAR:
            return
        if not product_id:
            raise ClientInputError("Missing productId")
        if delta is None or isinstance(delta, bool) or delta < 1:
            raise ClientInputError("Quantity must be a positive integer")
