"""Tests for CartStore.

Covers:
- add / remove / clearCart merge rules
- an emptied cart is deleted and no longer found
- batch validation happens before any write
- conditional writes lose against concurrent writers
- enriched paginated reads
- expiry purge
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.data.models.cart_item import CartItemModel
from app.domain.entities import CartAction, CartLine
from app.domain.errors import ClientInputError, ConcurrentModificationError, NotFoundError
from app.domain.schemas import CartItemIn
from app.services.cart_service import CART_DELETED_MESSAGE, CartStore, merge_line_change
from app.services.pagination import PageRequest, PaginationCodec

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _entry(action, product_id="W1", quantity=1, owner_id="u1"):
    return CartItemIn(owner_id=owner_id, product_id=product_id, quantity=quantity, action=action)


def _change(store, owner_id, product_id, delta, action):
    cart = store.get_or_create(owner_id)
    return store.apply_line_change(cart, product_id, delta, action)


class TestMergeLineChange:
    def test_add_appends_new_line(self):
        lines = merge_line_change([], "W1", 2, CartAction.ADD, NOW)
        assert lines == [CartLine("W1", 2, NOW)]

    def test_add_increments_existing_line_and_keeps_added_at(self):
        earlier = NOW - timedelta(days=1)
        lines = merge_line_change([CartLine("W1", 2, earlier)], "W1", 3, CartAction.ADD, NOW)
        assert lines == [CartLine("W1", 5, earlier)]

    def test_remove_below_zero_drops_line(self):
        lines = merge_line_change([CartLine("W1", 2, NOW)], "W1", 7, CartAction.REMOVE, NOW)
        assert lines == []

    def test_remove_of_absent_product_is_noop(self):
        existing = [CartLine("W1", 2, NOW)]
        assert merge_line_change(existing, "W2", 1, CartAction.REMOVE, NOW) == existing

    def test_clear_empties_everything(self):
        existing = [CartLine("W1", 2, NOW), CartLine("W2", 1, NOW)]
        assert merge_line_change(existing, None, None, CartAction.CLEAR, NOW) == []


class TestApplyLineChange:
    def test_add_then_add_then_remove_all(self, cart_store):
        first = _change(cart_store, "u1", "W1", 2, "add")
        assert first.message == "Cart updated successfully with 2 items and action add"

        second = _change(cart_store, "u1", "W1", 3, "add")
        assert second.lines[0].quantity == 5

        cart = cart_store.find("u1")
        assert [(i.product_id, i.quantity) for i in cart.items] == [("W1", 5)]

        third = _change(cart_store, "u1", "W1", 5, "remove")
        assert third.deleted is True
        assert third.message == CART_DELETED_MESSAGE
        assert cart_store.find("u1") is None

    def test_no_line_with_non_positive_quantity_is_stored(self, cart_store, db):
        _change(cart_store, "u1", "W1", 2, "add")
        _change(cart_store, "u1", "W2", 4, "add")
        _change(cart_store, "u1", "W1", 2, "remove")

        quantities = [i.quantity for i in db.query(CartItemModel).all()]
        assert quantities == [4]

    def test_version_moves_on_every_write(self, cart_store):
        _change(cart_store, "u1", "W1", 1, "add")
        assert cart_store.find("u1").version == 1

        _change(cart_store, "u1", "W1", 1, "add")
        assert cart_store.find("u1").version == 2

    def test_write_refreshes_expiry(self, db, joiner):
        store = CartStore(db, joiner=joiner, ttl_seconds=60)
        before = int(datetime.now(timezone.utc).timestamp())

        _change(store, "u1", "W1", 1, "add")

        assert store.find("u1").expires_at >= before + 60

    def test_clear_cart_twice_is_idempotent(self, cart_store):
        _change(cart_store, "u1", "W1", 2, "add")

        assert _change(cart_store, "u1", None, None, "clearCart").message == CART_DELETED_MESSAGE
        assert _change(cart_store, "u1", None, None, "clearCart").message == CART_DELETED_MESSAGE
        assert cart_store.find("u1") is None

    def test_invalid_action(self, cart_store):
        with pytest.raises(ClientInputError) as exc:
            _change(cart_store, "u1", "W1", 1, "explode")
        assert exc.value.message == "Invalid action"

    @pytest.mark.parametrize("product_id, delta", [(None, 1), ("W1", 0), ("W1", -2), ("W1", None)])
    def test_add_needs_product_and_positive_quantity(self, cart_store, product_id, delta):
        with pytest.raises(ClientInputError):
            _change(cart_store, "u1", product_id, delta, "add")
        assert cart_store.find("u1") is None

    def test_stale_version_is_rejected(self, cart_store, session_factory):
        _change(cart_store, "u1", "W1", 1, "add")
        stale = cart_store.get_or_create("u1")

        other = session_factory()
        try:
            _change(CartStore(other), "u1", "W1", 1, "add")
        finally:
            other.close()

        with pytest.raises(ConcurrentModificationError):
            cart_store.apply_line_change(stale, "W1", 1, "add")

        cart_store.db.expire_all()
        assert cart_store.find("u1").items[0].quantity == 2

    def test_second_cart_for_same_owner_is_rejected(self, cart_store):
        first = cart_store.get_or_create("u1")
        second = cart_store.get_or_create("u1")

        cart_store.apply_line_change(first, "W1", 1, "add")
        with pytest.raises(ConcurrentModificationError):
            cart_store.apply_line_change(second, "W2", 1, "add")

        cart = cart_store.find("u1")
        assert cart.id == first.id
        assert [i.product_id for i in cart.items] == ["W1"]


class TestApplyBatch:
    def test_entries_run_in_order(self, cart_store):
        messages = cart_store.apply_batch(
            [
                _entry("add", "W1", 2),
                _entry("add", "W2", 1),
                _entry("remove", "W1", 2),
            ]
        )

        assert messages == [
            "Cart updated successfully with 2 items and action add",
            "Cart updated successfully with 1 items and action add",
            "Cart updated successfully with 2 items and action remove",
        ]
        assert [i.product_id for i in cart_store.find("u1").items] == ["W2"]

    def test_invalid_action_rejects_whole_batch_before_writing(self, cart_store):
        with pytest.raises(ClientInputError):
            cart_store.apply_batch([_entry("add", "W1", 2), _entry("bogus", "W1", 1)])

        assert cart_store.find("u1") is None

    def test_several_owners_in_one_batch(self, cart_store):
        cart_store.apply_batch([_entry("add", "W1", 1, owner_id="a"), _entry("add", "W1", 1, owner_id="b")])

        assert cart_store.find("a") is not None
        assert cart_store.find("b") is not None


class TestRead:
    def test_missing_cart_is_not_found(self, cart_store):
        with pytest.raises(NotFoundError):
            cart_store.read("nobody", PageRequest())

    def test_enriched_lines_and_total(self, cart_store, add_product):
        add_product(product_id="W1", name="Widget", unit_price=250)
        add_product(product_id="G1", name="Gadget", unit_price=1000)
        cart_store.apply_batch([_entry("add", "W1", 2), _entry("add", "G1", 1), _entry("add", "X9", 4)])

        page = cart_store.read("u1", PageRequest())

        assert [i.product_id for i in page.items] == ["G1", "W1", "X9"]
        assert page.items[0].name == "Gadget"
        assert page.items[2].name == "Unknown"
        assert page.total_price == 2 * 250 + 1000
        assert page.total_count == 3
        assert page.next_token is None

    def test_pages_of_a_25_line_cart(self, cart_store):
        cart_store.apply_batch([_entry("add", f"P{i:02d}", 1) for i in range(25)])

        first = cart_store.read("u1", PageRequest(page_size=10))
        second = cart_store.read("u1", PageRequest(page_size=10, next_token=first.next_token))
        third = cart_store.read("u1", PageRequest(page_size=10, next_token=second.next_token))

        assert (len(first.items), len(second.items), len(third.items)) == (10, 10, 5)
        assert first.next_token is not None
        assert second.next_token is not None
        assert third.next_token is None
        seen = [i.product_id for p in (first, second, third) for i in p.items]
        assert seen == [f"P{i:02d}" for i in range(25)]

    def test_cursor_with_non_string_product_id_is_rejected(self, cart_store):
        cart_store.apply_batch([_entry("add", "W1", 1)])
        cursor = PaginationCodec.encode({"productId": 5})

        with pytest.raises(ClientInputError):
            cart_store.read("u1", PageRequest(next_token=cursor))

    def test_cursor_of_another_listing_is_rejected(self, cart_store):
        cart_store.apply_batch([_entry("add", "W1", 1)])
        cursor = PaginationCodec.encode({"orderId": "o-1"})

        with pytest.raises(ClientInputError):
            cart_store.read("u1", PageRequest(next_token=cursor))


class TestPurgeExpired:
    def test_only_expired_carts_are_removed(self, db, joiner):
        short = CartStore(db, joiner=joiner, ttl_seconds=10)
        long = CartStore(db, joiner=joiner, ttl_seconds=10_000)
        _change(short, "old", "W1", 1, "add")
        _change(long, "fresh", "W1", 1, "add")

        later = datetime.now(timezone.utc) + timedelta(seconds=100)
        assert short.purge_expired(now=later) == 1

        assert short.find("old") is None
        assert short.find("fresh") is not None
        assert db.query(CartItemModel).count() == 1
