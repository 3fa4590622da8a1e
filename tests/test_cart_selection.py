"""Tests for cart lines and the persisted checkout selection."""

from decimal import Decimal

import pytest

from api.errors import (
    InvalidVariantError,
    NotAuthenticatedError,
    NotFoundError,
    OutOfStockError,
    ValidationError,
)
from checkout.cart import add_item, cart_items, clear_cart, remove_item, update_item
from checkout.models import CartItem
from checkout.selection import SelectionKey, get_selected, set_selection, toggle_selection


class TestAddItem:
    def test_new_line_is_selected_with_price_snapshot(self, buyer, plain_product):
        item = add_item(user=buyer, product_id=plain_product.id, qty=2)
        assert item.qty == 2
        assert item.is_selected
        assert item.unit_price == Decimal("1000.00")
        assert item.color_name == ""

    def test_same_key_merges(self, buyer, colored_product):
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Red")
        item = add_item(user=buyer, product_id=colored_product.id, qty=2, color="Red")
        assert item.qty == 3
        assert CartItem.objects.filter(cart__user=buyer).count() == 1

    def test_colors_are_separate_lines(self, buyer, colored_product):
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Red")
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Blue")
        assert CartItem.objects.filter(cart__user=buyer).count() == 2

    def test_color_required(self, buyer, colored_product):
        with pytest.raises(InvalidVariantError):
            add_item(user=buyer, product_id=colored_product.id, qty=1)

    def test_merged_quantity_capped_by_stock(self, buyer, make_product):
        product = make_product(stock=3)
        add_item(user=buyer, product_id=product.id, qty=2)
        with pytest.raises(OutOfStockError):
            add_item(user=buyer, product_id=product.id, qty=2)
        assert CartItem.objects.get(cart__user=buyer).qty == 2

    def test_zero_quantity_rejected(self, buyer, plain_product):
        with pytest.raises(ValidationError):
            add_item(user=buyer, product_id=plain_product.id, qty=0)

    def test_requires_user(self, plain_product):
        with pytest.raises(NotAuthenticatedError):
            add_item(user=None, product_id=plain_product.id, qty=1)


class TestUpdateAndRemove:
    def test_update_sets_quantity(self, buyer, plain_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        item = update_item(user=buyer, product_id=plain_product.id, qty=5)
        assert item.qty == 5

    def test_update_below_one_rejected(self, buyer, plain_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        with pytest.raises(ValidationError):
            update_item(user=buyer, product_id=plain_product.id, qty=0)

    def test_update_needs_color_when_ambiguous(self, buyer, colored_product):
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Red")
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Blue")
        with pytest.raises(ValidationError):
            update_item(user=buyer, product_id=colored_product.id, qty=2)
        item = update_item(user=buyer, product_id=colored_product.id, qty=2, color="Blue")
        assert item.qty == 2

    def test_update_missing_line(self, buyer, plain_product):
        with pytest.raises(NotFoundError):
            update_item(user=buyer, product_id=plain_product.id, qty=1)

    def test_remove(self, buyer, plain_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        remove_item(user=buyer, product_id=plain_product.id)
        assert list(cart_items(buyer)) == []

    def test_remove_missing_line(self, buyer, plain_product):
        with pytest.raises(NotFoundError):
            remove_item(user=buyer, product_id=plain_product.id)

    def test_clear(self, buyer, plain_product, colored_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Red")
        assert clear_cart(user=buyer) == 2


class TestSelection:
    def test_toggle_flips_once_per_call(self, buyer, plain_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        assert toggle_selection(user=buyer, product_id=plain_product.id) is False
        assert toggle_selection(user=buyer, product_id=plain_product.id) is True
        assert CartItem.objects.filter(cart__user=buyer).count() == 1

    def test_toggle_by_color(self, buyer, colored_product):
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Red")
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Blue")
        toggle_selection(user=buyer, product_id=colored_product.id, color="Blue")
        assert get_selected(buyer) == {SelectionKey(colored_product.id, "Red")}

    def test_toggle_missing_line(self, buyer, plain_product):
        with pytest.raises(NotFoundError):
            toggle_selection(user=buyer, product_id=plain_product.id)

    def test_set_selection_is_idempotent(self, buyer, plain_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        assert set_selection(user=buyer, product_id=plain_product.id, selected=False) is False
        assert set_selection(user=buyer, product_id=plain_product.id, selected=False) is False
        assert get_selected(buyer) == set()

    def test_selection_persists(self, buyer, plain_product, colored_product):
        add_item(user=buyer, product_id=plain_product.id, qty=1)
        add_item(user=buyer, product_id=colored_product.id, qty=1, color="Red")
        set_selection(user=buyer, product_id=plain_product.id, selected=False)

        # Fresh query, as a second device would see it.
        assert get_selected(buyer) == {SelectionKey.of(colored_product.id, "Red")}
