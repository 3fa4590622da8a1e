"""Buyer cart operations.

Lines are keyed by (product, color_name); "" is the key for products
without colors. Quantities are capped by the live catalog stock.
"""
from __future__ import annotations

from django.db import transaction

from api.errors import NotAuthenticatedError, NotFoundError, ValidationError
from catalog.services import ensure_in_stock, lookup_product, resolve_color

from .models import Cart, CartItem


def require_user(user):
    if user is None or not getattr(user, "is_authenticated", False):
        raise NotAuthenticatedError()
    return user


def get_cart(user, *, create: bool = True) -> Cart | None:
    require_user(user)
    if create:
        cart, _ = Cart.objects.get_or_create(user=user)
        return cart
    return Cart.objects.filter(user=user).first()


def cart_items(user):
    require_user(user)
    return (
        CartItem.objects.select_related("product")
        .filter(cart__user=user)
        .order_by("id")
    )


def find_line(qs, *, product_id: int, color: str | None = None) -> CartItem:
    """Resolve one cart line for ``product_id``.

    Without ``color`` the product must have exactly one line in the cart.
    """
    qs = qs.filter(product_id=int(product_id))
    if color is not None:
        qs = qs.filter(color_name=(color or "").strip())

    lines = list(qs.order_by("id")[:2])
    if not lines:
        raise NotFoundError("Item not found in cart")
    if len(lines) > 1:
        raise ValidationError("Several colors of this product are in the cart; specify the color")
    return lines[0]


def clean_qty(qty) -> int:
    try:
        qty = int(qty)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number")
    if qty < 1:
        raise ValidationError("Quantity must be at least 1")
    return qty


def add_item(*, user, product_id: int, qty: int = 1, color: str | None = None) -> CartItem:
    qty = clean_qty(qty)
    entry = lookup_product(product_id)
    color_key = resolve_color(entry, color)

    with transaction.atomic():
        cart = get_cart(user)
        item = (
            CartItem.objects.select_for_update()
            .filter(cart=cart, product_id=entry.product_id, color_name=color_key)
            .first()
        )
        new_qty = qty + (item.qty if item else 0)
        ensure_in_stock(entry, new_qty)

        if item:
            item.qty = new_qty
            item.unit_price = entry.unit_price
            item.save(update_fields=["qty", "unit_price", "updated_at"])
        else:
            item = CartItem.objects.create(
                cart=cart,
                product_id=entry.product_id,
                color_name=color_key,
                qty=new_qty,
                unit_price=entry.unit_price,
            )

    return item


def update_item(*, user, product_id: int, qty: int, color: str | None = None) -> CartItem:
    qty = clean_qty(qty)
    require_user(user)

    with transaction.atomic():
        item = find_line(
            CartItem.objects.select_for_update().filter(cart__user=user),
            product_id=product_id,
            color=color,
        )
        entry = lookup_product(item.product_id)
        ensure_in_stock(entry, qty)

        item.qty = qty
        item.unit_price = entry.unit_price
        item.save(update_fields=["qty", "unit_price", "updated_at"])

    return item


def remove_item(*, user, product_id: int, color: str | None = None) -> int:
    """Remove the line(s) for ``product_id``; all colors when ``color`` is None."""
    require_user(user)
    qs = CartItem.objects.filter(cart__user=user, product_id=int(product_id))
    if color is not None:
        qs = qs.filter(color_name=(color or "").strip())

    deleted, _ = qs.delete()
    if not deleted:
        raise NotFoundError("Item not found in cart")
    return deleted


def clear_cart(*, user) -> int:
    require_user(user)
    deleted, _ = CartItem.objects.filter(cart__user=user).delete()
    return deleted
