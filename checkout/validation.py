"""Purchase validation shared by cart checkout and direct ("buy now") checkout.

Both paths price from the live catalog. The cart's ``unit_price`` is a
display snapshot only and is refreshed here whenever it has drifted.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable

from api.errors import NotFoundError, ValidationError
from catalog.services import (
    CatalogEntry,
    ensure_in_stock,
    lookup_product,
    lookup_products,
    resolve_color,
)
from pricing.services import DraftLine, PricedOrderDraft, build_draft

from .cart import clean_qty, require_user
from .models import CartItem, Order
from .selection import SelectionKey

logger = logging.getLogger(__name__)


def _draft_line(entry: CatalogEntry, *, color: str, qty: int) -> DraftLine:
    return DraftLine(
        product_id=entry.product_id,
        sku=entry.sku,
        name=entry.name,
        color=color,
        qty=int(qty),
        unit_price=entry.unit_price,
        delivery_price=entry.delivery_price,
        seller_id=entry.seller_id,
    )


def validate_cart_purchase(
    user,
    selected_keys: Iterable[SelectionKey] | None = None,
    *,
    use_referral_coins: bool = False,
    for_update: bool = False,
) -> PricedOrderDraft:
    """Validate the buyer's selected cart lines and price them.

    ``selected_keys`` defaults to the persisted selection. Every key must
    match a cart line. ``for_update`` locks the buyer's cart lines and must
    be used inside a transaction.
    """
    require_user(user)

    qs = CartItem.objects.select_related("product").filter(cart__user=user)
    if for_update:
        qs = qs.select_for_update(of=("self",))
    items = list(qs.order_by("id"))
    if selected_keys is None:
        items = [it for it in items if it.is_selected]
    else:
        keys = {SelectionKey.of(k.product_id, k.color) for k in selected_keys}
        by_key = {SelectionKey.for_item(it): it for it in items}
        missing = keys - set(by_key)
        if missing:
            raise NotFoundError("Item not found in cart")
        items = [it for it in items if SelectionKey.for_item(it) in keys]

    if not items:
        raise ValidationError("No items selected for checkout")

    entries = lookup_products(it.product_id for it in items)

    lines: list[DraftLine] = []
    qty_by_product: dict[int, int] = defaultdict(int)
    for it in items:
        entry = entries.get(int(it.product_id))
        if entry is None:
            raise NotFoundError(f"{it.product.name} is no longer available")

        color = resolve_color(entry, it.color_name or None)
        qty_by_product[entry.product_id] += int(it.qty)

        if it.unit_price != entry.unit_price:
            CartItem.objects.filter(id=it.id).update(unit_price=entry.unit_price)
            logger.info(
                "Cart price snapshot refreshed",
                extra={"cart_item_id": it.id, "product_id": entry.product_id},
            )

        lines.append(_draft_line(entry, color=color, qty=it.qty))

    # Colors of one product share its stock.
    for product_id, qty in qty_by_product.items():
        ensure_in_stock(entries[product_id], qty)

    return build_draft(
        lines,
        user,
        use_referral_coins=use_referral_coins,
        source=Order.Source.CART,
    )


def validate_direct_purchase(
    user,
    product_id: int,
    quantity: int,
    color: str | None = None,
    *,
    use_referral_coins: bool = False,
) -> PricedOrderDraft:
    require_user(user)
    qty = clean_qty(quantity)

    entry = lookup_product(product_id)
    color_key = resolve_color(entry, color)
    ensure_in_stock(entry, qty)

    return build_draft(
        [_draft_line(entry, color=color_key, qty=qty)],
        user,
        use_referral_coins=use_referral_coins,
        source=Order.Source.DIRECT,
    )
