"""Per-buyer checkout selection, persisted on ``CartItem.is_selected``."""
from __future__ import annotations

from dataclasses import dataclass

from django.db import transaction

from api.errors import NotFoundError

from .cart import find_line, require_user
from .models import CartItem


@dataclass(frozen=True)
class SelectionKey:
    product_id: int
    color: str = ""

    @classmethod
    def of(cls, product_id, color: str | None = None) -> "SelectionKey":
        return cls(product_id=int(product_id), color=(color or "").strip())

    @classmethod
    def for_item(cls, item: CartItem) -> "SelectionKey":
        return cls(product_id=int(item.product_id), color=item.color_name or "")


def toggle_selection(*, user, product_id: int, color: str | None = None) -> bool:
    """Flip the line's membership in the selection and return the new state."""
    require_user(user)
    with transaction.atomic():
        # Row lock: concurrent toggles each flip exactly once, in turn.
        item = find_line(
            CartItem.objects.select_for_update().filter(cart__user=user),
            product_id=product_id,
            color=color,
        )
        item.is_selected = not item.is_selected
        item.save(update_fields=["is_selected"])
    return item.is_selected


def set_selection(*, user, product_id: int, selected: bool, color: str | None = None) -> bool:
    require_user(user)
    with transaction.atomic():
        item = find_line(
            CartItem.objects.select_for_update().filter(cart__user=user),
            product_id=product_id,
            color=color,
        )
        if item.is_selected != bool(selected):
            item.is_selected = bool(selected)
            item.save(update_fields=["is_selected"])
    return item.is_selected


def set_all_selected(*, user, selected: bool) -> int:
    require_user(user)
    return CartItem.objects.filter(cart__user=user).update(is_selected=bool(selected))


def get_selected(user) -> set[SelectionKey]:
    require_user(user)
    rows = CartItem.objects.filter(cart__user=user, is_selected=True).values_list(
        "product_id", "color_name"
    )
    return {SelectionKey.of(pid, color) for pid, color in rows}


def keys_for_item_ids(*, user, item_ids) -> set[SelectionKey]:
    """Map cart line ids to selection keys; every id must belong to the buyer's cart."""
    require_user(user)
    wanted = {int(i) for i in item_ids}
    items = list(CartItem.objects.filter(cart__user=user, id__in=wanted))
    if len(items) != len(wanted):
        raise NotFoundError("Item not found in cart")
    return {SelectionKey.for_item(it) for it in items}
