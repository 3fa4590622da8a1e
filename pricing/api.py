from __future__ import annotations

from ninja import Router
from ninja.errors import HttpError

from catalog.services import lookup_product, resolve_color

from .schemas import QuoteOut
from .services import DraftLine, build_draft

router = Router(tags=["pricing"])


@router.get("/quote", response=QuoteOut)
def quote(request, product_id: int, qty: int = 1, color: str | None = None):
    qty = int(qty or 1)
    if qty <= 0:
        raise HttpError(400, "qty must be positive")

    entry = lookup_product(product_id)
    color_key = resolve_color(entry, color) if color else ""

    line = DraftLine(
        product_id=entry.product_id,
        sku=entry.sku,
        name=entry.name,
        color=color_key,
        qty=qty,
        unit_price=entry.unit_price,
        delivery_price=entry.delivery_price,
        seller_id=entry.seller_id,
    )
    # Anonymous quote: no referral discount.
    draft = build_draft([line], None, source="direct")

    return {
        "product_id": entry.product_id,
        "currency": draft.currency,
        "color": color_key,
        "unit_price": entry.unit_price,
        "qty": qty,
        "subtotal": draft.subtotal,
        "delivery_fee": draft.delivery_fee,
        "total": draft.total,
    }
