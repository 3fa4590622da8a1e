from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Q
from ninja import Router
from ninja.pagination import PageNumberPagination, paginate

from accounts.auth import JWTAuth
from api.errors import ForbiddenError
from pricing.services import PricedOrderDraft, quantize_money

from .cart import add_item, cart_items, clear_cart, remove_item, require_user, update_item
from .lifecycle import CANCEL_REASONS, advance_status, cancel_order, get_order
from .models import Order
from .schemas import (
    CancelIn,
    CartItemAddIn,
    CartItemUpdateIn,
    CartOut,
    DirectOrderIn,
    DirectPurchaseIn,
    DraftOut,
    OrderConfirmationOut,
    OrderCreateIn,
    OrderListOut,
    OrderOut,
    SavedAddressResponseOut,
    StatusUpdateIn,
    ToggleSelectionIn,
    ToggleSelectionOut,
)
from .selection import set_selection, toggle_selection
from .services import get_saved_address, place_cart_order, place_direct_order
from .validation import validate_cart_purchase, validate_direct_purchase

logger = logging.getLogger(__name__)

cart_router = Router(tags=["cart"])
orders_router = Router(tags=["orders"])
_auth = JWTAuth()


def _idempotency_key(request) -> str:
    return (request.headers.get("Idempotency-Key") or "").strip()[:80]


def _cart_out(user) -> dict:
    items = list(cart_items(user))

    selected_subtotal = Decimal("0.00")
    out_items = []
    for it in items:
        line_total = quantize_money(Decimal(it.unit_price) * it.qty)
        if it.is_selected:
            selected_subtotal += line_total
        out_items.append(
            {
                "id": it.id,
                "product_id": it.product_id,
                "sku": it.product.sku,
                "name": it.product.name,
                "color": it.color_name,
                "qty": it.qty,
                "stock_available": int(it.product.stock),
                "unit_price": it.unit_price,
                "line_total": line_total,
                "is_selected": it.is_selected,
            }
        )

    return {
        "currency": settings.STORE_CURRENCY,
        "items": out_items,
        "item_count": sum(it.qty for it in items),
        "selected_count": sum(1 for it in items if it.is_selected),
        "selected_subtotal": quantize_money(selected_subtotal),
    }


def _draft_out(draft: PricedOrderDraft) -> dict:
    return {
        "source": str(draft.source),
        "currency": draft.currency,
        "lines": [
            {
                "product_id": ln.product_id,
                "sku": ln.sku,
                "name": ln.name,
                "color": ln.color,
                "qty": ln.qty,
                "unit_price": ln.unit_price,
                "line_total": ln.line_total,
            }
            for ln in draft.lines
        ],
        "subtotal": draft.subtotal,
        "delivery_fee": draft.delivery_fee,
        "referral_discount": draft.referral_discount,
        "coins_used": draft.coins_used,
        "total": draft.total,
    }


def _shipping_out(order: Order) -> dict:
    return {
        "first_name": order.shipping_first_name,
        "last_name": order.shipping_last_name,
        "email": order.shipping_email,
        "phone": order.shipping_phone,
        "address": order.shipping_address,
        "city": order.shipping_city,
        "zip_code": order.shipping_zip_code,
    }


def _order_out(order: Order) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "source": order.source,
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "currency": order.currency,
        "subtotal": order.subtotal,
        "delivery_fee": order.delivery_fee,
        "referral_discount": order.referral_discount,
        "coins_used": int(order.coins_used),
        "final_amount": order.final_amount,
        "shipping_address": _shipping_out(order),
        "cancel_reason": order.cancel_reason or "",
        "created_at": order.created_at,
        "lines": [
            {
                "product_id": ln.product_id,
                "sku": ln.sku,
                "name": ln.name,
                "color": ln.color_name,
                "qty": ln.qty,
                "unit_price": ln.unit_price,
                "line_total": ln.line_total,
            }
            for ln in order.lines.all()
        ],
        "status_history": [
            {
                "from_status": ch.from_status,
                "to_status": ch.to_status,
                "reason": ch.reason,
                "created_at": ch.created_at,
            }
            for ch in order.status_changes.all()
        ],
    }


def _order_list_out(order: Order) -> dict:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "currency": order.currency,
        "final_amount": order.final_amount,
        "item_count": int(getattr(order, "line_count", 0) or 0),
        "customer_name": order.shipping_full_name,
        "city": order.shipping_city,
        "created_at": order.created_at,
    }


# Cart


@cart_router.get("", response=CartOut, auth=_auth)
def get_cart(request):
    return _cart_out(request.auth)


@cart_router.post("/add", response=CartOut, auth=_auth)
def add_to_cart(request, payload: CartItemAddIn):
    add_item(user=request.auth, product_id=payload.product_id, qty=payload.quantity, color=payload.color)
    return _cart_out(request.auth)


@cart_router.put("/update", response=CartOut, auth=_auth)
def update_cart_item(request, payload: CartItemUpdateIn):
    update_item(user=request.auth, product_id=payload.product_id, qty=payload.quantity, color=payload.color)
    return _cart_out(request.auth)


@cart_router.delete("/remove/{product_id}", response=CartOut, auth=_auth)
def remove_cart_item(request, product_id: int, color: str | None = None):
    remove_item(user=request.auth, product_id=product_id, color=color)
    return _cart_out(request.auth)


@cart_router.delete("/clear", response=CartOut, auth=_auth)
def clear_cart_items(request):
    clear_cart(user=request.auth)
    return _cart_out(request.auth)


@cart_router.put("/toggle-selection", response=ToggleSelectionOut, auth=_auth)
def toggle_cart_selection(request, payload: ToggleSelectionIn):
    if payload.selected is None:
        selected = toggle_selection(user=request.auth, product_id=payload.product_id, color=payload.color)
    else:
        selected = set_selection(
            user=request.auth,
            product_id=payload.product_id,
            selected=payload.selected,
            color=payload.color,
        )
    return {"product_id": payload.product_id, "color": (payload.color or "").strip(), "selected": selected}


@cart_router.get("/validate-checkout", response=DraftOut, auth=_auth)
def validate_checkout(request, use_referral_coins: bool = False):
    draft = validate_cart_purchase(request.auth, use_referral_coins=use_referral_coins)
    return _draft_out(draft)


@cart_router.post("/validate-direct-purchase", response=DraftOut, auth=_auth)
def validate_direct(request, payload: DirectPurchaseIn):
    draft = validate_direct_purchase(
        request.auth,
        payload.product_id,
        payload.quantity,
        payload.color,
        use_referral_coins=payload.use_referral_coins,
    )
    return _draft_out(draft)


# Orders


@orders_router.post("", response=OrderOut, auth=_auth)
def create_cart_order(request, payload: OrderCreateIn):
    order = place_cart_order(
        user=request.auth,
        shipping_address=payload.shipping_address.model_dump(),
        payment_method=payload.payment_method,
        use_referral_coins=payload.use_referral_coins,
        selected_item_ids=payload.selected_item_ids,
        idempotency_key=_idempotency_key(request),
    )
    return _order_out(order)


@orders_router.post("/direct", response=OrderOut, auth=_auth)
def create_direct_order(request, payload: DirectOrderIn):
    order = place_direct_order(
        user=request.auth,
        product_id=payload.product_id,
        quantity=payload.quantity,
        color=payload.color,
        shipping_address=payload.shipping_address.model_dump(),
        payment_method=payload.payment_method,
        use_referral_coins=payload.use_referral_coins,
        idempotency_key=_idempotency_key(request),
    )
    return _order_out(order)


@orders_router.get("", response=list[OrderListOut], auth=_auth)
def list_my_orders(request, limit: int = 20):
    user = require_user(request.auth)
    limit = max(1, min(int(limit or 20), 50))
    qs = (
        Order.objects.filter(user=user)
        .annotate(line_count=Count("lines"))
        .order_by("-created_at", "-id")[:limit]
    )
    return [_order_list_out(o) for o in qs]


@orders_router.get("/saved-address", response=SavedAddressResponseOut, auth=_auth)
def saved_address(request):
    return {"saved_address": get_saved_address(request.auth)}


@orders_router.get("/cancel-reasons", response=list[str])
def cancel_reasons(request):
    return list(CANCEL_REASONS)


@orders_router.get("/admin", response=list[OrderListOut], auth=_auth)
@paginate(PageNumberPagination, page_size=20)
def list_orders_admin(request, status: str | None = None, q: str | None = None):
    user = require_user(request.auth)
    if not user.can_manage_orders:
        raise ForbiddenError("Only sellers and admins can list all orders")

    qs = Order.objects.annotate(line_count=Count("lines"))
    if not user.is_shop_admin:
        qs = qs.filter(seller=user)

    status = (status or "").strip().lower()
    if status and status != "all":
        qs = qs.filter(status=status)

    q = (q or "").strip()
    if q:
        qs = qs.filter(
            Q(order_number__icontains=q)
            | Q(shipping_first_name__icontains=q)
            | Q(shipping_last_name__icontains=q)
            | Q(shipping_city__icontains=q)
        )

    return [_order_list_out(o) for o in qs.order_by("-created_at", "-id")]


@orders_router.get("/{order_id}", response=OrderOut, auth=_auth)
def order_detail(request, order_id: int):
    return _order_out(get_order(order_id=order_id, actor=request.auth))


@orders_router.get("/{order_id}/confirmation", response=OrderConfirmationOut, auth=_auth)
def order_confirmation(request, order_id: int):
    order = get_order(order_id=order_id, actor=request.auth)
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "payment_method": order.payment_method,
        "currency": order.currency,
        "subtotal": order.subtotal,
        "delivery_fee": order.delivery_fee,
        "referral_discount": order.referral_discount,
        "coins_used": int(order.coins_used),
        "final_amount": order.final_amount,
        "item_count": sum(ln.qty for ln in order.lines.all()),
        "shipping_address": _shipping_out(order),
        "message": f"Thank you! Your order {order.order_number} has been placed and will be paid on delivery.",
    }


@orders_router.post("/{order_id}/cancel", response=OrderOut, auth=_auth)
def cancel(request, order_id: int, payload: CancelIn):
    order = cancel_order(order_id=order_id, reason=payload.reason, actor=request.auth)
    return _order_out(order)


@orders_router.put("/{order_id}/status", response=OrderOut, auth=_auth)
def update_status(request, order_id: int, payload: StatusUpdateIn):
    order = advance_status(
        order_id=order_id,
        new_status=payload.status,
        actor=request.auth,
        reason=payload.reason,
    )
    return _order_out(order)
