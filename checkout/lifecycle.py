"""Order status state machine.

pending -> processing -> shipped -> delivered, one step at a time.
cancelled is reachable from every non-terminal state and needs a reason.
"""
from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from api.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from catalog.services import restore_stock
from referrals.services import award_referral_reward, credit_coins

from .cart import require_user
from .models import Order, OrderStatusChange
from .signals import order_status_changed

logger = logging.getLogger(__name__)

S = Order.Status

TRANSITIONS: dict[str, frozenset[str]] = {
    S.PENDING: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED, S.CANCELLED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

CANCEL_REASONS = (
    "Location not serviceable",
    "Out of stock",
    "Customer requested cancellation",
    "Delivery issues",
    "Payment issues",
    "Other",
)


def can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, frozenset())


def can_manage_order(actor, order: Order) -> bool:
    if getattr(actor, "is_shop_admin", False):
        return True
    if getattr(actor, "can_manage_orders", False):
        return order.seller_id is not None and order.seller_id == actor.id
    return False


def get_order(*, order_id: int, actor) -> Order:
    require_user(actor)
    order = (
        Order.objects.select_related("user", "seller")
        .prefetch_related("lines", "status_changes")
        .filter(id=int(order_id))
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")
    if order.user_id != actor.id and not can_manage_order(actor, order):
        raise ForbiddenError("You do not have access to this order")
    return order


def _lock_order(order_id: int) -> Order:
    order = Order.objects.select_for_update().filter(id=int(order_id)).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def _record_change(*, order: Order, previous: str, actor, reason: str = "") -> None:
    OrderStatusChange.objects.create(
        order=order,
        from_status=previous,
        to_status=order.status,
        actor=actor,
        reason=reason,
    )
    transaction.on_commit(
        lambda: order_status_changed.send(
            sender=Order, order=order, previous_status=previous, actor=actor
        )
    )


def advance_status(*, order_id: int, new_status: str, actor, reason: str = "") -> Order:
    require_user(actor)

    new_status = (new_status or "").strip().lower()
    if new_status not in S.values:
        raise ValidationError("Invalid status")
    if new_status == S.CANCELLED:
        return cancel_order(order_id=order_id, reason=reason, actor=actor)

    if not getattr(actor, "can_manage_orders", False):
        raise ForbiddenError("Only sellers and admins can update order status")

    with transaction.atomic():
        order = _lock_order(order_id)
        if not can_manage_order(actor, order):
            raise ForbiddenError("You do not have access to this order")
        if not can_transition(order.status, new_status):
            raise InvalidTransitionError(f"Cannot change status from {order.status} to {new_status}")

        previous = order.status
        order.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status == S.DELIVERED:
            # Cash on delivery is collected at hand-over.
            order.delivered_at = timezone.now()
            order.payment_status = Order.PaymentStatus.PAID
            update_fields += ["delivered_at", "payment_status"]
        order.save(update_fields=update_fields)

        _record_change(order=order, previous=previous, actor=actor, reason=(reason or "").strip())

        if new_status == S.DELIVERED:
            award_referral_reward(order_id=order.id)

    logger.info(
        "Order status changed",
        extra={"order_id": order.id, "from_status": previous, "to_status": new_status, "actor_id": actor.id},
    )
    return order


def cancel_order(*, order_id: int, reason: str, actor) -> Order:
    """Cancel an order, put its stock back and refund the coins it used.

    Buyers may cancel their own pending orders; the order's seller and
    admins may cancel from any non-terminal state.
    """
    require_user(actor)

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Cancellation reason is required")

    with transaction.atomic():
        order = _lock_order(order_id)

        manager = can_manage_order(actor, order)
        if not manager and order.user_id != actor.id:
            raise ForbiddenError("You do not have access to this order")
        if not can_transition(order.status, S.CANCELLED):
            raise InvalidTransitionError(f"Cannot cancel an order that is {order.status}")
        if not manager and order.status != S.PENDING:
            raise ForbiddenError("Only pending orders can be cancelled")

        for line in order.lines.all():
            if line.product_id:
                restore_stock(product_id=line.product_id, qty=line.qty)

        if order.coins_used:
            credit_coins(user_id=order.user_id, coins=order.coins_used)

        previous = order.status
        order.status = S.CANCELLED
        order.cancel_reason = reason
        order.cancelled_at = timezone.now()
        order.save(update_fields=["status", "cancel_reason", "cancelled_at", "updated_at"])

        _record_change(order=order, previous=previous, actor=actor, reason=reason)

    logger.info(
        "Order cancelled",
        extra={"order_id": order.id, "from_status": previous, "actor_id": actor.id},
    )
    return order
