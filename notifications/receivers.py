"""Order event consumers.

Receivers run after the order transaction has committed; a failure here is
logged and never affects the order itself.
"""
from __future__ import annotations

import logging

from django.dispatch import receiver

from checkout.models import Order
from checkout.signals import order_created, order_status_changed
from referrals.signals import referral_reward_awarded

from .models import Notification
from .services import create_notification, send_templated_email

logger = logging.getLogger(__name__)


def _order_data(order: Order) -> dict:
    return {"order_id": order.id, "order_number": order.order_number, "status": order.status}


@receiver(order_created)
def on_order_created(sender, order: Order, **kwargs):
    try:
        if order.seller_id:
            create_notification(
                recipient_id=order.seller_id,
                kind=Notification.Kind.NEW_ORDER,
                title="New order received",
                message=(
                    f"Order {order.order_number} from {order.shipping_full_name} "
                    f"for {order.currency} {order.final_amount}"
                ),
                data=_order_data(order),
            )

        send_templated_email(
            template_key="order_confirmation",
            to_email=order.shipping_email,
            context={
                "order_number": order.order_number,
                "customer_name": order.shipping_full_name,
                "currency": order.currency,
                "subtotal": order.subtotal,
                "delivery_fee": order.delivery_fee,
                "referral_discount": order.referral_discount,
                "final_amount": order.final_amount,
                "lines": list(order.lines.all()),
            },
        )
    except Exception:
        logger.exception("Order created notification failed", extra={"order_id": order.id})


@receiver(order_status_changed)
def on_order_status_changed(sender, order: Order, previous_status: str, actor=None, **kwargs):
    try:
        data = {**_order_data(order), "previous_status": previous_status}

        if order.status == Order.Status.CANCELLED:
            title = "Order cancelled"
            message = f"Order {order.order_number} was cancelled: {order.cancel_reason}"
            recipients = {order.user_id, order.seller_id} - {None}
            for recipient_id in recipients:
                create_notification(
                    recipient_id=recipient_id,
                    kind=Notification.Kind.ORDER_CANCELLED,
                    title=title,
                    message=message,
                    data=data,
                )
            return

        create_notification(
            recipient_id=order.user_id,
            kind=Notification.Kind.ORDER_STATUS,
            title="Order status updated",
            message=f"Your order {order.order_number} is now {order.get_status_display().lower()}",
            data=data,
        )
    except Exception:
        logger.exception("Order status notification failed", extra={"order_id": order.id})


@receiver(referral_reward_awarded)
def on_referral_reward(sender, reward, **kwargs):
    try:
        create_notification(
            recipient_id=reward.referrer_id,
            kind=Notification.Kind.REFERRAL_REWARD,
            title="Referral reward earned",
            message=f"You earned {reward.coins_earned} coins from a referred order",
            data={"order_id": reward.order_id, "coins_earned": reward.coins_earned},
        )
    except Exception:
        logger.exception("Referral reward notification failed", extra={"order_id": reward.order_id})
