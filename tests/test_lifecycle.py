"""Tests for the order status state machine and cancellation."""

from decimal import Decimal

import pytest

from accounts.models import User
from api.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from catalog.models import Product
from checkout.lifecycle import (
    CANCEL_REASONS,
    advance_status,
    can_transition,
    cancel_order,
    get_order,
)
from checkout.models import Order, OrderStatusChange
from checkout.services import place_direct_order
from notifications.models import Notification
from referrals.models import ReferralReward
from referrals.services import award_referral_reward


def _order(user, product, shipping, *, qty=1, use_referral_coins=False):
    return place_direct_order(
        user=user,
        product_id=product.id,
        quantity=qty,
        shipping_address=shipping,
        use_referral_coins=use_referral_coins,
    )


def _walk(order, actor, *statuses):
    for status in statuses:
        order = advance_status(order_id=order.id, new_status=status, actor=actor)
    return order


class TestTransitions:
    @pytest.mark.parametrize(
        "current,new,allowed",
        [
            ("pending", "processing", True),
            ("processing", "shipped", True),
            ("shipped", "delivered", True),
            ("shipped", "cancelled", True),
            ("pending", "shipped", False),
            ("pending", "delivered", False),
            ("delivered", "processing", False),
            ("delivered", "cancelled", False),
            ("cancelled", "pending", False),
            ("processing", "pending", False),
        ],
    )
    def test_table(self, current, new, allowed):
        assert can_transition(current, new) is allowed

    def test_seller_walks_order_to_delivered(self, buyer, seller, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)

        order = _walk(order, seller, "processing", "shipped", "delivered")

        order.refresh_from_db()
        assert order.status == Order.Status.DELIVERED
        assert order.payment_status == Order.PaymentStatus.PAID
        assert order.delivered_at is not None

        history = list(
            OrderStatusChange.objects.filter(order=order).order_by("id").values_list("from_status", "to_status")
        )
        assert history == [
            ("", "pending"),
            ("pending", "processing"),
            ("processing", "shipped"),
            ("shipped", "delivered"),
        ]

    def test_admin_may_advance_any_order(self, buyer, shop_admin, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        assert advance_status(order_id=order.id, new_status="processing", actor=shop_admin).status == "processing"

    def test_skipping_a_step_is_rejected(self, buyer, seller, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(InvalidTransitionError):
            advance_status(order_id=order.id, new_status="shipped", actor=seller)
        assert Order.objects.get(id=order.id).status == Order.Status.PENDING

    def test_delivered_is_terminal(self, buyer, seller, plain_product, shipping):
        order = _walk(_order(buyer, plain_product, shipping), seller, "processing", "shipped", "delivered")
        with pytest.raises(InvalidTransitionError):
            advance_status(order_id=order.id, new_status="processing", actor=seller)

    def test_unknown_status(self, buyer, seller, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(ValidationError):
            advance_status(order_id=order.id, new_status="lost", actor=seller)

    def test_buyer_cannot_advance(self, buyer, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(ForbiddenError):
            advance_status(order_id=order.id, new_status="processing", actor=buyer)

    def test_other_seller_cannot_advance(self, buyer, other_seller, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(ForbiddenError):
            advance_status(order_id=order.id, new_status="processing", actor=other_seller)

    def test_missing_order(self, seller, db):
        with pytest.raises(NotFoundError):
            advance_status(order_id=999_999, new_status="processing", actor=seller)

    def test_buyer_notified_after_commit(
        self, buyer, seller, plain_product, shipping, django_capture_on_commit_callbacks
    ):
        order = _order(buyer, plain_product, shipping)

        with django_capture_on_commit_callbacks(execute=True):
            advance_status(order_id=order.id, new_status="processing", actor=seller)

        note = Notification.objects.get(recipient=buyer)
        assert note.kind == Notification.Kind.ORDER_STATUS
        assert note.data["previous_status"] == "pending"


class TestCancellation:
    def test_reason_required(self, buyer, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(ValidationError):
            cancel_order(order_id=order.id, reason="   ", actor=buyer)
        assert Order.objects.get(id=order.id).status == Order.Status.PENDING

    def test_buyer_cancels_pending_order(self, buyer, make_product, shipping, give_coins):
        product = make_product(price="1250.00", stock=5)
        give_coins(buyer, 40)
        order = _order(buyer, product, shipping, qty=2, use_referral_coins=True)
        assert order.coins_used == 40
        assert Product.objects.get(id=product.id).stock == 3

        cancelled = cancel_order(order_id=order.id, reason=CANCEL_REASONS[2], actor=buyer)

        assert cancelled.status == Order.Status.CANCELLED
        assert cancelled.cancel_reason == CANCEL_REASONS[2]
        assert cancelled.cancelled_at is not None
        assert Product.objects.get(id=product.id).stock == 5
        assert User.objects.get(id=buyer.id).referral_coins == 40
        assert OrderStatusChange.objects.filter(
            order=order, from_status="pending", to_status="cancelled", reason=CANCEL_REASONS[2]
        ).exists()

    def test_buyer_cannot_cancel_after_processing(self, buyer, seller, plain_product, shipping):
        order = _walk(_order(buyer, plain_product, shipping), seller, "processing")
        with pytest.raises(ForbiddenError):
            cancel_order(order_id=order.id, reason="Changed my mind", actor=buyer)

    def test_seller_cancels_shipped_order(self, buyer, seller, plain_product, shipping):
        order = _walk(_order(buyer, plain_product, shipping, qty=3), seller, "processing", "shipped")

        cancel_order(order_id=order.id, reason="Delivery issues", actor=seller)

        assert Order.objects.get(id=order.id).status == Order.Status.CANCELLED
        assert Product.objects.get(id=plain_product.id).stock == 10

    def test_cancel_through_status_update(self, buyer, seller, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(ValidationError):
            advance_status(order_id=order.id, new_status="cancelled", actor=seller)

        advance_status(order_id=order.id, new_status="cancelled", actor=seller, reason="Out of stock")
        assert Order.objects.get(id=order.id).cancel_reason == "Out of stock"

    def test_delivered_cannot_be_cancelled(self, buyer, seller, plain_product, shipping):
        order = _walk(_order(buyer, plain_product, shipping), seller, "processing", "shipped", "delivered")
        with pytest.raises(InvalidTransitionError):
            cancel_order(order_id=order.id, reason="Other", actor=seller)

    def test_double_cancel_restores_once(self, buyer, plain_product, shipping):
        order = _order(buyer, plain_product, shipping, qty=2)
        cancel_order(order_id=order.id, reason="Other", actor=buyer)
        with pytest.raises(InvalidTransitionError):
            cancel_order(order_id=order.id, reason="Other", actor=buyer)
        assert Product.objects.get(id=plain_product.id).stock == 10

    def test_stranger_cannot_cancel(self, buyer, other_buyer, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)
        with pytest.raises(ForbiddenError):
            cancel_order(order_id=order.id, reason="Other", actor=other_buyer)

    def test_buyer_and_seller_notified(
        self, buyer, seller, plain_product, shipping, django_capture_on_commit_callbacks
    ):
        order = _order(buyer, plain_product, shipping)
        with django_capture_on_commit_callbacks(execute=True):
            cancel_order(order_id=order.id, reason="Other", actor=buyer)

        recipients = set(
            Notification.objects.filter(kind=Notification.Kind.ORDER_CANCELLED).values_list("recipient_id", flat=True)
        )
        assert recipients == {buyer.id, seller.id}


class TestReferralRewardOnDelivery:
    def test_referrer_credited_once(self, buyer, seller, make_product, shipping):
        referrer = User.objects.create_user(email="friend@example.com", password="pw")
        User.objects.filter(id=buyer.id).update(referred_by=referrer)
        buyer.refresh_from_db()
        product = make_product(price="2575.00")

        order = _walk(_order(buyer, product, shipping), seller, "processing", "shipped", "delivered")

        reward = ReferralReward.objects.get(order=order)
        assert reward.coins_earned == 51
        assert reward.order_amount == Decimal("2575.00")
        assert User.objects.get(id=referrer.id).referral_coins == 51

        assert award_referral_reward(order_id=order.id) is None
        assert User.objects.get(id=referrer.id).referral_coins == 51

    def test_no_referrer_no_reward(self, buyer, seller, plain_product, shipping):
        order = _walk(_order(buyer, plain_product, shipping), seller, "processing", "shipped", "delivered")
        assert not ReferralReward.objects.filter(order=order).exists()

    def test_not_delivered_no_reward(self, buyer, plain_product, shipping):
        referrer = User.objects.create_user(email="friend@example.com", password="pw")
        User.objects.filter(id=buyer.id).update(referred_by=referrer)
        order = _order(buyer, plain_product, shipping)
        assert award_referral_reward(order_id=order.id) is None


class TestGetOrder:
    def test_visibility(self, buyer, other_buyer, seller, other_seller, shop_admin, plain_product, shipping):
        order = _order(buyer, plain_product, shipping)

        assert get_order(order_id=order.id, actor=buyer).id == order.id
        assert get_order(order_id=order.id, actor=seller).id == order.id
        assert get_order(order_id=order.id, actor=shop_admin).id == order.id
        with pytest.raises(ForbiddenError):
            get_order(order_id=order.id, actor=other_buyer)
        with pytest.raises(ForbiddenError):
            get_order(order_id=order.id, actor=other_seller)

    def test_missing(self, buyer):
        with pytest.raises(NotFoundError):
            get_order(order_id=424242, actor=buyer)
