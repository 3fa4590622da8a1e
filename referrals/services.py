"""Referral coin ledger.

Coins live on ``User.referral_coins``. Every mutation is a single conditional
UPDATE so concurrent checkouts cannot spend the same coins twice.
"""
from __future__ import annotations

import logging
import secrets
from decimal import ROUND_FLOOR, Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import F, Sum

from api.errors import InsufficientCoinsError
from pricing.services import quantize_money

from .models import ReferralReward
from .signals import referral_reward_awarded

logger = logging.getLogger(__name__)


def coin_value() -> Decimal:
    return Decimal(str(getattr(settings, "REFERRAL_COIN_VALUE", "1.00")))


def available_coins(user) -> int:
    if user is None or not getattr(user, "id", None):
        return 0
    User = get_user_model()
    coins = User.objects.filter(id=int(user.id)).values_list("referral_coins", flat=True).first()
    return int(coins or 0)


def coins_to_currency(coins: int) -> Decimal:
    return quantize_money(Decimal(int(coins or 0)) * coin_value())


def debit_coins(*, user_id: int, coins: int) -> None:
    coins = int(coins)
    if coins <= 0:
        return
    User = get_user_model()
    updated = User.objects.filter(id=int(user_id), referral_coins__gte=coins).update(
        referral_coins=F("referral_coins") - coins
    )
    if updated != 1:
        raise InsufficientCoinsError("Not enough referral coins")


def credit_coins(*, user_id: int, coins: int) -> None:
    coins = int(coins)
    if coins <= 0:
        return
    User = get_user_model()
    User.objects.filter(id=int(user_id)).update(referral_coins=F("referral_coins") + coins)


def reward_coins_for(amount: Decimal) -> int:
    rate = Decimal(str(getattr(settings, "REFERRAL_REWARD_RATE", "0.02")))
    coins = (Decimal(amount) * rate).to_integral_value(rounding=ROUND_FLOOR)
    return max(0, int(coins))


def award_referral_reward(*, order_id: int) -> ReferralReward | None:
    """Credit the buyer's referrer for a delivered order.

    Returns the created reward, or None when nothing is due (no referrer,
    order not delivered, reward already granted, or zero coins).
    """
    from checkout.models import Order

    with transaction.atomic():
        order = (
            Order.objects.select_for_update()
            .select_related("user")
            .filter(id=int(order_id))
            .first()
        )
        if not order or order.status != Order.Status.DELIVERED:
            return None

        referrer_id = order.user.referred_by_id if order.user_id else None
        if not referrer_id:
            return None

        if ReferralReward.objects.filter(order=order).exists():
            return None

        coins = reward_coins_for(order.subtotal)
        if coins <= 0:
            return None

        reward = ReferralReward.objects.create(
            referrer_id=referrer_id,
            referred_user_id=order.user_id,
            order=order,
            coins_earned=coins,
            order_amount=order.subtotal,
        )
        credit_coins(user_id=referrer_id, coins=coins)

        transaction.on_commit(
            lambda: referral_reward_awarded.send(sender=ReferralReward, reward=reward)
        )

    logger.info(
        "Referral reward granted",
        extra={"order_id": order.id, "referrer_id": referrer_id, "coins": coins},
    )
    return reward


def _new_code() -> str:
    return secrets.token_hex(4).upper()


def get_or_create_referral_code(user) -> str:
    if user.referral_code:
        return user.referral_code

    User = get_user_model()
    for _ in range(10):
        code = _new_code()
        if User.objects.filter(referral_code=code).exists():
            continue
        try:
            with transaction.atomic():
                updated = User.objects.filter(id=user.id, referral_code__isnull=True).update(
                    referral_code=code
                )
        except IntegrityError:
            continue
        if updated != 1:
            # Someone else assigned a code in the meantime.
            user.refresh_from_db(fields=["referral_code"])
            return user.referral_code
        user.referral_code = code
        return code

    raise RuntimeError("Could not allocate a unique referral code")


def referral_link(code: str) -> str:
    base = getattr(settings, "REFERRAL_LINK_BASE_URL", "") or ""
    return f"{base}{code}"


def apply_referral_code(*, code: str, new_user) -> bool:
    code = (code or "").strip().upper()
    if not code:
        return False

    User = get_user_model()
    referrer = User.objects.filter(referral_code=code, is_active=True).exclude(id=new_user.id).first()
    if referrer is None:
        return False

    with transaction.atomic():
        updated = User.objects.filter(id=new_user.id, referred_by__isnull=True).update(
            referred_by=referrer
        )
        if updated != 1:
            return False
        User.objects.filter(id=referrer.id).update(total_referrals=F("total_referrals") + 1)

    new_user.referred_by = referrer
    return True


def referral_stats(user) -> dict:
    code = get_or_create_referral_code(user)
    rewards = ReferralReward.objects.filter(referrer=user).select_related("referred_user", "order")
    total_earned = rewards.aggregate(total=Sum("coins_earned"))["total"] or 0

    user.refresh_from_db(fields=["referral_coins", "total_referrals"])
    return {
        "referral_code": code,
        "referral_link": referral_link(code),
        "referral_coins": int(user.referral_coins),
        "coins_value": coins_to_currency(user.referral_coins),
        "total_referrals": int(user.total_referrals),
        "total_coins_earned": int(total_earned),
        "recent_rewards": [
            {
                "order_number": r.order.order_number,
                "referred_email": r.referred_user.email,
                "coins_earned": int(r.coins_earned),
                "order_amount": r.order_amount,
                "created_at": r.created_at,
            }
            for r in rewards[:10]
        ],
    }
