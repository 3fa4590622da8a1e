from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class ReferralCodeOut(Schema):
    referral_code: str
    referral_link: str


class ReferralRewardOut(Schema):
    order_number: str
    referred_email: str
    coins_earned: int
    order_amount: Decimal
    created_at: datetime


class ReferralStatsOut(Schema):
    referral_code: str
    referral_link: str
    referral_coins: int
    coins_value: Decimal
    total_referrals: int
    total_coins_earned: int
    recent_rewards: list[ReferralRewardOut]


class DiscountQuoteIn(Schema):
    subtotal: Decimal


class DiscountQuoteOut(Schema):
    currency: str
    available_coins: int
    max_discount: Decimal
    discount: Decimal
    coins_used: int
    final_total: Decimal
