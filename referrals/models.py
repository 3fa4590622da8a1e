from __future__ import annotations

from django.conf import settings
from django.db import models


class ReferralReward(models.Model):
    referrer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="referral_rewards",
    )
    referred_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
    )
    # One reward per delivered order.
    order = models.OneToOneField(
        "checkout.Order",
        on_delete=models.CASCADE,
        related_name="referral_reward",
    )
    coins_earned = models.PositiveIntegerField()
    order_amount = models.DecimalField(max_digits=12, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.referrer_id} +{self.coins_earned} (order {self.order_id})"
