from __future__ import annotations

from django.contrib import admin

from .models import ReferralReward


@admin.register(ReferralReward)
class ReferralRewardAdmin(admin.ModelAdmin):
    list_display = ("referrer", "referred_user", "order", "coins_earned", "order_amount", "created_at")
    search_fields = ("referrer__email", "referred_user__email", "order__order_number")
    raw_id_fields = ("referrer", "referred_user", "order")
    readonly_fields = ("created_at",)
