from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from ninja import Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth
from pricing.services import apply_referral_discount, referral_discount_cap

from .schemas import DiscountQuoteIn, DiscountQuoteOut, ReferralCodeOut, ReferralStatsOut
from .services import available_coins, get_or_create_referral_code, referral_link, referral_stats

router = Router(tags=["referrals"])
auth = JWTAuth()


@router.get("/code", response=ReferralCodeOut, auth=auth)
def my_referral_code(request):
    code = get_or_create_referral_code(request.auth)
    return {"referral_code": code, "referral_link": referral_link(code)}


@router.get("/stats", response=ReferralStatsOut, auth=auth)
def my_referral_stats(request):
    return referral_stats(request.auth)


@router.post("/discount-quote", response=DiscountQuoteOut, auth=auth)
def discount_quote(request, payload: DiscountQuoteIn):
    subtotal = Decimal(payload.subtotal)
    if subtotal < 0:
        raise HttpError(400, "Invalid subtotal")

    # Preview only: create_order recomputes the discount from the ledger.
    result = apply_referral_discount(subtotal, request.auth, True)
    return {
        "currency": settings.STORE_CURRENCY,
        "available_coins": available_coins(request.auth),
        "max_discount": referral_discount_cap(subtotal),
        "discount": result.discount,
        "coins_used": result.coins_used,
        "final_total": result.final_total,
    }
