from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable

from django.conf import settings

from api.errors import ValidationError
from catalog.services import coerce_price


MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _money_setting(name: str, default: str) -> Decimal:
    return quantize_money(Decimal(str(getattr(settings, name, default))))


@dataclass(frozen=True)
class DraftLine:
    product_id: int
    sku: str
    name: str
    color: str
    qty: int
    unit_price: Decimal
    delivery_price: Decimal | None = None
    seller_id: int | None = None

    @property
    def line_total(self) -> Decimal:
        return quantize_money(Decimal(self.unit_price) * int(self.qty))


@dataclass(frozen=True)
class LinePricing:
    subtotal: Decimal
    delivery_fee: Decimal


@dataclass(frozen=True)
class ReferralDiscount:
    discount: Decimal
    coins_used: int
    final_total: Decimal


@dataclass(frozen=True)
class PricedOrderDraft:
    """Server-computed pricing snapshot; never persisted as-is."""

    source: str
    lines: tuple[DraftLine, ...]
    subtotal: Decimal
    delivery_fee: Decimal
    referral_discount: Decimal
    coins_used: int
    total: Decimal
    use_referral_coins: bool = False
    currency: str = field(default_factory=lambda: getattr(settings, "STORE_CURRENCY", "PKR"))

    @property
    def item_count(self) -> int:
        return sum(int(line.qty) for line in self.lines)


def delivery_fee_for(*, subtotal: Decimal, lines: Iterable[DraftLine] = ()) -> Decimal:
    """Free above FREE_DELIVERY_THRESHOLD, otherwise a flat fee.

    The flat fee is the highest per-product delivery price among ``lines``,
    falling back to DELIVERY_FEE when no product defines one.
    """
    threshold = _money_setting("FREE_DELIVERY_THRESHOLD", "30000.00")
    if Decimal(subtotal) > threshold:
        return ZERO

    per_product = [
        coerce_price(line.delivery_price, label="delivery price")
        for line in lines
        if line.delivery_price is not None
    ]
    if per_product:
        return quantize_money(max(per_product))
    return _money_setting("DELIVERY_FEE", "500.00")


def price_lines(lines: Iterable[DraftLine]) -> LinePricing:
    lines = list(lines)
    if not lines:
        raise ValidationError("No items selected for checkout")

    subtotal = ZERO
    for line in lines:
        if int(line.qty) < 1:
            raise ValidationError("Quantity must be at least 1")
        unit_price = coerce_price(line.unit_price)
        subtotal += unit_price * int(line.qty)

    subtotal = quantize_money(subtotal)
    return LinePricing(subtotal=subtotal, delivery_fee=delivery_fee_for(subtotal=subtotal, lines=lines))


def referral_discount_cap(total: Decimal) -> Decimal:
    pct = Decimal(int(getattr(settings, "REFERRAL_MAX_DISCOUNT_PERCENT", 10)))
    cap = (Decimal(total) * pct / Decimal(100)).to_integral_value(rounding=ROUND_FLOOR)
    return quantize_money(max(cap, ZERO))


def apply_referral_discount(
    total: Decimal,
    user,
    opt_in: bool,
    *,
    coins: int | None = None,
) -> ReferralDiscount:
    """Discount ``total`` (the items subtotal) with the buyer's referral coins.

    ``coins`` defaults to the live ledger balance. The discount never exceeds
    ``referral_discount_cap(total)`` nor the currency value of the coins.
    """
    from referrals.services import available_coins, coin_value

    total = quantize_money(Decimal(total))
    no_discount = ReferralDiscount(discount=ZERO, coins_used=0, final_total=total)
    if not opt_in:
        return no_discount

    if coins is None:
        coins = available_coins(user)
    coins = int(coins or 0)
    if coins <= 0:
        return no_discount

    value = coin_value()
    if value <= 0:
        return no_discount

    # Floored to cents: discount <= coins * value.
    worth = Decimal(coins) * value
    discount = min(worth, referral_discount_cap(total)).quantize(MONEY_PLACES, rounding=ROUND_FLOOR)
    if discount <= 0:
        return no_discount

    coins_used = min(coins, int((discount / value).to_integral_value(rounding=ROUND_CEILING)))
    return ReferralDiscount(
        discount=discount,
        coins_used=coins_used,
        final_total=quantize_money(total - discount),
    )


def build_draft(
    lines: Iterable[DraftLine],
    user,
    *,
    use_referral_coins: bool = False,
    source: str = "cart",
) -> PricedOrderDraft:
    lines = tuple(lines)
    pricing = price_lines(lines)
    referral = apply_referral_discount(pricing.subtotal, user, use_referral_coins)

    total = quantize_money(pricing.subtotal + pricing.delivery_fee - referral.discount)
    return PricedOrderDraft(
        source=source,
        lines=lines,
        subtotal=pricing.subtotal,
        delivery_fee=pricing.delivery_fee,
        referral_discount=referral.discount,
        coins_used=referral.coins_used,
        total=total,
        use_referral_coins=bool(use_referral_coins),
    )
