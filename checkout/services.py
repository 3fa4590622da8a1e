"""Order builder: both checkout entry points end in ``create_order``."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date
from time import monotonic
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from accounts.models import SavedAddress
from api.errors import CartChangedError, CheckoutTimeoutError, ValidationError
from catalog.services import decrement_stock
from pricing.services import PricedOrderDraft
from referrals.services import coin_value, debit_coins

from .cart import require_user
from .models import CartItem, Order, OrderLine, OrderNumberSequence, OrderStatusChange
from .selection import SelectionKey, keys_for_item_ids
from .signals import order_created
from .validation import validate_cart_purchase, validate_direct_purchase

logger = logging.getLogger(__name__)


SHIPPING_FIELDS = ("first_name", "last_name", "email", "phone", "address", "city", "zip_code")


@dataclass(frozen=True)
class ShippingAddress:
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    zip_code: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ShippingAddress":
        data = data or {}
        values = {name: str(data.get(name) or "").strip() for name in SHIPPING_FIELDS}

        missing = [name for name in SHIPPING_FIELDS if not values[name]]
        if missing:
            raise ValidationError(f"Missing shipping fields: {', '.join(missing)}")

        try:
            validate_email(values["email"])
        except DjangoValidationError:
            raise ValidationError("Invalid shipping email")

        values["email"] = values["email"].lower()
        return cls(**values)

    def as_dict(self) -> dict[str, str]:
        return asdict(self)


def clean_payment_method(method: str | None) -> str:
    method = (method or "").strip().lower() or Order.PaymentMethod.COD
    allowed = getattr(settings, "CHECKOUT_PAYMENT_METHODS", ["cod"])
    if method not in allowed or method not in Order.PaymentMethod.values:
        raise ValidationError("Unsupported payment_method")
    return method


def next_order_number(*, day: date | None = None) -> str:
    """Allocate ``ORD-YYYYMMDD-NNNN`` from a per-day counter row."""
    day = day or timezone.localdate()
    with transaction.atomic():
        seq, _ = OrderNumberSequence.objects.select_for_update().get_or_create(day=day)
        OrderNumberSequence.objects.filter(id=seq.id).update(last_value=F("last_value") + 1)
        seq.refresh_from_db(fields=["last_value"])
    return f"ORD-{day:%Y%m%d}-{seq.last_value:04d}"


def save_shipping_address(*, user, address: ShippingAddress) -> SavedAddress:
    saved, _ = SavedAddress.objects.update_or_create(user=user, defaults=address.as_dict())
    return saved


def get_saved_address(user) -> SavedAddress | None:
    require_user(user)
    return SavedAddress.objects.filter(user=user).first()


def find_existing_order(*, user, idempotency_key: str) -> Order | None:
    idempotency_key = (idempotency_key or "").strip()
    if not idempotency_key:
        return None
    return Order.objects.filter(user=user, idempotency_key=idempotency_key).first()


def _ensure_within_commit_window(started: float) -> None:
    timeout = float(getattr(settings, "CHECKOUT_COMMIT_TIMEOUT_SECONDS", 0) or 0)
    if timeout > 0 and monotonic() - started > timeout:
        raise CheckoutTimeoutError()


def _revalidate(user, draft: PricedOrderDraft, *, use_referral_coins: bool) -> PricedOrderDraft:
    # Only the identity of the lines is taken from the draft; prices, stock
    # and coins are read again.
    if draft.source == Order.Source.DIRECT:
        if len(draft.lines) != 1:
            raise ValidationError("Direct purchase must contain exactly one item")
        line = draft.lines[0]
        return validate_direct_purchase(
            user,
            line.product_id,
            line.qty,
            line.color or None,
            use_referral_coins=use_referral_coins,
        )

    keys = {SelectionKey.of(line.product_id, line.color) for line in draft.lines}
    if not keys:
        raise ValidationError("No items selected for checkout")
    return validate_cart_purchase(
        user, keys, use_referral_coins=use_referral_coins, for_update=True
    )


def _consume_cart_lines(*, user, draft: PricedOrderDraft) -> int:
    match = Q()
    for line in draft.lines:
        match |= Q(product_id=line.product_id, color_name=line.color)
    deleted, _ = CartItem.objects.filter(cart__user=user).filter(match).delete()
    if deleted != len(draft.lines):
        # Lines already consumed by another checkout of the same cart.
        raise CartChangedError()
    return deleted


def create_order(
    *,
    user,
    draft: PricedOrderDraft,
    shipping_address: ShippingAddress | Mapping[str, Any],
    payment_method: str = Order.PaymentMethod.COD,
    use_referral_coins: bool = False,
    idempotency_key: str = "",
) -> Order:
    require_user(user)

    if not isinstance(shipping_address, ShippingAddress):
        shipping_address = ShippingAddress.from_mapping(shipping_address)
    payment_method = clean_payment_method(payment_method)
    idempotency_key = (idempotency_key or "").strip()

    existing = find_existing_order(user=user, idempotency_key=idempotency_key)
    if existing:
        return existing

    started = monotonic()
    try:
        with transaction.atomic():
            fresh = _revalidate(user, draft, use_referral_coins=use_referral_coins)

            if fresh.coins_used:
                debit_coins(user_id=user.id, coins=fresh.coins_used)

            seller_id = next((ln.seller_id for ln in fresh.lines if ln.seller_id), None)
            order = Order.objects.create(
                order_number=next_order_number(),
                user=user,
                seller_id=seller_id,
                source=fresh.source,
                status=Order.Status.PENDING,
                payment_method=payment_method,
                idempotency_key=idempotency_key,
                currency=fresh.currency,
                subtotal=fresh.subtotal,
                delivery_fee=fresh.delivery_fee,
                referral_discount=fresh.referral_discount,
                coins_used=fresh.coins_used,
                coin_value=coin_value(),
                final_amount=fresh.total,
                shipping_first_name=shipping_address.first_name,
                shipping_last_name=shipping_address.last_name,
                shipping_email=shipping_address.email,
                shipping_phone=shipping_address.phone,
                shipping_address=shipping_address.address,
                shipping_city=shipping_address.city,
                shipping_zip_code=shipping_address.zip_code,
            )

            OrderLine.objects.bulk_create(
                [
                    OrderLine(
                        order=order,
                        product_id=ln.product_id,
                        sku=ln.sku,
                        name=ln.name,
                        color_name=ln.color,
                        qty=ln.qty,
                        unit_price=ln.unit_price,
                        line_total=ln.line_total,
                    )
                    for ln in fresh.lines
                ]
            )
            OrderStatusChange.objects.create(
                order=order,
                from_status="",
                to_status=Order.Status.PENDING,
                actor=user,
            )

            for ln in fresh.lines:
                decrement_stock(product_id=ln.product_id, qty=ln.qty)

            save_shipping_address(user=user, address=shipping_address)

            if fresh.source == Order.Source.CART:
                _consume_cart_lines(user=user, draft=fresh)

            _ensure_within_commit_window(started)

            transaction.on_commit(lambda: order_created.send(sender=Order, order=order))
    except IntegrityError:
        # A concurrent request with the same Idempotency-Key won the race.
        existing = find_existing_order(user=user, idempotency_key=idempotency_key)
        if existing:
            return existing
        raise

    logger.info(
        "Order created",
        extra={
            "order_id": order.id,
            "order_number": order.order_number,
            "source": order.source,
            "final_amount": str(order.final_amount),
        },
    )
    return order


def place_cart_order(
    *,
    user,
    shipping_address: ShippingAddress | Mapping[str, Any],
    payment_method: str = Order.PaymentMethod.COD,
    use_referral_coins: bool = False,
    selected_item_ids=None,
    idempotency_key: str = "",
) -> Order:
    require_user(user)
    existing = find_existing_order(user=user, idempotency_key=idempotency_key)
    if existing:
        return existing

    keys = None
    if selected_item_ids:
        keys = keys_for_item_ids(user=user, item_ids=selected_item_ids)

    draft = validate_cart_purchase(user, keys, use_referral_coins=use_referral_coins)
    return create_order(
        user=user,
        draft=draft,
        shipping_address=shipping_address,
        payment_method=payment_method,
        use_referral_coins=use_referral_coins,
        idempotency_key=idempotency_key,
    )


def place_direct_order(
    *,
    user,
    product_id: int,
    quantity: int,
    color: str | None = None,
    shipping_address: ShippingAddress | Mapping[str, Any],
    payment_method: str = Order.PaymentMethod.COD,
    use_referral_coins: bool = False,
    idempotency_key: str = "",
) -> Order:
    require_user(user)
    existing = find_existing_order(user=user, idempotency_key=idempotency_key)
    if existing:
        return existing

    draft = validate_direct_purchase(
        user, product_id, quantity, color, use_referral_coins=use_referral_coins
    )
    return create_order(
        user=user,
        draft=draft,
        shipping_address=shipping_address,
        payment_method=payment_method,
        use_referral_coins=use_referral_coins,
        idempotency_key=idempotency_key,
    )
