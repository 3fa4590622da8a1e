from __future__ import annotations

from decimal import Decimal

from ninja import Schema


class QuoteOut(Schema):
    product_id: int
    currency: str
    color: str = ""

    unit_price: Decimal
    qty: int
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal
