from __future__ import annotations

from decimal import Decimal

from ninja import Schema


class ProductColorOut(Schema):
    name: str
    media_url: str = ""


class ProductListOut(Schema):
    id: int
    sku: str
    name: str
    price: Decimal
    sale_price: Decimal | None = None
    in_stock: bool


class ProductDetailOut(Schema):
    id: int
    sku: str
    name: str
    description: str = ""
    currency: str
    price: Decimal
    sale_price: Decimal | None = None
    unit_price: Decimal
    delivery_price: Decimal | None = None
    stock: int
    colors: list[ProductColorOut]
