"""Catalog lookup used by pricing and checkout.

Products enter the checkout core only as ``CatalogEntry`` snapshots, built
strictly from the database row: prices are ``Decimal`` and never negative,
colors are a tuple of names (empty tuple = product without variants).
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.db.models import F

from api.errors import InvalidPriceError, InvalidVariantError, NotFoundError, OutOfStockError

from .models import Product


@dataclass(frozen=True)
class CatalogEntry:
    product_id: int
    sku: str
    name: str
    unit_price: Decimal
    stock: int
    colors: tuple[str, ...]
    delivery_price: Decimal | None
    seller_id: int | None

    @property
    def has_variants(self) -> bool:
        return bool(self.colors)


def coerce_price(value, *, label: str = "price") -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidPriceError(f"Invalid {label}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidPriceError(f"Invalid {label}")
    if not amount.is_finite() or amount < 0:
        raise InvalidPriceError(f"Invalid {label}")
    return amount


def _entry_from_product(product: Product) -> CatalogEntry:
    delivery_price = None
    if product.delivery_price is not None:
        delivery_price = coerce_price(product.delivery_price, label="delivery price")

    return CatalogEntry(
        product_id=int(product.id),
        sku=product.sku,
        name=product.name,
        unit_price=coerce_price(product.effective_price),
        stock=max(0, int(product.stock or 0)),
        colors=tuple(c.name for c in product.colors.all()),
        delivery_price=delivery_price,
        seller_id=product.seller_id,
    )


def lookup_product(product_id: int) -> CatalogEntry:
    product = (
        Product.objects.prefetch_related("colors")
        .filter(id=int(product_id), is_active=True)
        .first()
    )
    if not product:
        raise NotFoundError("Product not found")
    return _entry_from_product(product)


def lookup_products(product_ids) -> dict[int, CatalogEntry]:
    """Bulk variant of ``lookup_product``; missing/inactive ids are simply absent."""
    ids = {int(pid) for pid in product_ids}
    if not ids:
        return {}
    qs = Product.objects.prefetch_related("colors").filter(id__in=ids, is_active=True)
    return {int(p.id): _entry_from_product(p) for p in qs}


def resolve_color(entry: CatalogEntry, color: str | None) -> str:
    """Return the canonical color key for ``entry`` ("" for products without variants)."""
    color = (color or "").strip()
    if entry.has_variants:
        if not color:
            raise InvalidVariantError(f"Please select a color for {entry.name}")
        if color not in entry.colors:
            raise InvalidVariantError("Selected color not available for this product")
        return color
    if color:
        raise InvalidVariantError(f"{entry.name} has no color options")
    return ""


def decrement_stock(*, product_id: int, qty: int) -> None:
    qty = int(qty)
    if qty <= 0:
        raise ValueError("qty must be positive")
    # Conditional update: two buyers racing for the last unit cannot both win.
    updated = Product.objects.filter(id=int(product_id), stock__gte=qty).update(
        stock=F("stock") - qty,
        order_count=F("order_count") + qty,
    )
    if updated != 1:
        name = Product.objects.filter(id=int(product_id)).values_list("name", flat=True).first()
        raise OutOfStockError(f"Out of stock: {name}" if name else "Out of stock")


def restore_stock(*, product_id: int, qty: int) -> None:
    qty = int(qty)
    if qty <= 0:
        return
    Product.objects.filter(id=int(product_id)).update(stock=F("stock") + qty)


def ensure_in_stock(entry: CatalogEntry, qty: int) -> None:
    if entry.stock <= 0:
        raise OutOfStockError(f"{entry.name} is out of stock")
    if int(qty) > entry.stock:
        raise OutOfStockError(f"Only {entry.stock} units of {entry.name} available")
