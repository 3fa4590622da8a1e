from __future__ import annotations

from django.conf import settings
from django.db.models import Q
from ninja import Router
from ninja.pagination import PageNumberPagination, paginate

from .models import Product
from .schemas import ProductDetailOut, ProductListOut
from .services import lookup_product

router = Router(tags=["catalog"])


@router.get("/products", response=list[ProductListOut])
@paginate(PageNumberPagination, page_size=24)
def list_products(request, q: str | None = None):
    qs = Product.objects.filter(is_active=True)
    q = (q or "").strip()
    if q:
        qs = qs.filter(Q(name__icontains=q) | Q(sku__icontains=q))

    return [
        {
            "id": p.id,
            "sku": p.sku,
            "name": p.name,
            "price": p.price,
            "sale_price": p.sale_price,
            "in_stock": p.stock > 0,
        }
        for p in qs.order_by("name", "id")
    ]


@router.get("/products/{product_id}", response=ProductDetailOut)
def product_detail(request, product_id: int):
    entry = lookup_product(product_id)
    product = Product.objects.prefetch_related("colors").get(id=entry.product_id)

    return {
        "id": product.id,
        "sku": product.sku,
        "name": product.name,
        "description": product.description,
        "currency": settings.STORE_CURRENCY,
        "price": product.price,
        "sale_price": product.sale_price,
        "unit_price": entry.unit_price,
        "delivery_price": entry.delivery_price,
        "stock": entry.stock,
        "colors": [{"name": c.name, "media_url": c.media_url} for c in product.colors.all()],
    }
