from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class Product(models.Model):
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    # Single currency (settings.STORE_CURRENCY). sale_price wins when set.
    price = models.DecimalField(max_digits=12, decimal_places=2)
    sale_price = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True)
    delivery_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Flat delivery fee for this product. Empty = store default.",
    )

    stock = models.PositiveIntegerField(default=0)
    order_count = models.PositiveIntegerField(default=0)

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="products",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]
        indexes = [
            models.Index(fields=["is_active", "name"], name="idx_product_active_name"),
        ]

    def __str__(self) -> str:
        return f"{self.sku} {self.name}"

    @property
    def effective_price(self) -> Decimal:
        return self.sale_price if self.sale_price is not None else self.price


class ProductColor(models.Model):
    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="colors")
    name = models.CharField(max_length=80)
    media_url = models.URLField(blank=True, default="")
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "name"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "name"], name="uniq_product_color_name"),
        ]

    def __str__(self) -> str:
        return f"{self.product_id}:{self.name}"
