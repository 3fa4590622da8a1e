from __future__ import annotations

from django.contrib import admin

from .models import Product, ProductColor


class ProductColorInline(admin.TabularInline):
    model = ProductColor
    extra = 0
    fields = ("name", "media_url", "sort_order")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("sku", "name", "price", "sale_price", "stock", "order_count", "seller", "is_active")
    list_filter = ("is_active",)
    search_fields = ("sku", "name")
    raw_id_fields = ("seller",)
    readonly_fields = ("order_count", "created_at", "updated_at")
    inlines = (ProductColorInline,)

    fieldsets = (
        (None, {"fields": ("sku", "name", "description", "seller", "is_active")}),
        ("Pricing", {"fields": ("price", "sale_price", "delivery_price")}),
        ("Inventory", {"fields": ("stock", "order_count")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )
