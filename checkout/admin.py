from __future__ import annotations

from django.contrib import admin
from django.contrib import messages

from api.errors import ShopError

from .lifecycle import advance_status
from .models import Cart, CartItem, Order, OrderLine, OrderNumberSequence, OrderStatusChange


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    raw_id_fields = ("product",)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "updated_at")
    search_fields = ("user__email",)
    inlines = (CartItemInline,)


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "product", "color_name", "qty", "unit_price", "is_selected", "updated_at")
    list_filter = ("is_selected",)
    search_fields = ("cart__user__email", "product__sku", "product__name")
    raw_id_fields = ("product",)


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    readonly_fields = ("product", "sku", "name", "color_name", "qty", "unit_price", "line_total")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderStatusChangeInline(admin.TabularInline):
    model = OrderStatusChange
    extra = 0
    readonly_fields = ("from_status", "to_status", "actor", "reason", "created_at")

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "user",
        "seller",
        "source",
        "status",
        "payment_status",
        "final_amount",
        "created_at",
    )
    list_filter = ("status", "source", "payment_status")
    search_fields = ("order_number", "user__email", "shipping_last_name", "shipping_city")
    # Orders are immutable; status changes go through the actions below.
    readonly_fields = [f.name for f in Order._meta.fields]
    inlines = (OrderLineInline, OrderStatusChangeInline)
    actions = ("mark_processing", "mark_shipped", "mark_delivered")

    def has_add_permission(self, request):
        return False

    def _advance(self, request, queryset, new_status: str) -> None:
        done = 0
        for order in queryset:
            try:
                advance_status(order_id=order.id, new_status=new_status, actor=request.user)
            except ShopError as exc:
                messages.error(request, f"{order.order_number}: {exc.message}")
                continue
            done += 1
        if done:
            messages.success(request, f"{done} order(s) moved to {new_status}.")

    @admin.action(description="Mark selected orders as processing")
    def mark_processing(self, request, queryset):
        self._advance(request, queryset, Order.Status.PROCESSING)

    @admin.action(description="Mark selected orders as shipped")
    def mark_shipped(self, request, queryset):
        self._advance(request, queryset, Order.Status.SHIPPED)

    @admin.action(description="Mark selected orders as delivered")
    def mark_delivered(self, request, queryset):
        self._advance(request, queryset, Order.Status.DELIVERED)


@admin.register(OrderNumberSequence)
class OrderNumberSequenceAdmin(admin.ModelAdmin):
    list_display = ("day", "last_value")
    readonly_fields = ("day", "last_value")
