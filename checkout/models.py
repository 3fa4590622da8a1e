from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class Cart(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cart",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"cart:user:{self.user_id}"


class CartItem(models.Model):
    cart = models.ForeignKey(
        Cart, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(
        "catalog.Product", on_delete=models.CASCADE, related_name="cart_items"
    )
    # "" is the default key for products without colors.
    color_name = models.CharField(max_length=80, blank=True, default="")
    qty = models.PositiveIntegerField(default=1)

    # Display snapshot; refreshed from the catalog whenever the cart is validated.
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    is_selected = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["cart", "product", "color_name"], name="uniq_cart_product_color"),
            models.CheckConstraint(condition=models.Q(
                qty__gte=1), name="chk_cart_qty_gte_1"),
        ]
        ordering = ["-updated_at", "-id"]

    def __str__(self) -> str:
        color = f" [{self.color_name}]" if self.color_name else ""
        return f"cart:{self.cart_id} product:{self.product_id}{color} x{self.qty}"


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    class Source(models.TextChoices):
        CART = "cart", "Cart"
        DIRECT = "direct", "Direct purchase"

    class PaymentMethod(models.TextChoices):
        COD = "cod", "Cash on delivery"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        REFUNDED = "refunded", "Refunded"

    order_number = models.CharField(max_length=32, unique=True)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="sales",
    )

    source = models.CharField(
        max_length=16, choices=Source.choices, default=Source.CART)
    status = models.CharField(
        max_length=32, choices=Status.choices, default=Status.PENDING)

    payment_method = models.CharField(
        max_length=16, choices=PaymentMethod.choices, default=PaymentMethod.COD)
    payment_status = models.CharField(
        max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)

    # Idempotency: unique per user (so order placement can be safely retried)
    idempotency_key = models.CharField(max_length=80, blank=True, default="")

    currency = models.CharField(max_length=3, default="PKR")

    subtotal = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    delivery_fee = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    referral_discount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))
    coins_used = models.PositiveIntegerField(default=0)
    coin_value = models.DecimalField(
        max_digits=8, decimal_places=2, default=Decimal("1.00"))
    final_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # Shipping address snapshot
    shipping_first_name = models.CharField(max_length=150)
    shipping_last_name = models.CharField(max_length=150)
    shipping_email = models.EmailField()
    shipping_phone = models.CharField(max_length=32)
    shipping_address = models.CharField(max_length=255)
    shipping_city = models.CharField(max_length=120)
    shipping_zip_code = models.CharField(max_length=32)

    cancel_reason = models.TextField(blank=True, default="")
    cancelled_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["user", "-created_at"], name="idx_order_user_created"),
            models.Index(fields=["status", "-created_at"], name="idx_order_status_created"),
            models.Index(fields=["seller", "-created_at"], name="idx_order_seller_created"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "idempotency_key"],
                condition=~models.Q(idempotency_key=""),
                name="uniq_order_idempotency_key_per_user",
            )
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.order_number} user:{self.user_id} {self.status}"

    @property
    def shipping_full_name(self) -> str:
        return f"{self.shipping_first_name} {self.shipping_last_name}".strip()

    @property
    def is_terminal(self) -> bool:
        return self.status in {self.Status.DELIVERED, self.Status.CANCELLED}


class OrderLine(models.Model):
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey(
        "catalog.Product",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="order_lines",
    )

    sku = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    color_name = models.CharField(max_length=80, blank=True, default="")

    qty = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"order:{self.order_id} {self.sku} x{self.qty}"


class OrderStatusChange(models.Model):
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name="status_changes")
    from_status = models.CharField(max_length=32, blank=True, default="")
    to_status = models.CharField(max_length=32, choices=Order.Status.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="+",
    )
    reason = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"order:{self.order_id} {self.from_status or '-'} -> {self.to_status}"


class OrderNumberSequence(models.Model):
    day = models.DateField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.day:%Y%m%d}:{self.last_value}"
