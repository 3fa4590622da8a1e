from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema

from accounts.schemas import SavedAddressOut


class CartItemOut(Schema):
    id: int
    product_id: int
    sku: str
    name: str
    color: str = ""
    qty: int
    stock_available: int
    unit_price: Decimal
    line_total: Decimal
    is_selected: bool


class CartOut(Schema):
    currency: str = "PKR"
    items: list[CartItemOut]
    item_count: int
    selected_count: int
    selected_subtotal: Decimal


class CartItemAddIn(Schema):
    product_id: int
    quantity: int = 1
    color: str | None = None


class CartItemUpdateIn(Schema):
    product_id: int
    quantity: int
    color: str | None = None


class ToggleSelectionIn(Schema):
    product_id: int
    # When omitted the selection is flipped.
    selected: bool | None = None
    color: str | None = None


class ToggleSelectionOut(Schema):
    product_id: int
    color: str = ""
    selected: bool


class DirectPurchaseIn(Schema):
    product_id: int
    quantity: int = 1
    color: str | None = None
    use_referral_coins: bool = False


class DraftLineOut(Schema):
    product_id: int
    sku: str
    name: str
    color: str = ""
    qty: int
    unit_price: Decimal
    line_total: Decimal


class DraftOut(Schema):
    source: str
    currency: str
    lines: list[DraftLineOut]
    subtotal: Decimal
    delivery_fee: Decimal
    referral_discount: Decimal
    coins_used: int
    total: Decimal


class ShippingAddressIn(Schema):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    zip_code: str = ""


class OrderCreateIn(Schema):
    shipping_address: ShippingAddressIn
    payment_method: str = "cod"
    use_referral_coins: bool = False
    selected_item_ids: list[int] | None = None


class DirectOrderIn(Schema):
    product_id: int
    quantity: int = 1
    color: str | None = None
    shipping_address: ShippingAddressIn
    payment_method: str = "cod"
    use_referral_coins: bool = False


class OrderLineOut(Schema):
    product_id: int | None = None
    sku: str
    name: str
    color: str = ""
    qty: int
    unit_price: Decimal
    line_total: Decimal


class StatusChangeOut(Schema):
    from_status: str
    to_status: str
    reason: str = ""
    created_at: datetime


class OrderOut(Schema):
    id: int
    order_number: str
    source: str
    status: str
    payment_method: str
    payment_status: str
    currency: str
    subtotal: Decimal
    delivery_fee: Decimal
    referral_discount: Decimal
    coins_used: int
    final_amount: Decimal
    shipping_address: SavedAddressOut
    cancel_reason: str = ""
    created_at: datetime
    lines: list[OrderLineOut]
    status_history: list[StatusChangeOut] = []


class OrderListOut(Schema):
    id: int
    order_number: str
    status: str
    currency: str
    final_amount: Decimal
    item_count: int
    customer_name: str
    city: str
    created_at: datetime


class OrderConfirmationOut(Schema):
    order_id: int
    order_number: str
    status: str
    payment_method: str
    currency: str
    subtotal: Decimal
    delivery_fee: Decimal
    referral_discount: Decimal
    coins_used: int
    final_amount: Decimal
    item_count: int
    shipping_address: SavedAddressOut
    message: str


class CancelIn(Schema):
    reason: str = ""


class StatusUpdateIn(Schema):
    status: str
    reason: str = ""


class SavedAddressResponseOut(Schema):
    saved_address: SavedAddressOut | None = None
