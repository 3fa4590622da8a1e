from __future__ import annotations


class ShopError(Exception):
    """Base for errors that surface to API callers with a status and message."""

    status_code = 400
    code = "error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticatedError(ShopError):
    status_code = 401
    code = "not_authenticated"
    default_message = "Unauthorized"


class ForbiddenError(ShopError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class NotFoundError(ShopError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ValidationError(ShopError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class InvalidVariantError(ShopError):
    status_code = 400
    code = "invalid_variant"
    default_message = "Selected color not available for this product"


class InvalidPriceError(ShopError):
    status_code = 422
    code = "invalid_price"
    default_message = "Invalid product price"


class OutOfStockError(ShopError):
    status_code = 409
    code = "out_of_stock"
    default_message = "Not enough stock"


class InvalidTransitionError(ShopError):
    status_code = 409
    code = "invalid_transition"
    default_message = "Status change not allowed"


class InsufficientCoinsError(ShopError):
    status_code = 409
    code = "insufficient_coins"
    default_message = "Insufficient referral coins"


class CheckoutTimeoutError(ShopError):
    status_code = 503
    code = "checkout_timeout"
    default_message = "Checkout took too long; no order was placed, please try again"


class CartChangedError(ShopError):
    status_code = 409
    code = "cart_changed"
    default_message = "Your cart changed during checkout; please review it and try again"
