from __future__ import annotations

from django.conf import settings
from ninja import NinjaAPI

from accounts.api import router as auth_router
from catalog.api import router as catalog_router
from checkout.api import cart_router, orders_router
from pricing.api import router as pricing_router
from referrals.api import router as referrals_router

from .errors import ShopError

docs_url = "/docs" if getattr(settings, "NINJA_ENABLE_DOCS", True) else None
openapi_url = "/openapi.json" if getattr(settings,
                                         "NINJA_ENABLE_DOCS", True) else None

api = NinjaAPI(
    title="Storefront checkout API",
    version="1",
    docs_url=docs_url,
    openapi_url=openapi_url,
)

api.add_router("/auth", auth_router)
api.add_router("/catalog", catalog_router)
api.add_router("/pricing", pricing_router)
api.add_router("/referrals", referrals_router)
api.add_router("/cart", cart_router)
api.add_router("/orders", orders_router)


@api.exception_handler(ShopError)
def shop_error(request, exc: ShopError):
    return api.create_response(
        request,
        {"detail": exc.message, "code": exc.code},
        status=exc.status_code,
    )


@api.get("/health")
def health(request):
    return {"status": "ok"}
