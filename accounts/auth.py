from __future__ import annotations

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from ninja.security import HttpBearer

from .jwt_utils import decode_token

User = get_user_model()


def access_token_from_cookie(request) -> str:
    name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
    return (request.COOKIES.get(name) or "").strip()


def user_for_access_token(token: str):
    """Active user named by an access token, or None.

    Refresh tokens are rejected here; they are only accepted by /auth/refresh.
    """
    try:
        claims = decode_token(token)
    except jwt.PyJWTError:
        return None
    if claims.get("type") != "access":
        return None

    try:
        user_id = int(claims.get("sub") or 0)
    except (TypeError, ValueError):
        return None
    return User.objects.filter(id=user_id, is_active=True).first() if user_id else None


class JWTAuth(HttpBearer):
    """Buyer, seller and admin auth for the storefront API.

    The browser storefront sends the HttpOnly cookie; other clients send
    ``Authorization: Bearer``.
    """

    def __call__(self, request):
        token = access_token_from_cookie(request)
        if token:
            return self.authenticate(request, token)
        return super().__call__(request)

    def authenticate(self, request, token: str):
        return user_for_access_token(token)
