from __future__ import annotations

import logging

import jwt
from django.contrib.auth import authenticate, get_user_model
from django.db import IntegrityError, transaction
from django.conf import settings
from django.http import JsonResponse
from ninja import Router
from ninja.errors import HttpError

from .auth import JWTAuth
from .jwt_utils import decode_token, issue_access_token, issue_refresh_token
from .models import SavedAddress
from .schemas import AccessOut, LoginIn, MeOut, RefreshIn, RegisterIn, StatusOut, TokenOut

router = Router(tags=["auth"])
User = get_user_model()
auth = JWTAuth()

logger = logging.getLogger(__name__)


def _cookie_samesite() -> str:
    v = (getattr(settings, "AUTH_COOKIE_SAMESITE", "lax") or "lax").lower()
    if v == "strict":
        return "Strict"
    if v == "none":
        return "None"
    return "Lax"


def _cookie_secure(request) -> bool:
    explicit = getattr(settings, "AUTH_COOKIE_SECURE", None)
    if explicit is True or explicit is False:
        return bool(explicit)
    try:
        return bool(request.is_secure())
    except Exception:
        return False


def _set_auth_cookies(request, response: JsonResponse, *, access: str, refresh: str | None):
    access_name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
    refresh_name = getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token")
    domain = getattr(settings, "AUTH_COOKIE_DOMAIN", None) or None

    response.set_cookie(
        access_name,
        access,
        httponly=True,
        secure=_cookie_secure(request),
        samesite=_cookie_samesite(),
        domain=domain,
        path="/",
    )
    if refresh is not None:
        response.set_cookie(
            refresh_name,
            refresh,
            httponly=True,
            secure=_cookie_secure(request),
            samesite=_cookie_samesite(),
            domain=domain,
            path="/",
        )


def _token_response(request, user) -> JsonResponse:
    access = issue_access_token(user_id=user.id, role=user.role)
    refresh = issue_refresh_token(user_id=user.id)
    # Tokens are also returned in the body for clients using the Authorization header.
    resp = JsonResponse({"access": access, "refresh": refresh})
    _set_auth_cookies(request, resp, access=access, refresh=refresh)
    return resp


@router.post("/register", response=TokenOut)
def register(request, payload: RegisterIn):
    from referrals.services import apply_referral_code

    email = (payload.email or "").strip().lower()
    if not email or not payload.password:
        raise HttpError(400, "Email and password are required")

    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=payload.password,
                first_name=(payload.first_name or "").strip(),
                last_name=(payload.last_name or "").strip(),
                phone=(payload.phone or "").strip(),
            )
    except IntegrityError:
        raise HttpError(400, "User with this email already exists")

    code = (payload.referral_code or "").strip()
    if code and not apply_referral_code(code=code, new_user=user):
        logger.info("Unknown referral code at registration", extra={"user_id": user.id})

    return _token_response(request, user)


@router.post("/login", response=TokenOut)
def login(request, payload: LoginIn):
    user = authenticate(request, username=(payload.email or "").strip().lower(),
                        password=payload.password)
    if user is None:
        raise HttpError(401, "Invalid credentials")
    return _token_response(request, user)


@router.post("/refresh", response=AccessOut)
def refresh(request, payload: RefreshIn | None = None):
    refresh_token = ((payload.refresh if payload else None) or "").strip()
    if not refresh_token:
        refresh_name = getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token")
        refresh_token = (request.COOKIES.get(refresh_name) or "").strip()
    if not refresh_token:
        raise HttpError(401, "Invalid refresh token")

    try:
        data = decode_token(refresh_token)
    except jwt.PyJWTError:
        raise HttpError(401, "Invalid refresh token")
    if data.get("type") != "refresh":
        raise HttpError(401, "Invalid refresh token")

    user = User.objects.filter(id=int(data.get("sub") or 0), is_active=True).first()
    if user is None:
        raise HttpError(401, "Invalid refresh token")

    access = issue_access_token(user_id=user.id, role=user.role)
    resp = JsonResponse({"access": access})
    _set_auth_cookies(request, resp, access=access, refresh=None)
    return resp


@router.post("/logout", response=StatusOut)
def logout(request):
    resp = JsonResponse({"status": "ok"})
    domain = getattr(settings, "AUTH_COOKIE_DOMAIN", None) or None
    resp.delete_cookie(getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token"), path="/", domain=domain)
    resp.delete_cookie(getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token"), path="/", domain=domain)
    return resp


@router.get("/me", response=MeOut, auth=auth)
def me(request):
    user = request.auth
    saved = SavedAddress.objects.filter(user=user).first()
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "role": user.role,
        "referral_coins": int(user.referral_coins),
        "saved_address": saved,
    }
