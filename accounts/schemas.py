from __future__ import annotations

from ninja import Schema


class RegisterIn(Schema):
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    referral_code: str | None = None


class LoginIn(Schema):
    email: str
    password: str


class RefreshIn(Schema):
    refresh: str | None = None


class TokenOut(Schema):
    access: str
    refresh: str


class AccessOut(Schema):
    access: str


class StatusOut(Schema):
    status: str


class SavedAddressOut(Schema):
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    zip_code: str


class MeOut(Schema):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: str
    role: str
    referral_coins: int
    saved_address: SavedAddressOut | None = None
