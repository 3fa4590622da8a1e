"""Shared fixtures: users for each role, products, shipping data, auth headers."""

from decimal import Decimal

import pytest

from accounts.jwt_utils import issue_access_token
from accounts.models import User
from catalog.models import Product, ProductColor


SHIPPING = {
    "first_name": "Ayesha",
    "last_name": "Khan",
    "email": "ayesha@example.com",
    "phone": "+92 300 1234567",
    "address": "12 Canal Road",
    "city": "Lahore",
    "zip_code": "54000",
}


@pytest.fixture
def seller(db):
    return User.objects.create_user(email="seller@example.com", password="pw", role=User.Role.SELLER)


@pytest.fixture
def other_seller(db):
    return User.objects.create_user(email="seller2@example.com", password="pw", role=User.Role.SELLER)


@pytest.fixture
def shop_admin(db):
    return User.objects.create_user(email="admin@example.com", password="pw", role=User.Role.ADMIN)


@pytest.fixture
def buyer(db):
    return User.objects.create_user(email="buyer@example.com", password="pw")


@pytest.fixture
def other_buyer(db):
    return User.objects.create_user(email="buyer2@example.com", password="pw")


@pytest.fixture
def make_product(db, seller):
    counter = {"n": 0}

    def _make(
        *,
        sku=None,
        name=None,
        price="1000.00",
        sale_price=None,
        stock=10,
        colors=(),
        delivery_price=None,
        is_active=True,
        owner=None,
    ):
        counter["n"] += 1
        product = Product.objects.create(
            sku=sku or f"SKU-{counter['n']}",
            name=name or f"Product {counter['n']}",
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            delivery_price=Decimal(delivery_price) if delivery_price is not None else None,
            stock=stock,
            seller=owner or seller,
            is_active=is_active,
        )
        for i, color in enumerate(colors):
            ProductColor.objects.create(product=product, name=color, sort_order=i)
        return product

    return _make


@pytest.fixture
def plain_product(make_product):
    return make_product(sku="PLAIN", name="Cotton Shirt", price="1000.00", stock=10)


@pytest.fixture
def colored_product(make_product):
    return make_product(sku="P1", name="Lawn Suit", price="1000.00", stock=10, colors=("Red", "Blue"))


@pytest.fixture
def shipping():
    return dict(SHIPPING)


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = issue_access_token(user_id=user.id, role=user.role)
        return {"HTTP_AUTHORIZATION": f"Bearer {token}"}

    return _headers


@pytest.fixture
def give_coins(db):
    def _give(user, coins: int):
        User.objects.filter(id=user.id).update(referral_coins=coins)
        user.refresh_from_db()
        return user

    return _give
