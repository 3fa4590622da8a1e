"""HTTP-level tests for the storefront API."""

from decimal import Decimal

import pytest

from accounts.jwt_utils import issue_refresh_token
from accounts.models import User
from checkout.models import Order
from checkout.services import place_direct_order


JSON = "application/json"


def _post(client, url, data, headers, **extra):
    return client.post(url, data=data, content_type=JSON, **headers, **extra)


def _put(client, url, data, headers):
    return client.put(url, data=data, content_type=JSON, **headers)


@pytest.mark.django_db
class TestAuth:
    def test_register_login_me(self, client):
        resp = _post(client, "/api/auth/register", {"email": "New@Example.com", "password": "pw12345"}, {})
        assert resp.status_code == 200
        assert {"access", "refresh"} <= set(resp.json())

        resp = _post(client, "/api/auth/login", {"email": "new@example.com", "password": "pw12345"}, {})
        assert resp.status_code == 200
        token = resp.json()["access"]

        resp = client.get("/api/auth/me", HTTP_AUTHORIZATION=f"Bearer {token}")
        assert resp.status_code == 200
        assert resp.json()["email"] == "new@example.com"
        assert resp.json()["role"] == "buyer"

    def test_register_with_referral_code(self, client, buyer):
        from referrals.services import get_or_create_referral_code

        code = get_or_create_referral_code(buyer)
        resp = _post(
            client,
            "/api/auth/register",
            {"email": "friend@example.com", "password": "pw", "referral_code": code},
            {},
        )
        assert resp.status_code == 200
        assert User.objects.get(email="friend@example.com").referred_by_id == buyer.id

    def test_duplicate_email(self, client, buyer):
        resp = _post(client, "/api/auth/register", {"email": buyer.email, "password": "pw"}, {})
        assert resp.status_code == 400

    def test_bad_credentials(self, client, buyer):
        resp = _post(client, "/api/auth/login", {"email": buyer.email, "password": "wrong"}, {})
        assert resp.status_code == 401

    def test_access_cookie_authenticates(self, client, buyer):
        resp = _post(client, "/api/auth/login", {"email": buyer.email, "password": "pw"}, {})
        assert resp.status_code == 200

        # No Authorization header: the HttpOnly cookie set by login is used.
        resp = client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == buyer.email

    def test_refresh_token_is_not_an_access_token(self, client, buyer):
        refresh = issue_refresh_token(user_id=buyer.id)
        resp = client.get("/api/auth/me", HTTP_AUTHORIZATION=f"Bearer {refresh}")
        assert resp.status_code == 401

    def test_inactive_or_garbled_token_rejected(self, client, buyer, auth_headers):
        headers = auth_headers(buyer)
        User.objects.filter(id=buyer.id).update(is_active=False)
        assert client.get("/api/auth/me", **headers).status_code == 401
        assert client.get("/api/auth/me", HTTP_AUTHORIZATION="Bearer not-a-jwt").status_code == 401

    def test_cart_requires_auth(self, client):
        assert client.get("/api/cart").status_code == 401
        assert _post(client, "/api/orders", {"shipping_address": {}}, {}).status_code == 401


class TestCatalogAndQuote:
    def test_product_listing_and_detail(self, client, colored_product, make_product):
        make_product(name="Hidden", is_active=False)

        resp = client.get("/api/catalog/products")
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["items"][0]["sku"] == "P1"

        resp = client.get(f"/api/catalog/products/{colored_product.id}")
        assert [c["name"] for c in resp.json()["colors"]] == ["Red", "Blue"]

    def test_missing_product_error_shape(self, client, db):
        resp = client.get("/api/catalog/products/999999")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Product not found", "code": "not_found"}

    def test_quote(self, client, plain_product):
        resp = client.get(f"/api/pricing/quote?product_id={plain_product.id}&qty=2")
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(body["subtotal"]) == Decimal("2000.00")
        assert Decimal(body["delivery_fee"]) == Decimal("500.00")
        assert Decimal(body["total"]) == Decimal("2500.00")


class TestCartEndpoints:
    def test_add_update_toggle_remove(self, client, buyer, colored_product, plain_product, auth_headers):
        headers = auth_headers(buyer)

        resp = _post(client, "/api/cart/add", {"product_id": colored_product.id, "quantity": 2, "color": "Red"}, headers)
        assert resp.status_code == 200
        _post(client, "/api/cart/add", {"product_id": plain_product.id}, headers)

        resp = client.get("/api/cart", **headers)
        body = resp.json()
        assert body["item_count"] == 3
        assert body["selected_count"] == 2
        assert Decimal(body["selected_subtotal"]) == Decimal("3000.00")

        resp = _put(client, "/api/cart/update", {"product_id": colored_product.id, "quantity": 4, "color": "Red"}, headers)
        assert resp.status_code == 200

        resp = _put(client, "/api/cart/toggle-selection", {"product_id": plain_product.id}, headers)
        assert resp.json() == {"product_id": plain_product.id, "color": "", "selected": False}

        resp = _put(
            client,
            "/api/cart/toggle-selection",
            {"product_id": plain_product.id, "selected": False},
            headers,
        )
        assert resp.json()["selected"] is False

        resp = client.get("/api/cart/validate-checkout", **headers)
        assert resp.status_code == 200
        draft = resp.json()
        assert [(ln["sku"], ln["qty"]) for ln in draft["lines"]] == [("P1", 4)]
        assert Decimal(draft["total"]) == Decimal("4500.00")

        resp = client.delete(f"/api/cart/remove/{colored_product.id}?color=Red", **headers)
        assert resp.status_code == 200
        assert [it["sku"] for it in resp.json()["items"]] == ["PLAIN"]

        resp = client.delete("/api/cart/clear", **headers)
        assert resp.json()["items"] == []

    def test_add_needs_color(self, client, buyer, colored_product, auth_headers):
        resp = _post(client, "/api/cart/add", {"product_id": colored_product.id}, auth_headers(buyer))
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_variant"

    def test_validate_empty_cart(self, client, buyer, auth_headers):
        resp = client.get("/api/cart/validate-checkout", **auth_headers(buyer))
        assert resp.status_code == 400
        assert resp.json() == {"detail": "No items selected for checkout", "code": "validation_error"}

    def test_validate_direct_purchase(self, client, buyer, plain_product, auth_headers):
        headers = auth_headers(buyer)
        resp = _post(client, "/api/cart/validate-direct-purchase", {"product_id": plain_product.id, "quantity": 3}, headers)
        assert resp.status_code == 200
        assert resp.json()["source"] == "direct"
        assert Decimal(resp.json()["subtotal"]) == Decimal("3000.00")

        resp = _post(client, "/api/cart/validate-direct-purchase", {"product_id": plain_product.id, "quantity": 11}, headers)
        assert resp.status_code == 409
        assert resp.json()["code"] == "out_of_stock"


class TestOrderEndpoints:
    def test_cart_order_flow(self, client, buyer, plain_product, auth_headers, shipping):
        headers = auth_headers(buyer)
        _post(client, "/api/cart/add", {"product_id": plain_product.id, "quantity": 2}, headers)

        resp = _post(client, "/api/orders", {"shipping_address": shipping}, headers)
        assert resp.status_code == 200
        order = resp.json()
        assert order["status"] == "pending"
        assert order["source"] == "cart"
        assert Decimal(order["final_amount"]) == Decimal("2500.00")
        assert order["shipping_address"]["city"] == "Lahore"
        assert [h["to_status"] for h in order["status_history"]] == ["pending"]

        resp = client.get(f"/api/orders/{order['id']}/confirmation", **headers)
        assert resp.json()["order_number"] == order["order_number"]
        assert resp.json()["item_count"] == 2

        resp = client.get("/api/orders", **headers)
        assert [o["order_number"] for o in resp.json()] == [order["order_number"]]

        resp = client.get("/api/orders/saved-address", **headers)
        assert resp.json()["saved_address"]["zip_code"] == "54000"

        assert client.get("/api/cart", **headers).json()["items"] == []

    def test_direct_order_and_idempotency_header(self, client, buyer, plain_product, auth_headers, shipping):
        headers = auth_headers(buyer)
        payload = {"product_id": plain_product.id, "quantity": 1, "shipping_address": shipping}

        first = _post(client, "/api/orders/direct", payload, headers, HTTP_IDEMPOTENCY_KEY="retry-1")
        again = _post(client, "/api/orders/direct", payload, headers, HTTP_IDEMPOTENCY_KEY="retry-1")

        assert first.status_code == again.status_code == 200
        assert first.json()["id"] == again.json()["id"]
        assert Order.objects.count() == 1

    def test_missing_shipping_field(self, client, buyer, plain_product, auth_headers, shipping):
        shipping["phone"] = ""
        resp = _post(
            client,
            "/api/orders/direct",
            {"product_id": plain_product.id, "shipping_address": shipping},
            auth_headers(buyer),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing shipping fields: phone"

    def test_other_buyer_gets_403(self, client, buyer, other_buyer, plain_product, auth_headers, shipping):
        order = place_direct_order(user=buyer, product_id=plain_product.id, quantity=1, shipping_address=shipping)
        resp = client.get(f"/api/orders/{order.id}", **auth_headers(other_buyer))
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"

    def test_cancel_and_status(self, client, buyer, seller, plain_product, auth_headers, shipping):
        order = place_direct_order(user=buyer, product_id=plain_product.id, quantity=1, shipping_address=shipping)

        resp = _post(client, f"/api/orders/{order.id}/cancel", {}, auth_headers(buyer))
        assert resp.status_code == 400

        resp = _put(client, f"/api/orders/{order.id}/status", {"status": "processing"}, auth_headers(buyer))
        assert resp.status_code == 403

        resp = _put(client, f"/api/orders/{order.id}/status", {"status": "processing"}, auth_headers(seller))
        assert resp.status_code == 200
        assert resp.json()["status"] == "processing"

        resp = _put(client, f"/api/orders/{order.id}/status", {"status": "delivered"}, auth_headers(seller))
        assert resp.status_code == 409
        assert resp.json()["code"] == "invalid_transition"

        resp = _post(client, f"/api/orders/{order.id}/cancel", {"reason": "Out of stock"}, auth_headers(seller))
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert resp.json()["cancel_reason"] == "Out of stock"

    def test_cancel_reasons_are_public(self, client, db):
        resp = client.get("/api/orders/cancel-reasons")
        assert resp.status_code == 200
        assert "Other" in resp.json()

    def test_admin_listing(self, client, buyer, seller, other_seller, shop_admin, make_product, auth_headers, shipping):
        mine = make_product(owner=seller)
        theirs = make_product(owner=other_seller)
        for _ in range(3):
            place_direct_order(user=buyer, product_id=mine.id, quantity=1, shipping_address=shipping)
        place_direct_order(user=buyer, product_id=theirs.id, quantity=1, shipping_address=shipping)

        assert client.get("/api/orders/admin", **auth_headers(buyer)).status_code == 403

        resp = client.get("/api/orders/admin", **auth_headers(seller))
        assert resp.json()["count"] == 3

        resp = client.get("/api/orders/admin?status=pending", **auth_headers(shop_admin))
        assert resp.json()["count"] == 4
        assert resp.json()["items"][0]["customer_name"] == "Ayesha Khan"

        resp = client.get("/api/orders/admin?status=delivered", **auth_headers(shop_admin))
        assert resp.json()["count"] == 0


class TestReferralEndpoints:
    def test_code_stats_and_quote(self, client, buyer, auth_headers, give_coins):
        give_coins(buyer, 300)
        headers = auth_headers(buyer)

        code = client.get("/api/referrals/code", **headers).json()["referral_code"]
        assert client.get("/api/referrals/stats", **headers).json()["referral_code"] == code

        resp = _post(client, "/api/referrals/discount-quote", {"subtotal": "2500.00"}, headers)
        body = resp.json()
        assert Decimal(body["max_discount"]) == Decimal("250.00")
        assert Decimal(body["discount"]) == Decimal("250.00")
        assert body["coins_used"] == 250
        assert Decimal(body["final_total"]) == Decimal("2250.00")


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}
