from types import SimpleNamespace

import pytest
import stripe


def test_create_payment_intent_success(client, mocker):
    mock_intent = mocker.Mock()
    mock_intent.id = "pi_123"
    mock_intent.client_secret = "pi_123_secret_456"
    create = mocker.patch("stripe.PaymentIntent.create", return_value=mock_intent)

    response = client.post(
        "/api/create-payment-intent",
        json={"totalAmount": 25.50, "orderId": "ORD123"}
    )

    assert response.status_code == 200
    assert response.json() == {"clientSecret": "pi_123_secret_456"}
    create.assert_called_once_with(
        amount=2550,
        currency="usd",
        automatic_payment_methods={"enabled": True},
        metadata={"orderId": "ORD123"},
    )


@pytest.mark.parametrize("amount", [0, -3, "abc", None, 0.001])
def test_create_payment_intent_invalid_amount(client, mocker, amount):
    create = mocker.patch("stripe.PaymentIntent.create")

    response = client.post("/api/create-payment-intent", json={"totalAmount": amount, "orderId": "ORD1"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid amount received"}
    create.assert_not_called()


def test_create_payment_intent_provider_failure(client, mocker):
    mocker.patch("stripe.PaymentIntent.create",
                 side_effect=stripe.APIConnectionError("Could not connect to Stripe"))

    response = client.post("/api/create-payment-intent", json={"totalAmount": 10, "orderId": "ORD1"})

    assert response.status_code == 500
    # Provider internals are logged, not returned
    assert response.json() == {"error": "Payment provider error", "kind": "api_connection_error"}


def test_order_success_page_reports_redirect_status(client):
    response = client.get("/api/order-success?payment_intent=pi_1&redirect_status=processing")

    assert response.status_code == 200
    assert response.json() == {
        "payment_intent": "pi_1",
        "status": "processing",
        "message": "Your payment is processing.",
    }


@pytest.mark.parametrize("method, path", [
    ("get", "/api/cart"),
    ("post", "/api/cart"),
    ("get", "/api/orders"),
    ("get", "/api/orders/own"),
    ("get", "/api/orders/some-id"),
    ("get", "/api/auth/check"),
    ("get", "/api/users/own"),
    ("patch", "/api/users/own"),
])
def test_protected_routes_reject_anonymous(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 401
    assert response.json()["detail"] == "Unauthorized"


def test_gate_runs_before_handler(client, mocker):
    cart_items = mocker.patch("storefront.orders.cart_items")

    response = client.post("/api/orders", json={})

    assert response.status_code == 401
    cart_items.assert_not_called()


def test_signup_sets_secure_http_only_cookie(client):
    response = client.post("/api/auth/signup",
                           json={"email": " New@Example.com ", "password": "pw-12345", "name": "New"})

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new@example.com"
    assert body["role"] == "user"
    assert "password" not in body and "salt" not in body

    jwt_cookie = next(c for c in response.headers.get_list("set-cookie") if c.startswith("jwt="))
    lowered = jwt_cookie.lower()
    assert "httponly" in lowered
    assert "secure" in lowered
    assert "samesite=none" in lowered
    assert "max-age=3600" in lowered

    assert client.get("/api/auth/check").json()["email"] == "new@example.com"


def test_signup_rejects_duplicates_and_blank_credentials(client, make_user):
    make_user(email="taken@example.com")

    assert client.post("/api/auth/signup",
                       json={"email": "taken@example.com", "password": "x"}).status_code == 409
    assert client.post("/api/auth/signup",
                       json={"email": "", "password": "x"}).status_code == 400


def test_login_rejects_bad_credentials(client, make_user):
    make_user()

    wrong = client.post("/api/auth/login", json={"email": "buyer@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})

    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "invalid credentials"
    assert unknown.status_code == 401
    assert "jwt" not in client.cookies


def test_login_returns_sanitized_identity(client, make_user, login):
    user = make_user(role="admin")

    response = login()

    assert response.json() == {"id": user.id, "role": "admin"}


def test_session_alone_authenticates(client, make_user, login):
    make_user()
    login()
    client.cookies.delete("jwt")

    assert client.get("/api/auth/check").status_code == 200


def test_token_cookie_alone_authenticates(client, make_user, login):
    make_user()
    login()
    client.cookies.delete("session")

    assert client.get("/api/auth/check").status_code == 200


def test_bearer_header_authenticates(client, fastapi_app, make_user):
    user = make_user()
    token = fastapi_app.state.auth.tokens.issue(user)

    response = client.get("/api/cart", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json() == []


def test_refresh_token_is_not_an_access_token(client, fastapi_app, make_user):
    user = make_user()
    token = fastapi_app.state.auth.tokens.issue_refresh(user)

    response = client.get("/api/cart", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_token_for_missing_user_is_rejected(client, fastapi_app):
    ghost = SimpleNamespace(id="0" * 32, role="admin", email="ghost@example.com")
    token = fastapi_app.state.auth.tokens.issue(ghost)

    response = client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_refresh_restores_access(client, make_user, login):
    user = make_user()
    login()
    client.cookies.delete("jwt")
    client.cookies.delete("session")
    assert client.get("/api/auth/check").status_code == 401

    response = client.post("/api/auth/refresh")

    assert response.status_code == 200
    assert response.json()["id"] == user.id
    assert client.get("/api/auth/check").status_code == 200


def test_refresh_without_cookie_is_rejected(client):
    assert client.post("/api/auth/refresh").status_code == 401


def test_logout_ends_every_credential(client, make_user, login):
    make_user()
    login()

    assert client.get("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/check").status_code == 401


def test_product_catalog_is_public(client, make_product):
    make_product(title="Mint", price="2.00")
    lime = make_product(title="Lime", price="12.75", stock=3)

    response = client.get("/api/products")

    assert response.status_code == 200
    assert response.headers["X-Total-Count"] == "2"
    assert [p["title"] for p in response.json()] == ["Lime", "Mint"]
    assert client.get(f"/api/products/{lime.id}").json() == {
        "id": lime.id, "title": "Lime", "price": 12.75, "stock": 3,
    }
    assert client.get("/api/products/missing").status_code == 404


def test_only_admins_create_products(client, make_user, login):
    body = {"title": "Lime", "price": "12.75", "stock": 4}
    assert client.post("/api/products", json=body).status_code == 401

    make_user()
    login()
    assert client.post("/api/products", json=body).status_code == 403

    make_user(email="admin@example.com", role="admin")
    login(email="admin@example.com")
    response = client.post("/api/products", json=body)

    assert response.status_code == 201
    assert response.json()["price"] == 12.75
    assert [p["id"] for p in client.get("/api/products").json()] == [response.json()["id"]]


@pytest.mark.parametrize("body", [
    {"title": "Lime", "price": "0"},
    {"title": "Lime", "price": "-1.00"},
    {"title": "Lime", "price": "1.001"},
    {"title": "", "price": "1.00"},
    {"title": "Lime", "price": "1.00", "stock": -1},
])
def test_create_product_validates_body(client, make_user, login, body):
    make_user(role="admin")
    login()

    assert client.post("/api/products", json=body).status_code == 422
    assert client.get("/api/products").json() == []


def test_admin_updates_product(client, make_user, make_product, login):
    lime = make_product(price="1.10")
    make_user()
    login()
    assert client.patch(f"/api/products/{lime.id}", json={"stock": 0}).status_code == 403

    make_user(email="admin@example.com", role="admin")
    login(email="admin@example.com")
    response = client.patch(f"/api/products/{lime.id}", json={"price": "1.25"})

    assert response.status_code == 200
    assert response.json() == {"id": lime.id, "title": "Lime", "price": 1.25, "stock": 10}
    assert client.patch("/api/products/missing", json={"stock": 1}).status_code == 404


def test_own_profile_hides_credentials(client, make_user, login):
    user = make_user()
    login()

    response = client.get("/api/users/own")

    assert response.status_code == 200
    assert response.json() == {
        "id": user.id, "email": "buyer@example.com", "name": "Buyer", "role": "user", "addresses": [],
    }


def test_update_own_profile_ignores_protected_fields(client, make_user, login):
    make_user()
    login()

    response = client.patch("/api/users/own", json={
        "name": "Renamed",
        "addresses": [{"city": "Sofia"}],
        "role": "admin",
        "email": "evil@example.com",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Renamed"
    assert body["addresses"] == [{"city": "Sofia"}]
    assert body["role"] == "user"
    assert body["email"] == "buyer@example.com"
    assert "password" not in body and "salt" not in body
    assert client.get("/api/users/own").json() == body
