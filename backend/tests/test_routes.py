"""
HTTP route tests: authentication, error mapping, storefront and the full
stock / sale scenario through the API.
"""

import pytest

from bizdesk.services.invalidation_service import PAGE_PRODUCTS, PAGE_SALES
from conftest import TEST_PASSWORD, auth_headers, get_auth_token


class TestSystemRoutes:

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json["checks"]["database"]["status"] == "healthy"

    def test_cors_only_for_allowed_origins(self, client, db_session):
        allowed = client.get("/health", headers={"Origin": "http://localhost:3000"})
        denied = client.get("/health", headers={"Origin": "http://evil.example"})

        assert allowed.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert "Access-Control-Allow-Origin" not in denied.headers

    def test_unknown_route_is_json_404(self, client, db_session):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert "error" in response.json


class TestAuthRoutes:

    def test_login_logout_cycle(self, client, db_session, user_a):
        token = get_auth_token(client, "ANA@acme.com", TEST_PASSWORD)
        assert token

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["email"] == "ana@acme.com"
        assert "password_hash" not in me.json["user"]

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_wrong_password(self, client, db_session, user_a):
        response = client.post("/api/auth/login", json={"email": "ana@acme.com", "password": "Wrong1234"})
        assert response.status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nope"}, {"Authorization": "Token x"}])
    def test_protected_routes_require_token(self, client, db_session, headers):
        assert client.get("/api/products", headers=headers).status_code == 401
        assert client.post("/api/sales/1/cancel", headers=headers).status_code == 401

    def test_update_profile(self, client, db_session, token_a):
        response = client.put("/api/auth/me", json={"phone": "11 90000-0000"}, headers=auth_headers(token_a))
        assert response.status_code == 200
        assert response.json["user"]["phone"] == "11 90000-0000"

    def test_delete_account_revokes_sessions(self, client, db_session, user_a, token_a):
        assert client.delete("/api/auth/me", headers=auth_headers(token_a)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token_a)).status_code == 401
        assert get_auth_token(client, "ana@acme.com", TEST_PASSWORD) is None

    def test_onboarding_creates_enterprise_for_session(self, client, db_session):
        from bizdesk.services.auth_service import create_user

        create_user("Nina", "nina@example.com", TEST_PASSWORD)
        token = get_auth_token(client, "nina@example.com", TEST_PASSWORD)
        assert client.get("/api/enterprise", headers=auth_headers(token)).status_code == 401

        created = client.post("/api/enterprise", json={"name": "Ateliê Nina"}, headers=auth_headers(token))
        assert created.status_code == 201

        profile = client.get("/api/enterprise", headers=auth_headers(token))
        assert profile.status_code == 200
        assert profile.json["enterprise"]["name"] == "Ateliê Nina"

        again = client.post("/api/enterprise", json={"name": "Outra"}, headers=auth_headers(token))
        assert again.status_code == 409


class TestErrorMapping:

    def test_validation_is_400(self, client, db_session, token_a):
        response = client.post("/api/products", json={"name": "Sem preço"}, headers=auth_headers(token_a))
        assert response.status_code == 400
        assert "sale_price_cents" in response.json["error"]

    def test_conflict_is_409(self, client, db_session, token_a, client_a):
        response = client.post(
            "/api/clients",
            json={"name": "Dup", "phone_number": client_a.phone_number},
            headers=auth_headers(token_a),
        )
        assert response.status_code == 409
        assert response.json["details"] == {"client_id": client_a.id}

    def test_insufficient_stock_is_409_with_details(self, client, db_session, token_a, client_a, product_a):
        response = client.post("/api/sales", json={
            "client_id": client_a.id,
            "payment_method": "pix",
            "items": [{"product_id": product_a.id, "quantity": 11, "unit_price_cents": 1500}],
        }, headers=auth_headers(token_a))

        assert response.status_code == 409
        assert response.json["details"]["quantity_in_stock"] == 10
        assert client.get(f"/api/products/{product_a.id}", headers=auth_headers(token_a)).json[
            "quantity_in_stock"
        ] == 10

    def test_invalid_state_and_double_cancel(self, client, db_session, token_a, client_a, product_a):
        sale = client.post("/api/sales", json={
            "client_id": client_a.id,
            "payment_method": "pix",
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1500}],
        }, headers=auth_headers(token_a)).json

        assert client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(token_a)).status_code == 409
        assert client.post(f"/api/sales/{sale['id']}/cancel", headers=auth_headers(token_a)).status_code == 200

        again = client.post(f"/api/sales/{sale['id']}/cancel", headers=auth_headers(token_a))
        assert again.status_code == 409
        assert again.json["error"] == "Sale already cancelled"

        assert client.delete(f"/api/sales/{sale['id']}", headers=auth_headers(token_a)).status_code == 200
        assert client.get(f"/api/sales/{sale['id']}", headers=auth_headers(token_a)).status_code == 404

    def test_dependency_failure_is_409(self, client, db_session, token_a, client_a, product_a):
        sale = client.post("/api/sales", json={
            "client_id": client_a.id,
            "payment_method": "cash",
            "items": [{"product_id": product_a.id, "quantity": 2, "unit_price_cents": 1500}],
        }, headers=auth_headers(token_a)).json
        client.delete(f"/api/products/{product_a.id}", headers=auth_headers(token_a))

        response = client.post(f"/api/sales/{sale['id']}/cancel", headers=auth_headers(token_a))

        assert response.status_code == 409
        assert response.json["details"]["product_id"] == product_a.id
        assert client.get(f"/api/sales/{sale['id']}", headers=auth_headers(token_a)).json["status"] == "pending"


class TestStockScenario:

    def test_end_to_end_stock_flow(self, client, db_session, token_a, client_a, invalidations):
        headers = auth_headers(token_a)

        product = client.post("/api/products", json={
            "name": "Agenda",
            "sale_price_cents": 2000,
            "purchase_price_cents": 900,
            "quantity_in_stock": 12,
        }, headers=headers)
        assert product.status_code == 201
        product_id = product.json["id"]

        sale = client.post("/api/sales", json={
            "client_id": client_a.id,
            "payment_method": "debit_card",
            "items": [{"product_id": product_id, "quantity": 2, "unit_price_cents": 2000}],
        }, headers=headers)
        assert sale.status_code == 201
        assert sale.json["total_cents"] == 4000

        def stock():
            data = client.get(f"/api/products/{product_id}", headers=headers).json
            return data["quantity_in_stock"], data["stock_status"]

        assert stock() == (10, "in_stock")

        moved = client.post(
            f"/api/products/{product_id}/movements", json={"type": "exit", "quantity": 4}, headers=headers
        )
        assert moved.status_code == 201
        assert stock() == (6, "in_stock")

        client.post(f"/api/products/{product_id}/movements", json={"type": "exit", "quantity": 6}, headers=headers)
        assert stock() == (0, "out_of_stock")

        invalidations.clear()
        cancelled = client.post(f"/api/sales/{sale.json['id']}/cancel", headers=headers)
        assert cancelled.status_code == 200
        assert cancelled.json["status"] == "cancelled"
        assert stock() == (2, "in_stock")

        assert {page for _, page in invalidations} >= {PAGE_SALES, PAGE_PRODUCTS}

        history = client.get(f"/api/products/{product_id}/movements", headers=headers).json["movements"]
        assert [(m["movement_type"], m["quantity"]) for m in history] == [
            ("entry", 2), ("exit", 6), ("exit", 4), ("exit", 2), ("entry", 12)
        ]

        report = client.post("/api/stock/reconcile", json={}, headers=headers).json
        assert report["drifted"] == []

    def test_movement_validation(self, client, db_session, token_a, product_a):
        response = client.post(
            f"/api/products/{product_a.id}/movements",
            json={"type": "exit", "quantity": 0},
            headers=auth_headers(token_a),
        )
        assert response.status_code == 400

    def test_cannot_set_stock_through_put(self, client, db_session, token_a, product_a):
        response = client.put(
            f"/api/products/{product_a.id}", json={"quantity_in_stock": 500}, headers=auth_headers(token_a)
        )
        assert response.status_code == 400


class TestBudgetRoutes:

    def test_budget_crud(self, client, db_session, token_a, product_a):
        headers = auth_headers(token_a)
        created = client.post("/api/budgets", json={
            "client": {"name": "Olga", "phone_number": "11912345678"},
            "items": [{"product_id": product_a.id, "quantity": 2, "unit_price_cents": 1400}],
            "valid_until": "2099-06-30",
            "total": 1,
        }, headers=headers)
        assert created.status_code == 201
        assert created.json["total_cents"] == 2800
        budget_id = created.json["id"]

        updated = client.put(f"/api/budgets/{budget_id}", json={
            "client_id": created.json["client_id"],
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1400}],
        }, headers=headers)
        assert updated.status_code == 200
        assert updated.json["total_cents"] == 1400

        status = client.patch(f"/api/budgets/{budget_id}/status", json={"status": "accepted"}, headers=headers)
        assert status.json["status"] == "sold"

        assert client.delete(f"/api/budgets/{budget_id}", headers=headers).status_code == 200
        assert client.get(f"/api/budgets/{budget_id}", headers=headers).status_code == 404

    def test_budget_pdf_download(self, client, db_session, token_a, token_b, product_a):
        created = client.post("/api/budgets", json={
            "client": {"name": "Olga Lima", "phone_number": "11912345678"},
            "items": [{"product_id": product_a.id, "quantity": 2, "unit_price_cents": 1400}],
            "valid_until": "2099-06-30",
        }, headers=auth_headers(token_a)).json

        response = client.get(f"/api/budgets/{created['id']}/pdf", headers=auth_headers(token_a))

        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data.startswith(b"%PDF")
        assert "Olga_Lima.pdf" in response.headers["Content-Disposition"]

        foreign = client.get(f"/api/budgets/{created['id']}/pdf", headers=auth_headers(token_b))
        assert foreign.status_code == 404
        assert client.get(f"/api/budgets/{created['id']}/pdf").status_code == 401

    def test_foreign_budget_routes(self, client, db_session, token_a, token_b, product_b):
        created = client.post("/api/budgets", json={
            "client": {"name": "Paulo", "phone_number": "21912345678"},
            "items": [{"product_id": product_b.id, "quantity": 1, "unit_price_cents": 250}],
            "valid_until": "2099-06-30",
        }, headers=auth_headers(token_b)).json

        headers_a = auth_headers(token_a)
        assert client.get(f"/api/budgets/{created['id']}", headers=headers_a).status_code == 404
        assert client.delete(f"/api/budgets/{created['id']}", headers=headers_a).status_code == 404
        assert client.patch(
            f"/api/budgets/{created['id']}/status", json={"status": "sold"}, headers=headers_a
        ).status_code == 404


class TestStorefrontRoutes:

    def test_public_listing_and_checkout(self, client, db_session, enterprise_a, product_a, product_a2):
        listing = client.get(f"/api/storefront/{enterprise_a.id}/products?search=cad")
        assert listing.status_code == 200
        assert [p["name"] for p in listing.json["products"]] == ["Caderno"]
        assert "purchase_price_cents" not in listing.json["products"][0]

        checkout = client.post(f"/api/storefront/{enterprise_a.id}/budgets", json={
            "items": [{"product_id": product_a.id, "quantity": 3}],
            "client_name": "Rita",
            "client_phone": "(19) 98888-1111",
        })
        assert checkout.status_code == 201
        assert checkout.json["status"] == "offered"
        assert checkout.json["total_cents"] == 4500
        assert checkout.json["client"]["phone_number"] == "19988881111"

    def test_checkout_cannot_quote_other_tenant_products(self, client, db_session, enterprise_a, product_b):
        response = client.post(f"/api/storefront/{enterprise_a.id}/budgets", json={
            "items": [{"product_id": product_b.id, "quantity": 1}],
            "client_name": "Rita",
            "client_phone": "19988881111",
        })
        assert response.status_code == 404

    def test_unknown_store(self, client, db_session):
        assert client.get("/api/storefront/999/products").status_code == 404
