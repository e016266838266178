# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two enterprises with their own users and data, then
verify that:
1. Enterprise A never lists Enterprise B's rows
2. By-id access to B's row as A answers exactly like a missing row
3. Cross-tenant access attempts are logged
4. A session without an enterprise cannot reach tenant data
"""

import logging

import pytest

from bizdesk.errors import NotFoundError, UnauthorizedError
from bizdesk.models import Budget, Client, Product, Sale
from bizdesk.services import (
    budget_service,
    client_service,
    products_service,
    sales_service,
    supplier_service,
)
from bizdesk.services.auth_service import create_user
from bizdesk.services.session_service import create_session, validate_session
from bizdesk.services.tenant_service import (
    get_current_enterprise_id,
    get_owned_or_404,
    scoped_query,
)
from conftest import auth_headers


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_owned_row_is_returned(self, db_session, enterprise_a, product_a):
        assert get_owned_or_404(Product, product_a.id, enterprise_a.id).id == product_a.id

    def test_foreign_and_missing_rows_look_the_same(self, db_session, enterprise_a, product_b):
        with pytest.raises(NotFoundError) as foreign:
            get_owned_or_404(Product, product_b.id, enterprise_a.id, label="Product")
        with pytest.raises(NotFoundError) as missing:
            get_owned_or_404(Product, 987654, enterprise_a.id, label="Product")

        assert foreign.value.to_dict() == missing.value.to_dict()

    def test_cross_tenant_access_is_logged(self, app, db_session, enterprise_a, product_b, caplog):
        with app.test_request_context("/api/products/1"):
            with caplog.at_level(logging.WARNING):
                with pytest.raises(NotFoundError):
                    get_owned_or_404(Product, product_b.id, enterprise_a.id)

        assert "CROSS_TENANT_ACCESS_DENIED" in caplog.text

    def test_scoped_query_requires_tenant_context(self, app, db_session):
        with app.test_request_context():
            with pytest.raises(UnauthorizedError):
                get_current_enterprise_id()
            with pytest.raises(UnauthorizedError):
                scoped_query(Product)

    def test_scoped_query_filters(self, db_session, enterprise_a, product_a, product_b):
        assert [p.id for p in scoped_query(Product, enterprise_a.id)] == [product_a.id]


class TestServiceIsolation:

    def test_lists_never_leak(
        self, db_session, enterprise_a, enterprise_b, product_a, product_b, client_a, client_b
    ):
        supplier_service.create_supplier(enterprise_b.id, {"name": "Só B"})
        budget_service.upsert_budget(enterprise_b.id, {
            "client_id": client_b.id,
            "items": [{"product_id": product_b.id, "quantity": 1, "unit_price_cents": 250}],
            "valid_until": "2099-01-01",
        })
        sales_service.create_sale(enterprise_b.id, {
            "client_id": client_b.id,
            "payment_method": "cash",
            "items": [{"product_id": product_b.id, "quantity": 1, "unit_price_cents": 250}],
        })

        assert [p["id"] for p in products_service.list_products(enterprise_a.id)["items"]] == [product_a.id]
        assert [c.id for c in client_service.list_clients(enterprise_a.id)] == [client_a.id]
        assert supplier_service.list_suppliers(enterprise_a.id) == []
        assert budget_service.list_budgets(enterprise_a.id) == []
        assert sales_service.list_sales(enterprise_a.id) == []

    def test_by_id_access_is_not_found(self, db_session, enterprise_a, enterprise_b, product_b, client_b):
        sale_b = sales_service.create_sale(enterprise_b.id, {
            "client_id": client_b.id,
            "payment_method": "cash",
            "items": [{"product_id": product_b.id, "quantity": 2, "unit_price_cents": 250}],
        })

        with pytest.raises(NotFoundError):
            products_service.get_product(product_b.id, enterprise_a.id)
        with pytest.raises(NotFoundError):
            products_service.update_product(product_b.id, enterprise_a.id, {"name": "Hack"})
        with pytest.raises(NotFoundError):
            products_service.delete_product(product_b.id, enterprise_a.id)
        with pytest.raises(NotFoundError):
            client_service.delete_client(client_b.id, enterprise_a.id)
        with pytest.raises(NotFoundError):
            sales_service.get_sale(sale_b.id, enterprise_a.id)
        with pytest.raises(NotFoundError):
            sales_service.cancel_sale(sale_b.id, enterprise_a.id)
        with pytest.raises(NotFoundError):
            sales_service.delete_sale(sale_b.id, enterprise_a.id)

        db_session.expire_all()
        assert db_session.get(Product, product_b.id).name == "Brigadeiro"
        assert db_session.get(Product, product_b.id).quantity_in_stock == 48
        assert db_session.get(Client, client_b.id) is not None
        assert db_session.get(Sale, sale_b.id).status == "pending"
        assert db_session.query(Budget).count() == 0


class TestSessionTenantBinding:

    def test_session_carries_enterprise(self, db_session, user_a, enterprise_a):
        _, token = create_session(user_a.id)
        assert validate_session(token).enterprise_id == enterprise_a.id

    def test_user_without_enterprise_gets_401_on_tenant_routes(self, client, db_session, enterprise_a, product_a):
        user = create_user("Solo", "solo@example.com", "Password123")
        _, token = create_session(user.id)

        response = client.get("/api/products", headers=auth_headers(token))
        assert response.status_code == 401

        response = client.get("/api/auth/me", headers=auth_headers(token))
        assert response.status_code == 200
        assert response.json["enterprise_id"] is None

    def test_routes_use_session_tenant(self, client, db_session, token_a, product_a, product_b):
        response = client.get("/api/products", headers=auth_headers(token_a))
        assert [p["id"] for p in response.json["items"]] == [product_a.id]

        response = client.get(f"/api/products/{product_b.id}", headers=auth_headers(token_a))
        assert response.status_code == 404
        assert response.json == {"error": "Product not found"}

    def test_enterprise_profile_is_own(self, client, db_session, token_a, token_b, enterprise_a, enterprise_b):
        assert client.get("/api/enterprise", headers=auth_headers(token_a)).json["enterprise"]["id"] == enterprise_a.id
        assert client.get("/api/enterprise", headers=auth_headers(token_b)).json["enterprise"]["id"] == enterprise_b.id
