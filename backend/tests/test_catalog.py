"""
Catalog / Directory Tests

Products, suppliers, clients and the enterprise profile.
"""

import pytest

from bizdesk.errors import ConflictError, NotFoundError, ValidationError
from bizdesk.models import Client, Product, StockMovement, User
from bizdesk.services import (
    client_service,
    enterprise_service,
    products_service,
    sales_service,
    supplier_service,
)
from bizdesk.services.client_service import find_or_create_client_by_phone


class TestProducts:

    def test_create_requires_name_and_price(self, db_session, enterprise_a):
        with pytest.raises(ValidationError):
            products_service.create_product(enterprise_a.id, {"name": "Sem preço"})
        with pytest.raises(ValidationError):
            products_service.create_product(enterprise_a.id, {"sale_price_cents": 100})

    def test_sale_price_must_be_positive(self, db_session, enterprise_a):
        with pytest.raises(ValidationError):
            products_service.create_product(enterprise_a.id, {"name": "Grátis", "sale_price_cents": 0})

    def test_unknown_field_rejected(self, db_session, enterprise_a):
        with pytest.raises(ValidationError):
            products_service.create_product(
                enterprise_a.id, {"name": "X", "sale_price_cents": 10, "discount": 5}
            )

    def test_create_without_stock_has_no_movement(self, db_session, enterprise_a):
        product = products_service.create_product(enterprise_a.id, {"name": "Serviço", "sale_price_cents": 5000})

        assert product.quantity_in_stock == 0
        assert product.stock_status == "out_of_stock"
        assert db_session.query(StockMovement).count() == 0

    def test_update_cannot_set_stock(self, db_session, enterprise_a, product_a):
        with pytest.raises(ValidationError):
            products_service.update_product(product_a.id, enterprise_a.id, {"quantity_in_stock": 99})

    def test_update_ignores_echoed_read_only_fields(self, db_session, enterprise_a, product_a):
        data = product_a.to_dict()
        data.pop("quantity_in_stock")
        data["name"] = "Caderno Universitário"

        updated = products_service.update_product(product_a.id, enterprise_a.id, data)

        assert updated.name == "Caderno Universitário"
        assert updated.quantity_in_stock == 10

    def test_supplier_must_belong_to_tenant(self, db_session, enterprise_a, enterprise_b, product_a):
        supplier_b = supplier_service.create_supplier(enterprise_b.id, {"name": "Fornecedor B"})

        with pytest.raises(NotFoundError):
            products_service.update_product(product_a.id, enterprise_a.id, {"supplier_id": supplier_b.id})

    def test_list_search_and_stock_value(self, db_session, enterprise_a, product_a, product_a2, product_b):
        result = products_service.list_products(enterprise_a.id)

        assert result["count"] == 2
        assert result["total_stock_value_cents"] == 10 * 1500 + 20 * 300

        result = products_service.list_products(enterprise_a.id, search="caneta")
        assert [p["name"] for p in result["items"]] == ["Caneta Azul"]

        result = products_service.list_products(enterprise_a.id, search="PAPEL")
        assert result["count"] == 2

    def test_search_treats_wildcards_literally(self, db_session, enterprise_a, product_a):
        assert products_service.list_products(enterprise_a.id, search="%")["count"] == 0

    def test_negative_stock_counts_as_zero_value(self, db_session, enterprise_a, product_a):
        from bizdesk.services.stock_ledger_service import record_movement

        record_movement(product_a.id, enterprise_a.id, "exit", 12)

        assert products_service.list_products(enterprise_a.id)["total_stock_value_cents"] == 0

    def test_pagination(self, db_session, enterprise_a, product_a, product_a2):
        result = products_service.list_products(enterprise_a.id, page=2, per_page=1)

        assert [p["name"] for p in result["items"]] == ["Caneta Azul"]
        assert result["pagination"] == {"page": 2, "per_page": 1, "total": 2, "pages": 2}

    def test_categories_distinct_trimmed_sorted(self, db_session, enterprise_a, product_a, product_b):
        for name, category in [("A", " bebidas "), ("B", "Bebidas"), ("C", ""), ("D", None), ("E", "Alimentos")]:
            products_service.create_product(
                enterprise_a.id, {"name": name, "sale_price_cents": 10, "category": category}
            )

        assert products_service.list_categories(enterprise_a.id) == ["Alimentos", "Bebidas", "bebidas", "Papelaria"]

    def test_store_listing_only_published(self, db_session, enterprise_a, product_a, product_a2):
        products_service.update_product(product_a2.id, enterprise_a.id, {"publish_for_sale": False})

        listed = products_service.list_products_for_store(enterprise_a.id)
        assert [p.id for p in listed] == [product_a.id]
        assert products_service.list_products_for_store(enterprise_a.id, search="cad")[0].id == product_a.id
        assert "purchase_price_cents" not in listed[0].to_store_dict()

    def test_store_listing_unknown_enterprise(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.list_products_for_store(31337)

    def test_delete_product_keeps_history(self, db_session, enterprise_a, client_a, product_a):
        sales_service.create_sale(enterprise_a.id, {
            "client_id": client_a.id,
            "payment_method": "cash",
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1500}],
        })

        products_service.delete_product(product_a.id, enterprise_a.id)

        assert db_session.get(Product, product_a.id) is None
        assert db_session.query(StockMovement).filter_by(product_id=product_a.id).count() == 2


class TestSuppliers:

    def test_crud(self, db_session, enterprise_a):
        supplier, created = supplier_service.upsert_supplier(enterprise_a.id, {"name": "  Distribuidora  "})
        assert created is True
        assert supplier.name == "Distribuidora"

        supplier, created = supplier_service.upsert_supplier(
            enterprise_a.id, {"id": supplier.id, "name": "Distribuidora Sul"}
        )
        assert created is False
        assert [s.name for s in supplier_service.list_suppliers(enterprise_a.id, search="sul")] == [
            "Distribuidora Sul"
        ]

    def test_delete_unlinks_products(self, db_session, enterprise_a, product_a):
        supplier = supplier_service.create_supplier(enterprise_a.id, {"name": "Papel & Cia"})
        products_service.update_product(product_a.id, enterprise_a.id, {"supplier_id": supplier.id})

        supplier_service.delete_supplier(supplier.id, enterprise_a.id)

        db_session.expire_all()
        product = db_session.get(Product, product_a.id)
        assert product is not None
        assert product.supplier_id is None

    def test_blank_name_rejected(self, db_session, enterprise_a):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier(enterprise_a.id, {"name": "   "})


class TestClients:

    def test_duplicate_phone_conflicts(self, db_session, enterprise_a, client_a):
        with pytest.raises(ConflictError):
            client_service.create_client(enterprise_a.id, {"name": "Outra", "phone_number": "(11) 99999-0000"})

    def test_same_phone_allowed_in_other_tenant(self, db_session, enterprise_b, client_a):
        other = client_service.create_client(enterprise_b.id, {"name": "Outra", "phone_number": "11999990000"})
        assert other.id != client_a.id

    def test_short_phone_rejected(self, db_session, enterprise_a):
        with pytest.raises(ValidationError):
            client_service.create_client(enterprise_a.id, {"name": "Curto", "phone_number": "123"})

    def test_find_or_create_is_idempotent(self, db_session, enterprise_a):
        first = find_or_create_client_by_phone(enterprise_a.id, "Hugo", "+55 11 93333-2222")
        second = find_or_create_client_by_phone(enterprise_a.id, "Outro Nome", "5511933332222")

        assert first.id == second.id
        assert second.name == "Hugo"

    def test_find_or_create_leaves_commit_to_caller(self, db_session, enterprise_a):
        created = find_or_create_client_by_phone(enterprise_a.id, "Iara", "11944445555")
        assert created.id is not None

        db_session.rollback()

        assert db_session.query(Client).filter_by(phone_number="11944445555").count() == 0

    def test_client_with_sales_cannot_be_deleted(self, db_session, enterprise_a, client_a, product_a):
        sales_service.create_sale(enterprise_a.id, {
            "client_id": client_a.id,
            "payment_method": "pix",
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price_cents": 1500}],
        })

        with pytest.raises(ConflictError):
            client_service.delete_client(client_a.id, enterprise_a.id)

    def test_delete_unused_client(self, db_session, enterprise_a, client_a):
        client_service.delete_client(client_a.id, enterprise_a.id)
        assert client_service.list_clients(enterprise_a.id) == []

    def test_search_by_name_or_phone(self, db_session, enterprise_a, client_a):
        assert client_service.list_clients(enterprise_a.id, search="carl")[0].id == client_a.id
        assert client_service.list_clients(enterprise_a.id, search="9999-0")[0].id == client_a.id
        assert client_service.list_clients(enterprise_a.id, search="zzz") == []


class TestEnterprise:

    def test_create_attaches_owner(self, db_session):
        from bizdesk.services.auth_service import create_user

        user = create_user("Iris", "iris@nova.com", "Password123")
        enterprise = enterprise_service.create_enterprise({"name": "Nova Loja"}, owner_user_id=user.id)

        db_session.expire_all()
        assert db_session.get(User, user.id).enterprise_id == enterprise.id

    def test_update_own_profile_only(self, db_session, enterprise_a, enterprise_b):
        updated = enterprise_service.update_enterprise(enterprise_a.id, {"city": "Campinas"})

        assert updated.city == "Campinas"
        assert enterprise_service.get_enterprise(enterprise_b.id).city is None

    def test_unknown_field_rejected(self, db_session, enterprise_a):
        with pytest.raises(ValidationError):
            enterprise_service.update_enterprise(enterprise_a.id, {"owner": 1})

    def test_missing_enterprise(self, db_session):
        with pytest.raises(NotFoundError):
            enterprise_service.get_enterprise(999)
