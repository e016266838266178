# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers are a simple tenant-scoped directory referenced by products.
Deleting a supplier keeps its products; they just lose the reference.
"""

from sqlalchemy import update

from ..extensions import db
from ..models import Product, Supplier
from ..validation import require_text
from .invalidation_service import PAGE_PRODUCTS, PAGE_SUPPLIERS, invalidate
from .tenant_service import get_owned_or_404, scoped_query


def _clean_name(payload: dict) -> str:
    return require_text("name", (payload or {}).get("name"), max_length=255)


def create_supplier(enterprise_id: int, payload: dict) -> Supplier:
    supplier = Supplier(enterprise_id=enterprise_id, name=_clean_name(payload))
    db.session.add(supplier)
    db.session.commit()
    invalidate(enterprise_id, PAGE_SUPPLIERS)
    return supplier


def update_supplier(supplier_id: int, enterprise_id: int, payload: dict) -> Supplier:
    supplier = get_owned_or_404(Supplier, supplier_id, enterprise_id, label="Supplier")
    supplier.name = _clean_name(payload)
    db.session.commit()
    invalidate(enterprise_id, PAGE_SUPPLIERS, PAGE_PRODUCTS)
    return supplier


def upsert_supplier(enterprise_id: int, payload: dict) -> tuple[Supplier, bool]:
    supplier_id = (payload or {}).get("id")
    if supplier_id is None:
        return create_supplier(enterprise_id, payload), True
    return update_supplier(supplier_id, enterprise_id, payload), False


def delete_supplier(supplier_id: int, enterprise_id: int) -> None:
    supplier = get_owned_or_404(Supplier, supplier_id, enterprise_id, label="Supplier")

    # Detach products explicitly; SQLite does not enforce ON DELETE SET NULL
    # unless foreign keys are switched on.
    db.session.execute(
        update(Product)
        .where(Product.supplier_id == supplier.id, Product.enterprise_id == enterprise_id)
        .values(supplier_id=None),
        execution_options={"synchronize_session": "evaluate"},
    )
    db.session.delete(supplier)
    db.session.commit()
    invalidate(enterprise_id, PAGE_SUPPLIERS, PAGE_PRODUCTS)


def get_supplier(supplier_id: int, enterprise_id: int) -> Supplier:
    return get_owned_or_404(Supplier, supplier_id, enterprise_id, label="Supplier")


def list_suppliers(enterprise_id: int, search: str | None = None) -> list[Supplier]:
    query = scoped_query(Supplier, enterprise_id)
    if search and search.strip():
        query = query.filter(Supplier.name.icontains(search.strip(), autoescape=True))
    return query.order_by(Supplier.name.asc(), Supplier.id.asc()).all()
