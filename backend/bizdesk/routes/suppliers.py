# backend/bizdesk/routes/suppliers.py
"""Supplier CRUD, scoped to the caller's enterprise."""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import supplier_service


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers(g.enterprise_id, search=request.args.get("search"))
    return {"suppliers": [s.to_dict() for s in suppliers]}


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    supplier, created = supplier_service.upsert_supplier(
        g.enterprise_id, request.get_json(silent=True) or {}
    )
    return supplier.to_dict(), 201 if created else 200


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
def get_supplier_route(supplier_id: int):
    return supplier_service.get_supplier(supplier_id, g.enterprise_id).to_dict()


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
def update_supplier_route(supplier_id: int):
    supplier = supplier_service.update_supplier(
        supplier_id, g.enterprise_id, request.get_json(silent=True) or {}
    )
    return supplier.to_dict()


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
def delete_supplier_route(supplier_id: int):
    """Products of the supplier are kept, unlinked."""
    supplier_service.delete_supplier(supplier_id, g.enterprise_id)
    return {"deleted": True, "id": supplier_id}
