# Overview: Flask API routes for the product catalog and per-product stock movements.

# backend/bizdesk/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: every operation acts on g.enterprise_id (set by @require_auth).
A product id owned by another enterprise answers 404, like a missing one.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import products_service, stock_ledger_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - search: substring of name, description or category (case-insensitive)
    - category: exact category (case-insensitive)
    - supplier_id: int
    - page / per_page: pagination (all items when page is omitted)
    """
    return products_service.list_products(
        g.enterprise_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        supplier_id=request.args.get("supplier_id", type=int),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product, or update it when the payload carries an id.

    An initial quantity_in_stock is recorded as an entry movement.
    """
    payload = request.get_json(silent=True) or {}
    product, created = products_service.upsert_product(g.enterprise_id, payload)
    return product.to_dict(), 201 if created else 200


@products_bp.get("/categories")
@require_auth
def list_categories_route():
    return {"categories": products_service.list_categories(g.enterprise_id)}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    return products_service.get_product(product_id, g.enterprise_id).to_dict()


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Partial update. Stock is never set here; use the movements endpoint."""
    payload = request.get_json(silent=True) or {}
    return products_service.update_product(product_id, g.enterprise_id, payload).to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """
    Delete a product.

    Its movement history is kept; sales that reference it can no longer be
    cancelled.
    """
    products_service.delete_product(product_id, g.enterprise_id)
    return {"deleted": True, "id": product_id}


@products_bp.get("/<int:product_id>/movements")
@require_auth
def list_product_movements_route(product_id: int):
    products_service.get_product(product_id, g.enterprise_id)
    movements = stock_ledger_service.list_movements(
        g.enterprise_id,
        product_id=product_id,
        movement_type=request.args.get("type"),
        limit=request.args.get("limit", default=200, type=int),
    )
    return {"movements": [m.to_dict() for m in movements]}


@products_bp.post("/<int:product_id>/movements")
@require_auth
def record_product_movement_route(product_id: int):
    """
    Record a manual stock movement.

    Body: {"type": "entry" | "exit", "quantity": int >= 1, "reason": str?}
    """
    payload = request.get_json(silent=True) or {}
    movement = stock_ledger_service.record_movement(
        product_id,
        g.enterprise_id,
        payload.get("type", payload.get("movement_type")),
        payload.get("quantity"),
        payload.get("reason"),
    )
    product = products_service.get_product(product_id, g.enterprise_id)
    return {"movement": movement.to_dict(), "product": product.to_dict()}, 201
