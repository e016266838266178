# backend/bizdesk/routes/storefront.py
"""
Public storefront.

No authentication: the enterprise comes from the URL and must be active.
Only products published for sale are visible or quotable.
"""
from flask import Blueprint, current_app, request

from ..services import budget_service, products_service


storefront_bp = Blueprint("storefront", __name__, url_prefix="/api/storefront")


@storefront_bp.get("/<int:enterprise_id>/products")
def list_store_products(enterprise_id: int):
    products = products_service.list_products_for_store(enterprise_id, search=request.args.get("search"))
    return {"products": [p.to_store_dict() for p in products]}


@storefront_bp.post("/<int:enterprise_id>/budgets")
def checkout_cart(enterprise_id: int):
    """
    Turn a cart into a budget.

    Body: {"items": [{"product_id": int, "quantity": int}], "client_name": str, "client_phone": str}
    """
    payload = request.get_json(silent=True) or {}
    budget = budget_service.create_budget_from_cart(
        enterprise_id,
        payload.get("items"),
        payload.get("client_name"),
        payload.get("client_phone"),
    )
    current_app.logger.info("Storefront checkout from %s", request.remote_addr)
    return budget.to_dict(), 201
