# Overview: Flask API routes for the sale lifecycle and the sales dashboard.

# backend/bizdesk/routes/sales.py
"""
Sales routes.

LIFECYCLE:
- POST /api/sales debits stock for every line
- POST /api/sales/<id>/cancel restores it (once)
- DELETE /api/sales/<id> only for cancelled sales
"""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import dashboard_service, sales_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """Query params: status, client_id"""
    sales = sales_service.list_sales(
        g.enterprise_id,
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int),
    )
    return {"sales": [s.to_dict() for s in sales]}


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Create a sale.

    Body:
    {
        "client_id": int,
        "payment_method": "cash" | "credit_card" | "debit_card" | "pix" | "bank_transfer",
        "items": [{"product_id": int, "quantity": int, "unit_price_cents": int}],
        "status": "pending" | "completed" (optional),
        "budget_id": int (optional)
    }
    """
    sale = sales_service.create_sale(g.enterprise_id, request.get_json(silent=True) or {})
    return sale.to_dict(include_items=True), 201


@sales_bp.get("/dashboard")
@require_auth
def sales_dashboard_route():
    return dashboard_service.sales_dashboard(
        g.enterprise_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    return sales_service.get_sale(sale_id, g.enterprise_id).to_dict(include_items=True)


@sales_bp.patch("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int):
    sale = sales_service.update_sale(sale_id, g.enterprise_id, request.get_json(silent=True) or {})
    return sale.to_dict(include_items=True)


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
def cancel_sale_route(sale_id: int):
    sale = sales_service.cancel_sale(sale_id, g.enterprise_id)
    return sale.to_dict(include_items=True)


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    sales_service.delete_sale(sale_id, g.enterprise_id)
    return {"deleted": True, "id": sale_id}
