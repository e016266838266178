# backend/bizdesk/routes/stock.py
"""
Stock ledger routes: movement history, reconciliation and the stock dashboard.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..errors import ValidationError
from ..services import dashboard_service, stock_ledger_service
from bizdesk.time_utils import parse_range_bound


stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


def _range_arg(name: str, end: bool = False):
    try:
        return parse_range_bound(request.args.get(name), end=end)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")


@stock_bp.get("/movements")
@require_auth
def list_movements_route():
    """
    Movement history for the enterprise, newest first.

    Query params: product_id, type (entry|exit), start, end, limit
    """
    movements = stock_ledger_service.list_movements(
        g.enterprise_id,
        product_id=request.args.get("product_id", type=int),
        movement_type=request.args.get("type"),
        start=_range_arg("start"),
        end=_range_arg("end", end=True),
        limit=request.args.get("limit", default=200, type=int),
    )
    return {"movements": [m.to_dict() for m in movements]}


@stock_bp.post("/reconcile")
@require_auth
def reconcile_route():
    """
    Compare every product's stored quantity with the sum of its movements.

    Body: {"fix": bool} - when true, drifted products are rewritten from
    the ledger.
    """
    payload = request.get_json(silent=True) or {}
    return stock_ledger_service.reconcile_enterprise_stock(
        g.enterprise_id, fix=bool(payload.get("fix"))
    )


@stock_bp.post("/products/<int:product_id>/recompute")
@require_auth
def recompute_route(product_id: int):
    return stock_ledger_service.recompute_stock(product_id, g.enterprise_id, fix=True)


@stock_bp.get("/dashboard")
@require_auth
def stock_dashboard_route():
    return dashboard_service.stock_dashboard(
        g.enterprise_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
