# backend/bizdesk/routes/budgets.py
"""Budget (quote) routes. Budgets never touch stock."""
from flask import Blueprint, request, g, send_file

from ..decorators import require_auth
from ..services import budget_service


budgets_bp = Blueprint("budgets", __name__, url_prefix="/api/budgets")


@budgets_bp.get("")
@require_auth
def list_budgets_route():
    budgets = budget_service.list_budgets(g.enterprise_id, status=request.args.get("status"))
    return {"budgets": [b.to_dict() for b in budgets]}


@budgets_bp.post("")
@require_auth
def upsert_budget_route():
    """
    Create a budget, or replace one when the body carries an id.

    The client comes from client_id or an inline {"client": {name, phone_number}},
    matched by phone. total_cents in the body is ignored.
    """
    budget, created = budget_service.upsert_budget(g.enterprise_id, request.get_json(silent=True) or {})
    return budget.to_dict(), 201 if created else 200


@budgets_bp.get("/<int:budget_id>")
@require_auth
def get_budget_route(budget_id: int):
    return budget_service.get_budget(budget_id, g.enterprise_id).to_dict()


@budgets_bp.get("/<int:budget_id>/pdf")
@require_auth
def export_budget_pdf_route(budget_id: int):
    budget = budget_service.get_budget(budget_id, g.enterprise_id)
    buffer = budget_service.export_budget_pdf(budget_id, g.enterprise_id)
    return send_file(
        buffer,
        mimetype="application/pdf",
        as_attachment=True,
        download_name=budget_service.budget_pdf_filename(budget),
    )


@budgets_bp.put("/<int:budget_id>")
@require_auth
def update_budget_route(budget_id: int):
    payload = dict(request.get_json(silent=True) or {})
    payload["id"] = budget_id
    budget, _ = budget_service.upsert_budget(g.enterprise_id, payload)
    return budget.to_dict()


@budgets_bp.patch("/<int:budget_id>/status")
@require_auth
def update_budget_status_route(budget_id: int):
    payload = request.get_json(silent=True) or {}
    budget = budget_service.update_budget_status(budget_id, g.enterprise_id, payload.get("status"))
    return budget.to_dict()


@budgets_bp.delete("/<int:budget_id>")
@require_auth
def delete_budget_route(budget_id: int):
    budget_service.delete_budget(budget_id, g.enterprise_id)
    return {"deleted": True, "id": budget_id}
