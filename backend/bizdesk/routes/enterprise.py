# backend/bizdesk/routes/enterprise.py
"""
Enterprise profile routes.

Always the caller's own enterprise, resolved from the session.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_login
from ..extensions import db
from ..services import enterprise_service


enterprise_bp = Blueprint("enterprise", __name__, url_prefix="/api/enterprise")


@enterprise_bp.get("")
@require_auth
def get_enterprise_route():
    enterprise = enterprise_service.get_enterprise(g.enterprise_id)
    return jsonify({"enterprise": enterprise.to_dict()}), 200


@enterprise_bp.put("")
@require_auth
def update_enterprise_route():
    enterprise = enterprise_service.update_enterprise(g.enterprise_id, request.get_json(silent=True) or {})
    return jsonify({"enterprise": enterprise.to_dict()}), 200


@enterprise_bp.post("")
@require_login
def create_enterprise_route():
    """
    Onboarding: a logged-in user without an enterprise creates one and
    becomes its owner. The current session is bound to it.
    """
    if g.enterprise_id is not None:
        return jsonify({"error": "User already belongs to an enterprise"}), 409

    enterprise = enterprise_service.create_enterprise(
        request.get_json(silent=True) or {},
        owner_user_id=g.current_user.id,
    )

    session = g.session_context.session
    session.enterprise_id = enterprise.id
    db.session.commit()

    return jsonify({"enterprise": enterprise.to_dict()}), 201
