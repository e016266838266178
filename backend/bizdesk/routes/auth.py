# backend/bizdesk/routes/auth.py
"""
Authentication and account routes.

Login issues a bearer token bound to the user's enterprise at that moment.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_login
from ..services import auth_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not all([email, password]):
        return jsonify({"error": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if not user:
        current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
    }), 200


@auth_bp.post("/logout")
@require_login
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_login
def me_route():
    return jsonify({"user": g.current_user.to_dict(), "enterprise_id": g.enterprise_id}), 200


@auth_bp.put("/me")
@require_login
def update_me_route():
    """Update profile fields (name, phone, doc_number, avatar_image_url)."""
    user = auth_service.update_user(g.current_user.id, request.get_json(silent=True) or {})
    return jsonify({"user": user.to_dict()}), 200


@auth_bp.delete("/me")
@require_login
def delete_me_route():
    """Deactivate the account and revoke every session."""
    auth_service.deactivate_user(g.current_user.id)
    return jsonify({"ok": True}), 200
