# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_login(f):
    """
    Require a valid session, tenant or not.

    Sets g.current_user, g.enterprise_id (may be None), g.session_context.
    Used by account routes that must work before the user has an enterprise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.enterprise_id = context.enterprise_id
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.enterprise_id: The acting enterprise - REQUIRED
    - g.session_context: The full SessionContext object

    Returns 401 if the token is missing, invalid, expired, its user is
    deactivated, or the session has no enterprise bound to it.
    """
    @wraps(f)
    @require_login
    def decorated_function(*args, **kwargs):
        if g.enterprise_id is None:
            return jsonify({"error": "Invalid session: missing tenant context"}), 401
        return f(*args, **kwargs)

    return decorated_function
