"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

Every request acts for exactly one enterprise, resolved from the session by
@require_auth and passed explicitly into every service call. Nothing ever
falls back to "the first enterprise".

SECURITY INVARIANTS:
1. Every authenticated request has g.enterprise_id set
2. Ids coming from client input are checked against the acting enterprise
3. A row owned by another enterprise is reported exactly like a missing row
4. Cross-tenant access attempts are logged

USAGE:
    from bizdesk.services.tenant_service import get_owned_or_404

    product = get_owned_or_404(Product, product_id, enterprise_id, label="Product")
"""

from flask import current_app, g, has_request_context, request

from ..errors import NotFoundError, UnauthorizedError
from ..extensions import db
from ..models import Enterprise
from .concurrency import lock_for_update


def get_current_enterprise_id() -> int:
    """
    Get the acting tenant from Flask g context.

    Raises UnauthorizedError if no tenant is bound to the request.
    """
    enterprise_id = getattr(g, "enterprise_id", None)
    if enterprise_id is None:
        raise UnauthorizedError("Tenant context not established")
    return enterprise_id


def get_owned_or_404(model, record_id, enterprise_id: int, *, label: str | None = None, lock: bool = False):
    """
    Load a tenant-owned row by id.

    Raises NotFoundError if the row doesn't exist or belongs to another
    enterprise. The message is identical in both cases.
    """
    label = label or model.__name__
    if record_id is None:
        raise NotFoundError(f"{label} not found")

    query = db.session.query(model).filter(model.id == record_id)
    if lock:
        query = lock_for_update(query)
    record = query.first()

    if record is None:
        raise NotFoundError(f"{label} not found")

    if record.enterprise_id != enterprise_id:
        _log_cross_tenant_attempt(
            f"{label} {record_id} belongs to enterprise {record.enterprise_id}, not {enterprise_id}"
        )
        raise NotFoundError(f"{label} not found")

    return record


def require_active_enterprise(enterprise_id: int) -> Enterprise:
    enterprise = db.session.get(Enterprise, enterprise_id)
    if enterprise is None or not enterprise.is_active:
        raise NotFoundError("Enterprise not found")
    return enterprise


def scoped_query(model, enterprise_id: int | None = None):
    """
    Base query filtered to one enterprise.

    Usage:
        clients = scoped_query(Client, enterprise_id).order_by(Client.name).all()
    """
    if enterprise_id is None:
        enterprise_id = get_current_enterprise_id()
    return db.session.query(model).filter(model.enterprise_id == enterprise_id)


def _log_cross_tenant_attempt(reason: str) -> None:
    user = getattr(g, "current_user", None)
    current_app.logger.warning(
        "CROSS_TENANT_ACCESS_DENIED user_id=%s path=%s reason=%s",
        user.id if user is not None else None,
        request.path if has_request_context() else None,
        reason,
    )
