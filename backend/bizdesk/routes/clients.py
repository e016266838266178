# backend/bizdesk/routes/clients.py
"""
Client CRUD.

Phone numbers are unique per enterprise; a client referenced by a sale or
budget cannot be deleted.
"""
from flask import Blueprint, request, g

from ..decorators import require_auth
from ..services import client_service


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    clients = client_service.list_clients(g.enterprise_id, search=request.args.get("search"))
    return {"clients": [c.to_dict() for c in clients]}


@clients_bp.post("")
@require_auth
def create_client_route():
    client, created = client_service.upsert_client(g.enterprise_id, request.get_json(silent=True) or {})
    return client.to_dict(), 201 if created else 200


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    return client_service.get_client(client_id, g.enterprise_id).to_dict()


@clients_bp.put("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    client = client_service.update_client(client_id, g.enterprise_id, request.get_json(silent=True) or {})
    return client.to_dict()


@clients_bp.delete("/<int:client_id>")
@require_auth
def delete_client_route(client_id: int):
    client_service.delete_client(client_id, g.enterprise_id)
    return {"deleted": True, "id": client_id}
