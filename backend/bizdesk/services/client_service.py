# Overview: Service-layer operations for clients; encapsulates business logic and database work.

"""
Client Service

Clients are identified inside an enterprise by their phone number (digits
only). Budget checkout relies on find_or_create_client_by_phone to reuse an
existing client instead of creating duplicates.
"""

from __future__ import annotations

from ..errors import ConflictError
from ..extensions import db
from ..models import Budget, Client, Sale
from ..validation import normalize_phone, require_text
from .invalidation_service import PAGE_CLIENTS, invalidate
from .tenant_service import get_owned_or_404, scoped_query


def _find_by_phone(enterprise_id: int, phone_number: str) -> Client | None:
    return (
        scoped_query(Client, enterprise_id)
        .filter(Client.phone_number == phone_number)
        .first()
    )


def _ensure_phone_free(enterprise_id: int, phone_number: str, exclude_id: int | None = None) -> None:
    existing = _find_by_phone(enterprise_id, phone_number)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(
            "A client with this phone number already exists",
            details={"client_id": existing.id},
        )


def create_client(enterprise_id: int, payload: dict) -> Client:
    payload = payload or {}
    name = require_text("name", payload.get("name"), max_length=255)
    phone_number = normalize_phone(payload.get("phone_number"))
    _ensure_phone_free(enterprise_id, phone_number)

    client = Client(enterprise_id=enterprise_id, name=name, phone_number=phone_number)
    db.session.add(client)
    db.session.commit()
    invalidate(enterprise_id, PAGE_CLIENTS)
    return client


def update_client(client_id: int, enterprise_id: int, payload: dict) -> Client:
    payload = payload or {}
    client = get_owned_or_404(Client, client_id, enterprise_id, label="Client")

    if "name" in payload:
        client.name = require_text("name", payload.get("name"), max_length=255)
    if "phone_number" in payload:
        phone_number = normalize_phone(payload.get("phone_number"))
        _ensure_phone_free(enterprise_id, phone_number, exclude_id=client.id)
        client.phone_number = phone_number

    db.session.commit()
    invalidate(enterprise_id, PAGE_CLIENTS)
    return client


def upsert_client(enterprise_id: int, payload: dict) -> tuple[Client, bool]:
    client_id = (payload or {}).get("id")
    if client_id is None:
        return create_client(enterprise_id, payload), True
    return update_client(client_id, enterprise_id, payload), False


def delete_client(client_id: int, enterprise_id: int) -> None:
    client = get_owned_or_404(Client, client_id, enterprise_id, label="Client")

    in_use = (
        db.session.query(Sale.id).filter(Sale.client_id == client.id).first()
        or db.session.query(Budget.id).filter(Budget.client_id == client.id).first()
    )
    if in_use:
        raise ConflictError("Client has sales or budgets and cannot be deleted")

    db.session.delete(client)
    db.session.commit()
    invalidate(enterprise_id, PAGE_CLIENTS)


def get_client(client_id: int, enterprise_id: int) -> Client:
    return get_owned_or_404(Client, client_id, enterprise_id, label="Client")


def list_clients(enterprise_id: int, search: str | None = None) -> list[Client]:
    query = scoped_query(Client, enterprise_id)
    if search and search.strip():
        term = search.strip()
        query = query.filter(
            Client.name.icontains(term, autoescape=True)
            | Client.phone_number.contains("".join(ch for ch in term if ch.isdigit()) or term)
        )
    return query.order_by(Client.name.asc(), Client.id.asc()).all()


def find_or_create_client_by_phone(
    enterprise_id: int,
    name: str,
    phone_number: str,
) -> Client:
    """
    Idempotent lookup: the same phone in the same enterprise always yields
    the same Client. The stored name is kept when the client already exists.

    Flushes only; the caller owns the transaction.
    """
    phone_number = normalize_phone(phone_number)
    existing = _find_by_phone(enterprise_id, phone_number)
    if existing is not None:
        return existing

    client = Client(
        enterprise_id=enterprise_id,
        name=require_text("client name", name, max_length=255),
        phone_number=phone_number,
    )
    db.session.add(client)
    db.session.flush()
    return client
