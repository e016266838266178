"""
Sales Service - sale lifecycle and its stock effects

LIFECYCLE:
    pending <-> completed --cancel--> cancelled --delete--> (gone)

- Creating a sale debits stock with one "exit" movement per line, in the
  same transaction as the sale. A sale never oversells, whatever
  ALLOW_NEGATIVE_STOCK says.
- Cancelling credits the stock back with "entry" movements and flips the
  status, all in ONE unit of work. Either every line is restored and the
  sale is cancelled, or nothing changes.
- Only cancelled sales can be deleted, so a deleted sale never leaves
  debited stock behind.
- Line items are fixed once the sale exists; only payment method, status
  and client can be edited afterwards.
"""

from __future__ import annotations

from ..errors import (
    AlreadyCancelledError,
    DependencyFailureError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Budget, Client, Sale, SaleItem
from ..models.inventory import MOVEMENT_ENTRY, MOVEMENT_EXIT
from ..models.sales import (
    BUDGET_STATUS_CANCELED,
    BUDGET_STATUS_SOLD,
    PAYMENT_METHODS,
    SALE_STATUS_CANCELLED,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PENDING,
    SALE_STATUSES,
)
from ..validation import require_choice, require_positive_int
from bizdesk.time_utils import utcnow
from .concurrency import atomic
from .invalidation_service import PAGE_BUDGETS, PAGE_PRODUCTS, PAGE_SALES, invalidate
from .line_items import fill_product_names, items_total, load_products, normalize_line_items
from .stock_ledger_service import record_movement
from .tenant_service import get_owned_or_404, scoped_query


SALE_REASON = "venda"
CANCEL_REASON = "cancelamento de venda"

EDITABLE_STATUSES = (SALE_STATUS_PENDING, SALE_STATUS_COMPLETED)


def create_sale(enterprise_id: int, payload: dict) -> Sale:
    """
    Create a sale and debit stock for each line.

    Raises:
        ValidationError: malformed payload
        NotFoundError: client, budget or product not owned by the enterprise
        InsufficientStockError: a line asks for more than is in stock
        InvalidStateError: the referenced budget is already sold or canceled
    """
    payload = payload or {}
    items = normalize_line_items(payload.get("items"))
    payment_method = require_choice("payment_method", payload.get("payment_method"), PAYMENT_METHODS)
    status = require_choice("status", payload.get("status") or SALE_STATUS_PENDING, EDITABLE_STATUSES)
    client_id = require_positive_int("client_id", payload.get("client_id"))
    budget_id = payload.get("budget_id")

    with atomic():
        get_owned_or_404(Client, client_id, enterprise_id, label="Client")

        budget = None
        if budget_id is not None:
            budget = get_owned_or_404(
                Budget, require_positive_int("budget_id", budget_id), enterprise_id,
                label="Budget", lock=True,
            )
            if budget.status in (BUDGET_STATUS_SOLD, BUDGET_STATUS_CANCELED):
                raise InvalidStateError(f"Budget is already {budget.status}")

        products = load_products(enterprise_id, (item["product_id"] for item in items))
        fill_product_names(items, products)

        sale = Sale(
            enterprise_id=enterprise_id,
            client_id=client_id,
            budget_id=budget.id if budget else None,
            items=items,
            total_cents=items_total(items),
            payment_method=payment_method,
            status=status,
        )
        db.session.add(sale)
        db.session.flush()

        for item in items:
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=item["product_id"],
                quantity=item["quantity"],
                unit_price_cents=item["unit_price_cents"],
                total_price_cents=item["total_price_cents"],
            ))
            record_movement(
                item["product_id"],
                enterprise_id,
                MOVEMENT_EXIT,
                item["quantity"],
                SALE_REASON,
                allow_negative=False,
                commit=False,
            )

        if budget is not None:
            budget.status = BUDGET_STATUS_SOLD

    pages = [PAGE_SALES, PAGE_PRODUCTS]
    if budget_id is not None:
        pages.append(PAGE_BUDGETS)
    invalidate(enterprise_id, *pages)
    return sale


def update_sale(sale_id: int, enterprise_id: int, payload: dict) -> Sale:
    """
    Edit a live sale's payment method, status (pending/completed) or client.

    Line items are immutable because their stock has already been debited;
    cancel the sale and create a new one instead.
    """
    payload = payload or {}
    if "items" in payload:
        raise ValidationError("Sale items cannot be changed; cancel the sale and create a new one")

    with atomic():
        sale = get_owned_or_404(Sale, sale_id, enterprise_id, label="Sale", lock=True)
        if sale.status == SALE_STATUS_CANCELLED:
            raise InvalidStateError("Cancelled sales cannot be edited")

        if "status" in payload:
            status = require_choice("status", payload.get("status"), SALE_STATUSES)
            if status == SALE_STATUS_CANCELLED:
                raise ValidationError("Use the cancel operation to cancel a sale")
            sale.status = status
        if "payment_method" in payload:
            sale.payment_method = require_choice(
                "payment_method", payload.get("payment_method"), PAYMENT_METHODS
            )
        if "client_id" in payload:
            client_id = require_positive_int("client_id", payload.get("client_id"))
            get_owned_or_404(Client, client_id, enterprise_id, label="Client")
            sale.client_id = client_id

    invalidate(enterprise_id, PAGE_SALES)
    return sale


def cancel_sale(sale_id: int, enterprise_id: int) -> Sale:
    """
    Cancel a sale and restore the stock of every line.

    Raises:
        NotFoundError: sale missing or owned by another enterprise
        AlreadyCancelledError: the sale was cancelled before
        DependencyFailureError: a line's product no longer exists; nothing
            is changed
    """
    with atomic():
        sale = get_owned_or_404(Sale, sale_id, enterprise_id, label="Sale", lock=True)

        if sale.status == SALE_STATUS_CANCELLED:
            raise AlreadyCancelledError("Sale already cancelled", details={"sale_id": sale.id})

        lines = (
            db.session.query(SaleItem)
            .filter(SaleItem.sale_id == sale.id)
            .order_by(SaleItem.id.asc())
            .all()
        )

        for line in lines:
            try:
                record_movement(
                    line.product_id,
                    enterprise_id,
                    MOVEMENT_ENTRY,
                    line.quantity,
                    CANCEL_REASON,
                    commit=False,
                )
            except NotFoundError:
                raise DependencyFailureError(
                    "Cannot restore stock: a product of this sale no longer exists",
                    details={"sale_id": sale.id, "product_id": line.product_id},
                )

        sale.status = SALE_STATUS_CANCELLED
        sale.cancelled_at = utcnow()

    invalidate(enterprise_id, PAGE_SALES, PAGE_PRODUCTS)
    return sale


def delete_sale(sale_id: int, enterprise_id: int) -> None:
    """Delete a cancelled sale together with its items. No stock effect."""
    with atomic():
        sale = get_owned_or_404(Sale, sale_id, enterprise_id, label="Sale", lock=True)
        if sale.status != SALE_STATUS_CANCELLED:
            raise InvalidStateError(
                "Only cancelled sales can be deleted",
                details={"sale_id": sale.id, "status": sale.status},
            )

        # Items go with the sale (delete-orphan cascade)
        db.session.delete(sale)

    invalidate(enterprise_id, PAGE_SALES)


def get_sale(sale_id: int, enterprise_id: int) -> Sale:
    return get_owned_or_404(Sale, sale_id, enterprise_id, label="Sale")


def list_sales(
    enterprise_id: int,
    *,
    status: str | None = None,
    client_id: int | None = None,
) -> list[Sale]:
    """Tenant's sales with their client, newest first."""
    query = scoped_query(Sale, enterprise_id)
    if status:
        query = query.filter(Sale.status == require_choice("status", status, SALE_STATUSES))
    if client_id is not None:
        query = query.filter(Sale.client_id == client_id)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()
