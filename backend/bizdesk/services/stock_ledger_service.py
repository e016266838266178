# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Service

StockMovement is the source of truth for stock. Product.quantity_in_stock and
Product.stock_status are a projection of it, kept current by this module and
by nothing else.

INVARIANTS:
- A movement has movement_type entry|exit and an integer quantity >= 1
- Movements are append-only (ORM update/delete raises)
- quantity_in_stock == sum(entries) - sum(exits) for the product; drift from
  out-of-band writes is detected and repaired by recompute_stock /
  reconcile_enterprise_stock
- stock_status is in_stock iff quantity_in_stock > 0

ATOMICITY:
The projection is written with ONE conditional UPDATE statement
(quantity_in_stock = quantity_in_stock +/- q). There is no read-then-write
pair, so two concurrent movements on the same product can't lose an update.
When negative stock is disallowed the same statement carries the guard
`quantity_in_stock >= q`; zero affected rows means the guard failed or the
product is gone, and a follow-up read tells which.

Callers that compose several movements into one transaction (sales) pass
commit=False and own the commit/rollback.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func, update

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import (
    MOVEMENT_ENTRY,
    MOVEMENT_EXIT,
    MOVEMENT_TYPES,
    STOCK_STATUS_IN_STOCK,
    STOCK_STATUS_OUT_OF_STOCK,
)
from ..validation import require_choice, require_positive_int
from .invalidation_service import PAGE_PRODUCTS, invalidate
from .tenant_service import get_owned_or_404


MAX_REASON_LENGTH = 255


def stock_status_for(quantity: int) -> str:
    return STOCK_STATUS_IN_STOCK if quantity > 0 else STOCK_STATUS_OUT_OF_STOCK


def negative_stock_allowed() -> bool:
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", True))


def _expire_cached_product(product_id: int) -> None:
    # The projection was written by a bulk UPDATE; drop any stale in-memory copy.
    cached = db.session.identity_map.get(db.session.identity_key(Product, product_id))
    if cached is not None:
        db.session.expire(cached)


def _normalize_reason(reason) -> str | None:
    if reason is None:
        return None
    text = str(reason).strip()
    if not text:
        return None
    if len(text) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}")
    return text


def record_movement(
    product_id: int,
    enterprise_id: int,
    movement_type: str,
    quantity,
    reason: str | None = None,
    *,
    allow_negative: bool | None = None,
    commit: bool = True,
) -> StockMovement:
    """
    Append a movement and apply its delta to the product projection.

    Args:
        allow_negative: None reads ALLOW_NEGATIVE_STOCK from config.
        commit: False flushes only; the caller owns the transaction.

    Raises:
        ValidationError: bad movement_type / quantity / reason
        NotFoundError: product missing or owned by another enterprise
        InsufficientStockError: exit would go below zero while negative
            stock is disallowed
    """
    movement_type = require_choice("movement_type", movement_type, MOVEMENT_TYPES)
    quantity = require_positive_int("quantity", quantity)
    reason = _normalize_reason(reason)
    if allow_negative is None:
        allow_negative = negative_stock_allowed()

    delta = quantity if movement_type == MOVEMENT_ENTRY else -quantity
    new_quantity = Product.quantity_in_stock + delta

    stmt = update(Product).where(
        Product.id == product_id,
        Product.enterprise_id == enterprise_id,
    )
    if movement_type == MOVEMENT_EXIT and not allow_negative:
        stmt = stmt.where(Product.quantity_in_stock >= quantity)

    stmt = stmt.values(
        quantity_in_stock=new_quantity,
        stock_status=case(
            (new_quantity > 0, STOCK_STATUS_IN_STOCK),
            else_=STOCK_STATUS_OUT_OF_STOCK,
        ),
        updated_at=func.now(),
    )

    result = db.session.execute(stmt, execution_options={"synchronize_session": False})
    _expire_cached_product(product_id)

    if result.rowcount == 0:
        product = db.session.get(Product, product_id)
        if product is None or product.enterprise_id != enterprise_id:
            raise NotFoundError("Product not found")
        raise InsufficientStockError(
            "Insufficient stock",
            details={
                "product_id": product_id,
                "requested_quantity": quantity,
                "quantity_in_stock": product.quantity_in_stock,
            },
        )

    movement = StockMovement(
        product_id=product_id,
        enterprise_id=enterprise_id,
        movement_type=movement_type,
        quantity=quantity,
        reason=reason,
    )
    db.session.add(movement)
    db.session.flush()

    if commit:
        db.session.commit()
        invalidate(enterprise_id, PAGE_PRODUCTS)

    return movement


def _ledger_sum_expression():
    return func.coalesce(
        func.sum(
            case(
                (StockMovement.movement_type == MOVEMENT_ENTRY, StockMovement.quantity),
                else_=-StockMovement.quantity,
            )
        ),
        0,
    )


def ledger_quantity(product_id: int, enterprise_id: int) -> int:
    """Stock as the ledger says it is: sum(entries) - sum(exits)."""
    total = (
        db.session.query(_ledger_sum_expression())
        .filter(
            StockMovement.product_id == product_id,
            StockMovement.enterprise_id == enterprise_id,
        )
        .scalar()
    )
    return int(total or 0)


def _write_projection(product_id: int, quantity: int) -> None:
    db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(
            quantity_in_stock=quantity,
            stock_status=stock_status_for(quantity),
            updated_at=func.now(),
        ),
        execution_options={"synchronize_session": False},
    )
    _expire_cached_product(product_id)


def _drift_row(product: Product, ledger: int) -> dict:
    return {
        "product_id": product.id,
        "name": product.name,
        "recorded": product.quantity_in_stock,
        "ledger": ledger,
        "drift": product.quantity_in_stock - ledger,
        "recorded_status": product.stock_status,
        "expected_status": stock_status_for(ledger),
    }


def _is_drifted(row: dict) -> bool:
    return row["drift"] != 0 or row["recorded_status"] != row["expected_status"]


def recompute_stock(product_id: int, enterprise_id: int, *, fix: bool = True) -> dict:
    """
    Compare a product's projection with its ledger and, when fix is set,
    overwrite the projection with the ledger value.
    """
    product = get_owned_or_404(Product, product_id, enterprise_id, label="Product")
    row = _drift_row(product, ledger_quantity(product_id, enterprise_id))
    row["fixed"] = False

    if fix and _is_drifted(row):
        current_app.logger.warning(
            "Stock drift on product %s: recorded=%s ledger=%s",
            product_id, row["recorded"], row["ledger"],
        )
        _write_projection(product_id, row["ledger"])
        db.session.commit()
        row["fixed"] = True
        invalidate(enterprise_id, PAGE_PRODUCTS)

    return row


def reconcile_enterprise_stock(enterprise_id: int, *, fix: bool = False) -> dict:
    """
    Check every product of an enterprise against the ledger in one pass.

    Returns {"checked": n, "drifted": [...], "fixed": bool}.
    """
    sums = dict(
        db.session.query(StockMovement.product_id, _ledger_sum_expression())
        .filter(StockMovement.enterprise_id == enterprise_id)
        .group_by(StockMovement.product_id)
        .all()
    )

    products = (
        db.session.query(Product)
        .filter(Product.enterprise_id == enterprise_id)
        .order_by(Product.id.asc())
        .all()
    )

    drifted = []
    for product in products:
        row = _drift_row(product, int(sums.get(product.id, 0) or 0))
        if _is_drifted(row):
            drifted.append(row)

    if fix and drifted:
        for row in drifted:
            _write_projection(row["product_id"], row["ledger"])
        db.session.commit()
        current_app.logger.warning(
            "Repaired stock drift on %s product(s) for enterprise %s",
            len(drifted), enterprise_id,
        )
        invalidate(enterprise_id, PAGE_PRODUCTS)

    return {
        "checked": len(products),
        "drifted": drifted,
        "fixed": bool(fix and drifted),
    }


def list_movements(
    enterprise_id: int,
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    start=None,
    end=None,
    limit: int = 200,
) -> list[StockMovement]:
    """Tenant-scoped movement history, newest first."""
    query = db.session.query(StockMovement).filter(StockMovement.enterprise_id == enterprise_id)

    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type:
        movement_type = require_choice("movement_type", movement_type, MOVEMENT_TYPES)
        query = query.filter(StockMovement.movement_type == movement_type)
    if start is not None:
        query = query.filter(StockMovement.created_at >= start)
    if end is not None:
        query = query.filter(StockMovement.created_at <= end)

    limit = max(1, min(int(limit or 200), 1000))
    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
