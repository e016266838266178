# Overview: Service-layer operations for products; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import case, func

from ..errors import ValidationError
from ..extensions import db
from ..models import Product, Supplier
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_product,
    require_non_negative_int,
    validate_payload,
)
from .concurrency import atomic
from .invalidation_service import PAGE_PRODUCTS, PAGE_STOREFRONT, invalidate
from .stock_ledger_service import record_movement
from .tenant_service import get_owned_or_404, require_active_enterprise, scoped_query


INITIAL_STOCK_REASON = "estoque inicial"

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "category",
        "code",
        "image_url",
        "publish_for_sale",
        "is_service",
        "purchase_price_cents",
        "sale_price_cents",
        "supplier_id",
    },
    required_on_create={"name", "sale_price_cents"},
    # Echoed back by clients that PUT a whole product; derived or server-owned.
    ignored_fields={
        "id",
        "enterprise_id",
        "stock_status",
        "stock_value_cents",
        "supplier_name",
        "created_at",
        "updated_at",
    },
)

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def _validated_patch(enterprise_id: int, payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=partial)
    enforce_rules_product(patch)
    if patch.get("supplier_id") is not None:
        get_owned_or_404(Supplier, patch["supplier_id"], enterprise_id, label="Supplier")
    if "category" in patch and patch["category"] == "":
        patch["category"] = None
    return patch


def create_product(enterprise_id: int, payload: dict) -> Product:
    """
    Create a catalog product.

    An initial quantity_in_stock is not written to the row: it becomes an
    entry movement so the ledger and the projection agree from day one.
    """
    payload = dict(payload or {})
    initial_quantity = payload.pop("quantity_in_stock", None)
    if initial_quantity is not None:
        initial_quantity = require_non_negative_int("quantity_in_stock", initial_quantity)

    patch = _validated_patch(enterprise_id, payload, partial=False)

    with atomic():
        product = Product(enterprise_id=enterprise_id, quantity_in_stock=0, **patch)
        db.session.add(product)
        db.session.flush()

        if initial_quantity:
            record_movement(
                product.id,
                enterprise_id,
                "entry",
                initial_quantity,
                INITIAL_STOCK_REASON,
                commit=False,
            )

    invalidate(enterprise_id, PAGE_PRODUCTS, PAGE_STOREFRONT)
    return db.session.get(Product, product.id)


def update_product(product_id: int, enterprise_id: int, payload: dict) -> Product:
    """Update catalog fields. Stock is only ever changed through movements."""
    payload = dict(payload or {})
    if "quantity_in_stock" in payload:
        raise ValidationError(
            "quantity_in_stock cannot be edited directly; record a stock movement instead"
        )

    product = get_owned_or_404(Product, product_id, enterprise_id, label="Product")
    patch = _validated_patch(enterprise_id, payload, partial=True)

    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()

    invalidate(enterprise_id, PAGE_PRODUCTS, PAGE_STOREFRONT)
    return product


def upsert_product(enterprise_id: int, payload: dict) -> tuple[Product, bool]:
    """Create when payload has no id, else update. Returns (product, created)."""
    product_id = (payload or {}).get("id")
    if product_id is None:
        return create_product(enterprise_id, payload), True
    return update_product(product_id, enterprise_id, payload), False


def delete_product(product_id: int, enterprise_id: int) -> None:
    """
    Delete a product. Its stock movements and any sale lines that
    reference it are kept as history.
    """
    product = get_owned_or_404(Product, product_id, enterprise_id, label="Product")
    db.session.delete(product)
    db.session.commit()
    invalidate(enterprise_id, PAGE_PRODUCTS, PAGE_STOREFRONT)


def get_product(product_id: int, enterprise_id: int) -> Product:
    return get_owned_or_404(Product, product_id, enterprise_id, label="Product")


def _search_filter(term: str):
    return (
        Product.name.icontains(term, autoescape=True)
        | Product.description.icontains(term, autoescape=True)
        | Product.category.icontains(term, autoescape=True)
    )


def list_products(
    enterprise_id: int,
    *,
    search: str | None = None,
    category: str | None = None,
    supplier_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped product listing with optional filters and pagination.

    Returns:
        Dict with 'items', 'count', 'total_stock_value_cents' and
        pagination metadata if paginated.
    """
    query = scoped_query(Product, enterprise_id)

    if search and search.strip():
        query = query.filter(_search_filter(search.strip()))
    if category and category.strip():
        query = query.filter(func.lower(Product.category) == category.strip().lower())
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)

    # Negative stock counts as zero value
    on_hand = case((Product.quantity_in_stock > 0, Product.quantity_in_stock), else_=0)
    total_stock_value = query.with_entities(
        func.coalesce(func.sum(on_hand * Product.sale_price_cents), 0)
    ).scalar()

    query = query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
            "total_stock_value_cents": int(total_stock_value or 0),
        }

    page = max(1, page)
    per_page = min(max(1, per_page or DEFAULT_PER_PAGE), MAX_PER_PAGE)
    total = query.count()
    products = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "total_stock_value_cents": int(total_stock_value or 0),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "pages": (total + per_page - 1) // per_page,
        },
    }


def list_products_for_store(enterprise_id: int, search: str | None = None) -> list[Product]:
    """
    Public storefront listing: only products published for sale.
    Name search is case-insensitive substring.
    """
    require_active_enterprise(enterprise_id)
    query = scoped_query(Product, enterprise_id).filter(Product.publish_for_sale.is_(True))
    if search and search.strip():
        query = query.filter(Product.name.icontains(search.strip(), autoescape=True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def list_categories(enterprise_id: int) -> list[str]:
    """Distinct non-empty categories, trimmed and sorted."""
    rows = (
        scoped_query(Product, enterprise_id)
        .with_entities(Product.category)
        .filter(Product.category.isnot(None))
        .distinct()
        .all()
    )
    categories = {row[0].strip() for row in rows if row[0] and row[0].strip()}
    return sorted(categories, key=lambda c: (c.lower(), c))
