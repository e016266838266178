# Overview: Line-item parsing shared by sales and budgets.

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..validation import MAX_PRICE_CENTS, require_non_negative_int, require_positive_int


def normalize_line_items(raw_items, *, max_items: int = 200) -> list[dict]:
    """
    Validate a list of {product_id, quantity, unit_price_cents[, product_name]}
    and compute each line total on the server. Any client-sent line total
    is ignored.
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")
    if len(raw_items) > max_items:
        raise ValidationError(f"items cannot have more than {max_items} entries")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        product_id = require_positive_int(f"items[{index}].product_id", raw.get("product_id"))
        quantity = require_positive_int(f"items[{index}].quantity", raw.get("quantity"))
        unit_price = require_non_negative_int(
            f"items[{index}].unit_price_cents", raw.get("unit_price_cents")
        )
        if unit_price > MAX_PRICE_CENTS:
            raise ValidationError(f"items[{index}].unit_price_cents cannot exceed {MAX_PRICE_CENTS}")

        name = raw.get("product_name")
        items.append({
            "product_id": product_id,
            "product_name": str(name).strip()[:255] if name else None,
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "total_price_cents": unit_price * quantity,
        })
    return items


def items_total(items: list[dict]) -> int:
    return sum(item["unit_price_cents"] * item["quantity"] for item in items)


def load_products(enterprise_id: int, product_ids) -> dict[int, Product]:
    """
    Fetch the tenant's products by id. A missing or foreign id raises
    NotFoundError listing every unknown id.
    """
    ids = set(product_ids)
    products = (
        db.session.query(Product)
        .filter(Product.enterprise_id == enterprise_id, Product.id.in_(ids))
        .all()
    )
    by_id = {p.id: p for p in products}
    missing = sorted(ids - set(by_id))
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})
    return by_id


def fill_product_names(items: list[dict], products: dict[int, Product]) -> None:
    for item in items:
        if not item["product_name"]:
            item["product_name"] = products[item["product_id"]].name
