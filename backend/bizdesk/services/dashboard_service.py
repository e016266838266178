# Overview: Service-layer aggregations for the stock and sales dashboards.

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Budget, Client, Product, Sale, SaleItem, StockMovement
from ..models.inventory import MOVEMENT_ENTRY
from ..models.sales import SALE_STATUS_CANCELLED
from bizdesk.time_utils import day_key, parse_range_bound, to_utc_z, utcnow


TOP_LIMIT = 10
LIST_LIMIT = 20
EXCESS_WINDOW_DAYS = 30

# Cumulative share of stock value at which a product stops being A / B
ABC_A_LIMIT = 80.0
ABC_B_LIMIT = 95.0


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_range_bound(start)
        end_dt = parse_range_bound(end, end=True)
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 dates")
    if start_dt and end_dt and start_dt > end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def _in_range(query, column, start_dt, end_dt):
    if start_dt:
        query = query.filter(column >= start_dt)
    if end_dt:
        query = query.filter(column <= end_dt)
    return query


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def classify_abc(rows: list[dict]) -> list[dict]:
    """
    ABC classification by cumulative share of total value.

    Rows are sorted by value desc; a product is A while the running share
    (including itself) stays within 80 %, B within 95 %, C after that. The
    first product is always A.
    """
    ordered = sorted(rows, key=lambda r: (-r["total_value_cents"], r["product_id"]))
    total = sum(r["total_value_cents"] for r in ordered)

    result = []
    running = 0
    for index, row in enumerate(ordered):
        running += row["total_value_cents"]
        share = _percent(row["total_value_cents"], total)
        cumulative = _percent(running, total)
        if index == 0 or cumulative <= ABC_A_LIMIT:
            classification = "A"
        elif cumulative <= ABC_B_LIMIT:
            classification = "B"
        else:
            classification = "C"
        result.append({
            **row,
            "percentage": share,
            "cumulative_percentage": cumulative,
            "classification": classification,
        })
    return result


def _bucket_movements(movements, prices: dict[int, int]) -> tuple[list[dict], list[dict]]:
    entries: OrderedDict[str, dict] = OrderedDict()
    exits: OrderedDict[str, dict] = OrderedDict()
    for movement in movements:
        target = entries if movement.movement_type == MOVEMENT_ENTRY else exits
        key = day_key(movement.created_at)
        bucket = target.setdefault(key, {"date": key, "quantity": 0, "value_cents": 0})
        bucket["quantity"] += movement.quantity
        bucket["value_cents"] += movement.quantity * prices.get(movement.product_id, 0)
    return list(entries.values()), list(exits.values())


def stock_dashboard(enterprise_id: int, start: str | None = None, end: str | None = None) -> dict:
    """
    Stock KPIs for one enterprise.

    Values use purchase price (acquisition cost). Movement series and the
    most-moved ranking honour the date range; stock levels are current.
    """
    start_dt, end_dt = _parse_range(start, end)
    threshold = int(current_app.config.get("LOW_STOCK_THRESHOLD", 5))

    products = (
        db.session.query(Product)
        .filter(Product.enterprise_id == enterprise_id)
        .order_by(Product.id.asc())
        .all()
    )
    prices = {p.id: p.purchase_price_cents or 0 for p in products}
    by_id = {p.id: p for p in products}

    total_products = len(products)
    stock_values = {p.id: max(p.quantity_in_stock, 0) * prices[p.id] for p in products}
    total_stock_value = sum(stock_values.values())

    low_stock = [
        {
            "product_id": p.id,
            "name": p.name,
            "category": p.category,
            "current_stock": p.quantity_in_stock,
            "min_stock": threshold,
        }
        for p in sorted(products, key=lambda p: (p.quantity_in_stock, p.id))
        if not p.is_service and p.quantity_in_stock <= threshold
    ][:LIST_LIMIT]

    window_start = utcnow() - timedelta(days=EXCESS_WINDOW_DAYS)
    recent_volume = dict(
        db.session.query(StockMovement.product_id, func.sum(StockMovement.quantity))
        .filter(
            StockMovement.enterprise_id == enterprise_id,
            StockMovement.created_at >= window_start,
        )
        .group_by(StockMovement.product_id)
        .all()
    )
    excess_stock = [
        {
            "product_id": p.id,
            "name": p.name,
            "category": p.category,
            "current_stock": p.quantity_in_stock,
            "avg_daily_movement": round((recent_volume.get(p.id) or 0) / EXCESS_WINDOW_DAYS, 2),
        }
        for p in sorted(products, key=lambda p: (-p.quantity_in_stock, p.id))
        if p.quantity_in_stock > 0 and p.quantity_in_stock > 2 * int(recent_volume.get(p.id) or 0)
    ][:LIST_LIMIT]

    movements_query = db.session.query(StockMovement).filter(
        StockMovement.enterprise_id == enterprise_id
    )
    movements = (
        _in_range(movements_query, StockMovement.created_at, start_dt, end_dt)
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
        .all()
    )
    entries_by_day, exits_by_day = _bucket_movements(movements, prices)

    moved: dict[int, dict] = {}
    for movement in movements:
        row = moved.setdefault(movement.product_id, {
            "product_id": movement.product_id,
            "name": by_id[movement.product_id].name if movement.product_id in by_id else "unknown",
            "category": by_id[movement.product_id].category if movement.product_id in by_id else None,
            "total_movements": 0,
            "entries": 0,
            "exits": 0,
        })
        row["total_movements"] += movement.quantity
        if movement.movement_type == MOVEMENT_ENTRY:
            row["entries"] += movement.quantity
        else:
            row["exits"] += movement.quantity
    most_moved = sorted(moved.values(), key=lambda r: (-r["total_movements"], r["product_id"]))[:LIST_LIMIT]

    abc = classify_abc([
        {
            "product_id": p.id,
            "name": p.name,
            "category": p.category,
            "total_value_cents": stock_values[p.id],
        }
        for p in products
    ])

    exits_value = sum(row["value_cents"] for row in exits_by_day)

    return {
        "range": {"start": to_utc_z(start_dt), "end": to_utc_z(end_dt)},
        "total_products": total_products,
        "total_quantity": sum(max(p.quantity_in_stock, 0) for p in products),
        "total_stock_value_cents": total_stock_value,
        "average_stock_value_cents": round(total_stock_value / total_products) if total_products else 0,
        "low_stock": low_stock,
        "excess_stock": excess_stock,
        "entries_by_day": entries_by_day,
        "exits_by_day": exits_by_day,
        "most_moved_products": most_moved,
        "abc_analysis": abc,
        "stock_turnover_rate": _percent(exits_value, total_stock_value),
    }


def sales_dashboard(enterprise_id: int, start: str | None = None, end: str | None = None) -> dict:
    """Sales KPIs for one enterprise. Cancelled sales are excluded everywhere."""
    start_dt, end_dt = _parse_range(start, end)

    sales_query = db.session.query(Sale).filter(
        Sale.enterprise_id == enterprise_id,
        Sale.status != SALE_STATUS_CANCELLED,
    )
    sales = (
        _in_range(sales_query, Sale.created_at, start_dt, end_dt)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )
    sale_ids = [s.id for s in sales]

    revenue = sum(s.total_cents for s in sales)
    count = len(sales)

    revenue_by_day: OrderedDict[str, dict] = OrderedDict()
    payment_methods: dict[str, dict] = {}
    clients: dict[int, dict] = {}
    for sale in sales:
        key = day_key(sale.created_at)
        revenue_by_day.setdefault(key, {"date": key, "total_cents": 0})["total_cents"] += sale.total_cents

        method = payment_methods.setdefault(
            sale.payment_method, {"method": sale.payment_method, "count": 0, "total_cents": 0}
        )
        method["count"] += 1
        method["total_cents"] += sale.total_cents

        client = clients.setdefault(sale.client_id, {
            "client_id": sale.client_id,
            "name": None,
            "total_spent_cents": 0,
            "orders": 0,
        })
        client["total_spent_cents"] += sale.total_cents
        client["orders"] += 1

    if clients:
        names = dict(
            db.session.query(Client.id, Client.name).filter(Client.id.in_(list(clients))).all()
        )
        for client_id, row in clients.items():
            row["name"] = names.get(client_id, "unknown")

    top_products = []
    margin = 0
    if sale_ids:
        product_rows = (
            db.session.query(
                SaleItem.product_id,
                func.sum(SaleItem.quantity).label("qty"),
                func.sum(SaleItem.total_price_cents).label("total"),
            )
            .filter(SaleItem.sale_id.in_(sale_ids))
            .group_by(SaleItem.product_id)
            .all()
        )
        products = {
            p.id: p
            for p in db.session.query(Product).filter(
                Product.enterprise_id == enterprise_id,
                Product.id.in_([row.product_id for row in product_rows]),
            )
        }
        for row in product_rows:
            product = products.get(row.product_id)
            cost = (product.purchase_price_cents or 0) if product else 0
            margin += int(row.total or 0) - cost * int(row.qty or 0)
            top_products.append({
                "product_id": row.product_id,
                "name": product.name if product else "unknown",
                "category": product.category if product else None,
                "qty": int(row.qty or 0),
                "total_value_cents": int(row.total or 0),
            })

    budgets_query = db.session.query(func.count(Budget.id)).filter(Budget.enterprise_id == enterprise_id)
    budgets_count = _in_range(budgets_query, Budget.created_at, start_dt, end_dt).scalar() or 0
    # Budgets created in range that ended up in a live sale, whenever it happened
    converted_query = (
        db.session.query(func.count(func.distinct(Budget.id)))
        .join(Sale, Sale.budget_id == Budget.id)
        .filter(
            Budget.enterprise_id == enterprise_id,
            Sale.enterprise_id == enterprise_id,
            Sale.status != SALE_STATUS_CANCELLED,
        )
    )
    converted = _in_range(converted_query, Budget.created_at, start_dt, end_dt).scalar() or 0

    return {
        "range": {"start": to_utc_z(start_dt), "end": to_utc_z(end_dt)},
        "total_revenue_cents": revenue,
        "total_sales_count": count,
        "average_ticket_cents": round(revenue / count) if count else 0,
        "estimated_gross_margin_cents": margin,
        "revenue_by_day": list(revenue_by_day.values()),
        "payment_methods": sorted(payment_methods.values(), key=lambda r: (-r["total_cents"], r["method"])),
        "top_products_by_volume": sorted(top_products, key=lambda r: (-r["qty"], r["product_id"]))[:TOP_LIMIT],
        "top_products_by_value": sorted(
            top_products, key=lambda r: (-r["total_value_cents"], r["product_id"])
        )[:TOP_LIMIT],
        "top_clients": sorted(
            clients.values(), key=lambda r: (-r["total_spent_cents"], r["client_id"])
        )[:TOP_LIMIT],
        "budget_conversion": {
            "budgets_count": budgets_count,
            "converted_to_sales": converted,
            "conversion_rate": _percent(converted, budgets_count),
        },
    }
