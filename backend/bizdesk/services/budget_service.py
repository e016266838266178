# Overview: Service-layer operations for budgets (price quotes).

"""
Budget Service

A budget is a quote: it has no effect on stock. Its total is always
computed here from the lines, whatever the caller sends.

Clients are resolved by phone when a budget comes with inline client data,
so repeat customers are reused instead of duplicated.

Budgets can be exported as a printable PDF quote (reportlab).

STATUSES: offered -> sold | canceled | expired
The older quote vocabulary (accepted / rejected) is accepted as input and
stored as sold / canceled.
"""

from __future__ import annotations

from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import update

from ..errors import ValidationError
from ..extensions import db
from ..models import Budget, Client, Enterprise, Sale
from ..models.sales import (
    BUDGET_STATUS_ALIASES,
    BUDGET_STATUS_EXPIRED,
    BUDGET_STATUS_OFFERED,
    BUDGET_STATUSES,
)
from ..validation import parse_datetime_field, require_choice, require_positive_int
from bizdesk.time_utils import days_from_now, utcnow
from .client_service import find_or_create_client_by_phone
from .concurrency import atomic
from .invalidation_service import (
    PAGE_BUDGETS,
    PAGE_CLIENTS,
    PAGE_STOREFRONT_CART,
    invalidate,
)
from .line_items import fill_product_names, items_total, load_products, normalize_line_items
from .tenant_service import get_owned_or_404, require_active_enterprise, scoped_query


def _status(value) -> str:
    return require_choice("status", value, BUDGET_STATUSES, aliases=BUDGET_STATUS_ALIASES)


def _resolve_client(enterprise_id: int, payload: dict) -> Client:
    if payload.get("client_id") is not None:
        client_id = require_positive_int("client_id", payload.get("client_id"))
        return get_owned_or_404(Client, client_id, enterprise_id, label="Client")

    inline = payload.get("client")
    if isinstance(inline, dict):
        return find_or_create_client_by_phone(
            enterprise_id,
            inline.get("name"),
            inline.get("phone_number") or inline.get("phone"),
        )
    raise ValidationError("client_id or client {name, phone_number} is required")


def upsert_budget(enterprise_id: int, payload: dict) -> tuple[Budget, bool]:
    """
    Create a budget (no id) or replace an existing one's fields.

    Returns (budget, created).
    """
    payload = payload or {}
    budget_id = payload.get("id")
    items = normalize_line_items(payload.get("items"))

    valid_until = None
    if payload.get("valid_until") not in (None, ""):
        valid_until = parse_datetime_field("valid_until", payload.get("valid_until"))
    elif budget_id is None:
        raise ValidationError("valid_until is required")
    status = _status(payload.get("status")) if payload.get("status") is not None else None

    with atomic():
        if budget_id is not None:
            budget = get_owned_or_404(
                Budget, require_positive_int("id", budget_id), enterprise_id,
                label="Budget", lock=True,
            )
        client = _resolve_client(enterprise_id, payload)
        products = load_products(enterprise_id, (item["product_id"] for item in items))
        fill_product_names(items, products)

        if budget_id is None:
            budget = Budget(enterprise_id=enterprise_id, status=BUDGET_STATUS_OFFERED)
            db.session.add(budget)

        budget.client_id = client.id
        budget.items = items
        budget.total_cents = items_total(items)
        if valid_until is not None:
            budget.valid_until = valid_until
        if status is not None:
            budget.status = status
        budget.updated_at = utcnow()

    invalidate(enterprise_id, PAGE_BUDGETS, PAGE_CLIENTS)
    return budget, budget_id is None


def create_budget_from_cart(
    enterprise_id: int,
    cart_items,
    client_name: str,
    client_phone: str,
) -> Budget:
    """
    Storefront checkout: turn a visitor's cart into an offered budget.

    Names and prices come from the product rows, never from the cart.
    Only products published for sale can be quoted. Validity is
    BUDGET_DEFAULT_VALIDITY_DAYS (30) days from now.
    """
    require_active_enterprise(enterprise_id)

    if not isinstance(cart_items, list) or not cart_items:
        raise ValidationError("Cart is empty")

    quantities: dict[int, int] = {}
    for index, raw in enumerate(cart_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        product_id = require_positive_int(
            f"items[{index}].product_id", raw.get("product_id", raw.get("id"))
        )
        quantity = require_positive_int(f"items[{index}].quantity", raw.get("quantity"))
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    with atomic():
        products = load_products(enterprise_id, quantities.keys())
        unpublished = sorted(pid for pid, p in products.items() if not p.publish_for_sale)
        if unpublished:
            raise ValidationError(
                "Some products are not available for sale",
                details={"product_ids": unpublished},
            )

        items = [
            {
                "product_id": product_id,
                "product_name": products[product_id].name,
                "quantity": quantity,
                "unit_price_cents": products[product_id].sale_price_cents,
                "total_price_cents": products[product_id].sale_price_cents * quantity,
            }
            for product_id, quantity in quantities.items()
        ]

        client = find_or_create_client_by_phone(enterprise_id, client_name, client_phone)
        validity_days = current_app.config.get("BUDGET_DEFAULT_VALIDITY_DAYS", 30)

        budget = Budget(
            enterprise_id=enterprise_id,
            client_id=client.id,
            items=items,
            total_cents=items_total(items),
            valid_until=days_from_now(validity_days),
            status=BUDGET_STATUS_OFFERED,
        )
        db.session.add(budget)

    current_app.logger.info(
        "Storefront budget %s created for enterprise %s (%s items)",
        budget.id, enterprise_id, len(items),
    )
    invalidate(enterprise_id, PAGE_BUDGETS, PAGE_CLIENTS, PAGE_STOREFRONT_CART)
    return budget


def update_budget_status(budget_id: int, enterprise_id: int, status) -> Budget:
    budget = get_owned_or_404(Budget, budget_id, enterprise_id, label="Budget")
    budget.status = _status(status)
    budget.updated_at = utcnow()
    db.session.commit()
    invalidate(enterprise_id, PAGE_BUDGETS)
    return budget


def delete_budget(budget_id: int, enterprise_id: int) -> None:
    """Budgets can be deleted in any status; they never moved stock."""
    budget = get_owned_or_404(Budget, budget_id, enterprise_id, label="Budget")
    db.session.execute(
        update(Sale).where(Sale.budget_id == budget.id).values(budget_id=None),
        execution_options={"synchronize_session": "evaluate"},
    )
    db.session.delete(budget)
    db.session.commit()
    invalidate(enterprise_id, PAGE_BUDGETS)


def get_budget(budget_id: int, enterprise_id: int) -> Budget:
    return get_owned_or_404(Budget, budget_id, enterprise_id, label="Budget")


def list_budgets(enterprise_id: int, status: str | None = None) -> list[Budget]:
    query = scoped_query(Budget, enterprise_id)
    if status:
        query = query.filter(Budget.status == _status(status))
    return query.order_by(Budget.created_at.desc(), Budget.id.desc()).all()


def expire_overdue_budgets(enterprise_id: int | None = None, now: datetime | None = None) -> int:
    """Mark offered budgets past valid_until as expired. Returns the count."""
    now = now or utcnow()
    query = db.session.query(Budget).filter(
        Budget.status == BUDGET_STATUS_OFFERED,
        Budget.valid_until < now,
    )
    if enterprise_id is not None:
        query = query.filter(Budget.enterprise_id == enterprise_id)

    budgets = query.all()
    for budget in budgets:
        budget.status = BUDGET_STATUS_EXPIRED
        budget.updated_at = now
    db.session.commit()

    for touched in sorted({b.enterprise_id for b in budgets}):
        invalidate(touched, PAGE_BUDGETS)
    return len(budgets)


BUDGET_STATUS_LABELS = {
    "offered": "Ofertado",
    "sold": "Vendido",
    "canceled": "Cancelado",
    "expired": "Expirado",
}


def _money(cents) -> str:
    """1234567 -> 'R$ 12.345,67'"""
    value = f"{(cents or 0) / 100:,.2f}"
    return "R$ " + value.replace(",", "_").replace(".", ",").replace("_", ".")


def _phone(value) -> str:
    digits = "".join(ch for ch in str(value or "") if ch.isdigit())
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return str(value or "")


def _date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def budget_pdf_filename(budget: Budget) -> str:
    client_name = budget.client.name if budget.client else "cliente"
    return f"orcamento_{budget.id:06d}_{'_'.join(client_name.split())}.pdf"


def export_budget_pdf(budget_id: int, enterprise_id: int) -> BytesIO:
    """
    Render a budget as a printable PDF quote.

    Layout: enterprise header (name, address, phone, register), budget code
    and dates, client block, item table, subtotal and status.

    Raises:
        NotFoundError: budget missing or owned by another enterprise
    """
    budget = get_owned_or_404(Budget, budget_id, enterprise_id, label="Budget")
    enterprise = db.session.get(Enterprise, enterprise_id)
    client = budget.client

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        topMargin=0.6 * inch,
        bottomMargin=0.6 * inch,
        title=f"Orçamento #{budget.id:06d}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("BudgetTitle", parent=styles["Heading1"], alignment=TA_CENTER)
    center_style = ParagraphStyle("BudgetCenter", parent=styles["Normal"], alignment=TA_CENTER, fontSize=10)
    heading_style = ParagraphStyle("BudgetHeading", parent=styles["Heading3"], spaceBefore=10)
    normal_style = styles["Normal"]
    footer_style = ParagraphStyle(
        "BudgetFooter", parent=styles["Italic"], alignment=TA_CENTER, fontSize=8, textColor=colors.grey
    )

    elements = [Paragraph(escape(enterprise.name), title_style)]

    address = ", ".join(part for part in (enterprise.address, enterprise.number, enterprise.complement) if part)
    location = " - ".join(part for part in (enterprise.city, enterprise.state) if part)
    for line in (
        address,
        location,
        f"Tel: {_phone(enterprise.phone_number)}" if enterprise.phone_number else "",
        f"CNPJ: {enterprise.register}" if enterprise.register else "",
    ):
        if line:
            elements.append(Paragraph(escape(line), center_style))
    elements.append(Spacer(1, 0.25 * inch))

    elements.append(Paragraph("ORÇAMENTO", title_style))
    elements.append(Paragraph(f"Código: #{budget.id:06d}", normal_style))
    elements.append(Paragraph(f"Data: {_date(budget.created_at)}", normal_style))
    elements.append(Paragraph(f"Válido até: {_date(budget.valid_until)}", normal_style))

    elements.append(Paragraph("DADOS DO CLIENTE", heading_style))
    elements.append(Paragraph(f"Nome: {escape(client.name)}", normal_style))
    elements.append(Paragraph(f"Telefone: {escape(_phone(client.phone_number))}", normal_style))

    elements.append(Paragraph("ITENS DO ORÇAMENTO", heading_style))
    rows = [["Produto", "Qtd", "Preço Unit.", "Total"]]
    for item in budget.items or []:
        unit = item.get("unit_price_cents") or 0
        quantity = item.get("quantity") or 0
        rows.append([
            Paragraph(escape(item.get("product_name") or f"Produto {item.get('product_id')}"), normal_style),
            str(quantity),
            _money(unit),
            _money(item.get("total_price_cents", unit * quantity)),
        ])
    rows.append(["", "", "SUBTOTAL:", _money(budget.total_cents)])

    table = Table(rows, colWidths=[3.2 * inch, 0.7 * inch, 1.3 * inch, 1.3 * inch], repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.grey),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LINEABOVE", (0, -1), (-1, -1), 1, colors.black),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 0.2 * inch))

    status = BUDGET_STATUS_LABELS.get(budget.status, budget.status)
    elements.append(Paragraph(f"Status: {escape(status)}", normal_style))
    elements.append(Spacer(1, 0.4 * inch))
    elements.append(Paragraph("Este orçamento é válido conforme prazo estabelecido.", footer_style))
    elements.append(Paragraph("Para mais informações, entre em contato conosco.", footer_style))

    doc.build(elements)
    buffer.seek(0)

    current_app.logger.info("Budget %s exported as PDF for enterprise %s", budget.id, enterprise_id)
    return buffer
