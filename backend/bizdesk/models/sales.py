from __future__ import annotations

from ..extensions import db
from bizdesk.time_utils import to_utc_z


SALE_STATUS_PENDING = "pending"
SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_CANCELLED = "cancelled"
SALE_STATUSES = (SALE_STATUS_PENDING, SALE_STATUS_COMPLETED, SALE_STATUS_CANCELLED)

PAYMENT_METHODS = ("cash", "credit_card", "debit_card", "pix", "bank_transfer")

BUDGET_STATUS_OFFERED = "offered"
BUDGET_STATUS_SOLD = "sold"
BUDGET_STATUS_CANCELED = "canceled"
BUDGET_STATUS_EXPIRED = "expired"
BUDGET_STATUSES = (
    BUDGET_STATUS_OFFERED,
    BUDGET_STATUS_SOLD,
    BUDGET_STATUS_CANCELED,
    BUDGET_STATUS_EXPIRED,
)
# Older clients send the quote vocabulary; map it onto the lifecycle above.
BUDGET_STATUS_ALIASES = {
    "accepted": BUDGET_STATUS_SOLD,
    "rejected": BUDGET_STATUS_CANCELED,
    "cancelled": BUDGET_STATUS_CANCELED,
}


class Sale(db.Model):
    """
    Sale document.

    items is a JSON snapshot (name and price at time of sale) for display;
    SaleItem rows are what cancellation reads to restore stock.
    Once status is cancelled the sale is frozen until deleted.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_enterprise_created", "enterprise_id", "created_at"),
        db.Index("ix_sales_enterprise_status", "enterprise_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enterprise_id = db.Column(db.Integer, db.ForeignKey("enterprises.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    budget_id = db.Column(db.Integer, db.ForeignKey("budgets.id", ondelete="SET NULL"), nullable=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    client = db.relationship("Client")
    sale_items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} status={self.status} total_cents={self.total_cents}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "enterprise_id": self.enterprise_id,
            "client_id": self.client_id,
            "client": self.client.to_summary() if self.client else None,
            "budget_id": self.budget_id,
            "items": self.items or [],
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }
        if include_items:
            data["sale_items"] = [item.to_dict() for item in self.sale_items]
        return data


class SaleItem(db.Model):
    """
    Sale line. product_id has no foreign key so a sale keeps its lines
    even after the product is deleted; cancellation then reports the
    missing product instead of silently skipping it.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.Index("ix_sale_items_sale", "sale_id"),
        db.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


class Budget(db.Model):
    """Price quote. Never touches stock; may be converted into a Sale."""
    __tablename__ = "budgets"
    __table_args__ = (
        db.Index("ix_budgets_enterprise_created", "enterprise_id", "created_at"),
        db.Index("ix_budgets_enterprise_status", "enterprise_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enterprise_id = db.Column(db.Integer, db.ForeignKey("enterprises.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_cents = db.Column(db.Integer, nullable=False)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=BUDGET_STATUS_OFFERED)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    client = db.relationship("Client")

    def __repr__(self) -> str:
        return f"<Budget id={self.id} status={self.status} total_cents={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enterprise_id": self.enterprise_id,
            "client_id": self.client_id,
            "client": self.client.to_summary() if self.client else None,
            "items": self.items or [],
            "total_cents": self.total_cents,
            "valid_until": to_utc_z(self.valid_until),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
