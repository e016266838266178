from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from bizdesk.time_utils import to_utc_z


STOCK_STATUS_IN_STOCK = "in_stock"
STOCK_STATUS_OUT_OF_STOCK = "out_of_stock"

MOVEMENT_ENTRY = "entry"
MOVEMENT_EXIT = "exit"
MOVEMENT_TYPES = (MOVEMENT_ENTRY, MOVEMENT_EXIT)


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_enterprise_name", "enterprise_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enterprise_id = db.Column(db.Integer, db.ForeignKey("enterprises.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r} enterprise_id={self.enterprise_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enterprise_id": self.enterprise_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product / service catalog entry.

    STOCK PROJECTION: quantity_in_stock and stock_status are a materialized
    view of the StockMovement log. Only stock_ledger_service writes them, and
    always with a single atomic UPDATE expression. Catalog create/update
    never assigns them directly.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_enterprise_name", "enterprise_id", "name"),
        db.Index("ix_products_enterprise_publish", "enterprise_id", "publish_for_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enterprise_id = db.Column(db.Integer, db.ForeignKey("enterprises.id"), nullable=False, index=True)
    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True)
    code = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)

    publish_for_sale = db.Column(db.Boolean, nullable=False, default=False)
    is_service = db.Column(db.Boolean, nullable=False, default=False)

    # Authoritative storage in cents
    purchase_price_cents = db.Column(db.Integer, nullable=True)
    sale_price_cents = db.Column(db.Integer, nullable=False)

    quantity_in_stock = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    stock_status = db.Column(
        db.String(16),
        nullable=False,
        default=STOCK_STATUS_OUT_OF_STOCK,
        server_default=STOCK_STATUS_OUT_OF_STOCK,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True, passive_deletes=True))

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} name={self.name!r} qty={self.quantity_in_stock} "
            f"enterprise_id={self.enterprise_id}>"
        )

    @property
    def stock_value_cents(self) -> int:
        return max(self.quantity_in_stock or 0, 0) * (self.sale_price_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enterprise_id": self.enterprise_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "code": self.code,
            "image_url": self.image_url,
            "publish_for_sale": self.publish_for_sale,
            "is_service": self.is_service,
            "purchase_price_cents": self.purchase_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "quantity_in_stock": self.quantity_in_stock,
            "stock_status": self.stock_status,
            "stock_value_cents": self.stock_value_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_store_dict(self) -> dict:
        """Public storefront view: no cost price, no supplier."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "image_url": self.image_url,
            "sale_price_cents": self.sale_price_cents,
            "stock_status": self.stock_status,
            "is_service": self.is_service,
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    product_id is deliberately a plain indexed column without a foreign key:
    the history of a product must outlive the product row itself.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_enterprise_created", "enterprise_id", "created_at"),
        db.Index("ix_stock_movements_product", "product_id"),
        db.CheckConstraint("quantity >= 1", name="ck_stock_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enterprise_id = db.Column(db.Integer, db.ForeignKey("enterprises.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)

    movement_type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<StockMovement id={self.id} product_id={self.product_id} "
            f"{self.movement_type} {self.quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enterprise_id": self.enterprise_id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovementImmutableError(RuntimeError):
    """Raised when code tries to rewrite or remove ledger history."""


@event.listens_for(StockMovement, "before_update")
def _block_movement_update(mapper, connection, target):
    raise StockMovementImmutableError(
        f"StockMovement {target.id} is append-only and cannot be updated"
    )


@event.listens_for(StockMovement, "before_delete")
def _block_movement_delete(mapper, connection, target):
    raise StockMovementImmutableError(
        f"StockMovement {target.id} is append-only and cannot be deleted"
    )
