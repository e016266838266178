from __future__ import annotations

from ..extensions import db
from bizdesk.time_utils import to_utc_z


class Enterprise(db.Model):
    """
    Multi-tenant root: every business account is an Enterprise.

    All products, suppliers, clients, budgets, sales and stock movements
    carry an enterprise_id and every query filters on it.
    """
    __tablename__ = "enterprises"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Address / contact profile shown on budgets and the storefront
    cep = db.Column(db.String(16), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    number = db.Column(db.String(16), nullable=True)
    complement = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    instagram_url = db.Column(db.String(512), nullable=True)
    phone_number = db.Column(db.String(32), nullable=True)
    register = db.Column(db.String(32), nullable=True)  # CNPJ / CPF
    avatar_image_url = db.Column(db.String(1024), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Enterprise id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "cep": self.cep,
            "address": self.address,
            "number": self.number,
            "complement": self.complement,
            "city": self.city,
            "state": self.state,
            "instagram_url": self.instagram_url,
            "phone_number": self.phone_number,
            "register": self.register,
            "avatar_image_url": self.avatar_image_url,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
