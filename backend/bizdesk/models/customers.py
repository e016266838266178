from __future__ import annotations

from ..extensions import db
from bizdesk.time_utils import to_utc_z


class Client(db.Model):
    """
    Customer directory entry.

    phone_number holds digits only and is unique per enterprise, which is
    what lets budget checkout reuse a client by phone.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("enterprise_id", "phone_number", name="uq_clients_enterprise_phone"),
        db.Index("ix_clients_enterprise_name", "enterprise_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    enterprise_id = db.Column(db.Integer, db.ForeignKey("enterprises.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    phone_number = db.Column(db.String(20), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Client id={self.id} name={self.name!r} phone={self.phone_number!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "phone_number": self.phone_number}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "enterprise_id": self.enterprise_id,
            "name": self.name,
            "phone_number": self.phone_number,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
