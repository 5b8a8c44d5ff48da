from __future__ import annotations

from ..extensions import db
from restobill.time_utils import to_utc_z


class Restaurant(db.Model):
    """
    Tenant root: every billing record belongs to exactly one restaurant.

    The billing core never owns the restaurant lifecycle; it only reads the
    identity fields below and freezes them into invoices at creation time.
    """
    __tablename__ = "restaurants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(512), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)  # supplier GSTIN
    logo_url = db.Column(db.String(512), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Restaurant id={self.id} name={self.name!r}>"

    def snapshot(self) -> dict:
        """Identity fields copied onto an invoice; later profile edits do not touch them."""
        return {
            "name": self.name,
            "address": self.address or "",
            "phone": self.phone or "",
            "email": self.email or "",
            "gst_number": self.gst_number or "",
            "logo_url": self.logo_url or "",
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            **self.snapshot(),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
