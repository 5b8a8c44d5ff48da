from __future__ import annotations

from ..extensions import db
from restobill.time_utils import to_utc_z, utcnow


def _money(value) -> str | None:
    return None if value is None else str(value)


class Invoice(db.Model):
    """
    Tax invoice issued from one of the restaurant's own orders.

    Invoice numbers are unique within a restaurant, not globally: the
    (restaurant_id, invoice_number) constraint is the guard against duplicate
    numbers under concurrent creation.

    Restaurant and customer fields are snapshots taken at creation time.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "invoice_number", name="uq_invoices_restaurant_number"),
        db.Index("ix_invoices_restaurant_date", "restaurant_id", "invoice_date"),
        db.Index("ix_invoices_restaurant_payment_status", "restaurant_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    # Customer snapshot
    customer_name = db.Column(db.String(255), nullable=False, default="Walk-in Customer")
    customer_phone = db.Column(db.String(32), nullable=False, default="")
    customer_email = db.Column(db.String(255), nullable=False, default="")
    customer_gstin = db.Column(db.String(32), nullable=False, default="")

    # Restaurant snapshot
    restaurant_name = db.Column(db.String(255), nullable=False)
    restaurant_address = db.Column(db.String(512), nullable=False, default="")
    restaurant_phone = db.Column(db.String(32), nullable=False, default="")
    restaurant_email = db.Column(db.String(255), nullable=False, default="")
    restaurant_gst_number = db.Column(db.String(32), nullable=False, default="")
    restaurant_logo_url = db.Column(db.String(512), nullable=False, default="")

    # Amounts (INR, Decimal)
    subtotal = db.Column(db.Numeric(14, 4), nullable=False)
    discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    discount_percentage = db.Column(db.Numeric(7, 4), nullable=False, default=0)
    is_inter_state = db.Column(db.Boolean, nullable=False, default=False)
    cgst_rate = db.Column(db.Numeric(7, 4), nullable=False, default=0)
    cgst_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    sgst_rate = db.Column(db.Numeric(7, 4), nullable=False, default=0)
    sgst_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    igst_rate = db.Column(db.Numeric(7, 4), nullable=False, default=0)
    igst_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total_tax = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(14, 4), nullable=False)
    round_off = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 4), nullable=False)

    # Payment
    payment_method = db.Column(db.String(16), nullable=False, default="pending")
    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    paid_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    # UPI collect link (only while unpaid/partial)
    upi_id = db.Column(db.String(128), nullable=False, default="")
    qr_payload = db.Column(db.String(1024), nullable=False, default="")

    table_number = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=False, default="")
    terms_and_conditions = db.Column(db.Text, nullable=False, default="")

    email_sent = db.Column(db.Boolean, nullable=False, default=False)
    email_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    restaurant = db.relationship("Restaurant", backref=db.backref("invoices", lazy=True))
    order = db.relationship("Order")
    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        order_by="InvoiceLine.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} restaurant_id={self.restaurant_id} number={self.invoice_number}>"

    def tax_details(self) -> dict:
        return {
            "cgst": {"rate": _money(self.cgst_rate), "amount": _money(self.cgst_amount)},
            "sgst": {"rate": _money(self.sgst_rate), "amount": _money(self.sgst_amount)},
            "igst": {"rate": _money(self.igst_rate), "amount": _money(self.igst_amount)},
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "order_id": self.order_id,
            "invoice_number": self.invoice_number,
            "customer": {
                "name": self.customer_name,
                "phone": self.customer_phone,
                "email": self.customer_email,
                "gstin": self.customer_gstin,
            },
            "restaurant": {
                "name": self.restaurant_name,
                "address": self.restaurant_address,
                "phone": self.restaurant_phone,
                "email": self.restaurant_email,
                "gst_number": self.restaurant_gst_number,
                "logo_url": self.restaurant_logo_url,
            },
            "items": [line.to_dict() for line in self.lines],
            "subtotal": _money(self.subtotal),
            "discount": _money(self.discount),
            "discount_percentage": _money(self.discount_percentage),
            "is_inter_state": self.is_inter_state,
            "tax_details": self.tax_details(),
            "total_tax": _money(self.total_tax),
            "total_amount": _money(self.total_amount),
            "round_off": _money(self.round_off),
            "grand_total": _money(self.grand_total),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "paid_amount": _money(self.paid_amount),
            "upi_id": self.upi_id,
            "qr_payload": self.qr_payload,
            "table_number": self.table_number,
            "notes": self.notes,
            "terms_and_conditions": self.terms_and_conditions,
            "email_sent": self.email_sent,
            "email_sent_at": to_utc_z(self.email_sent_at),
            "invoice_date": to_utc_z(self.invoice_date),
            "due_date": to_utc_z(self.due_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class InvoiceLine(db.Model):
    """Line item copied from the order when the invoice was issued."""
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)
    line_amount = db.Column(db.Numeric(14, 4), nullable=False)
    tax_code = db.Column(db.String(16), nullable=False, default="996331")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "line_amount": _money(self.line_amount),
            "tax_code": self.tax_code,
        }
