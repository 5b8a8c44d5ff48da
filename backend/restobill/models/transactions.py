from __future__ import annotations

from ..extensions import db
from restobill.time_utils import to_utc_z, utcnow


class Transaction(db.Model):
    """
    Ledger-adjacent money movement for a restaurant account: invoice
    payments, refunds and subscription charges.

    Append-only apart from the status flip to `refunded`. A REFUND row
    references the row it reverses through `meta["original_transaction_id"]`.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_transactions_transaction_id"),
        db.Index("ix_transactions_restaurant_created", "restaurant_id", "created_at"),
        db.Index("ix_transactions_status_type", "status", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)  # PAYMENT, REFUND, SUBSCRIPTION, UPGRADE, DOWNGRADE
    amount = db.Column(db.Numeric(14, 4), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, completed, failed, refunded
    payment_method = db.Column(db.String(16), nullable=False, default="UPI")
    transaction_id = db.Column(db.String(128), nullable=False)
    payment_proof_id = db.Column(db.Integer, nullable=True)
    plan = db.Column(db.String(32), nullable=True)
    description = db.Column(db.String(512), nullable=True)
    meta = db.Column(db.JSON, nullable=False, default=dict)
    refund_reason = db.Column(db.String(255), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_by = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    restaurant = db.relationship("Restaurant", backref=db.backref("transactions", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "type": self.type,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
            "payment_proof_id": self.payment_proof_id,
            "plan": self.plan,
            "description": self.description,
            "metadata": dict(self.meta or {}),
            "refund_reason": self.refund_reason,
            "refunded_at": to_utc_z(self.refunded_at),
            "processed_by": self.processed_by,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
