from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from restobill.time_utils import to_utc_z, utcnow, days_until


# Usage counter column -> plan limit column
USAGE_LIMIT_COLUMNS = {
    "restaurants_count": "max_restaurants",
    "orders_this_month": "max_orders",
    "staff_count": "max_staff",
    "tables_count": "max_tables",
    "menu_items_count": "max_menu_items",
}

UNLIMITED = -1


class Subscription(db.Model):
    """
    One subscription per restaurant: plan, lifecycle status, trial window,
    billing period, usage counters and the plan's limits/features.

    Status and the time-dependent truth ("is it usable right now?") are kept
    apart: only `status` is stored, the access predicates below are computed
    at read time from the stored dates.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", name="uq_subscriptions_restaurant"),
        db.Index("ix_subscriptions_status_period_end", "status", "current_period_end"),
        db.Index("ix_subscriptions_trial", "trial_active", "trial_end"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False)

    plan = db.Column(db.String(32), nullable=False, default="free_trial", index=True)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    # Trial window
    trial_start = db.Column(db.DateTime(timezone=True), nullable=True)
    trial_end = db.Column(db.DateTime(timezone=True), nullable=True)
    trial_active = db.Column(db.Boolean, nullable=False, default=True)

    # Billing period
    current_period_start = db.Column(db.DateTime(timezone=True), nullable=False)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=False)
    billing_cycle = db.Column(db.String(16), nullable=False, default="monthly")
    amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    payment_method = db.Column(db.String(32), nullable=False, default="none")
    last_payment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    next_billing_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Usage counters
    restaurants_count = db.Column(db.Integer, nullable=False, default=0)
    orders_this_month = db.Column(db.Integer, nullable=False, default=0)
    staff_count = db.Column(db.Integer, nullable=False, default=0)
    tables_count = db.Column(db.Integer, nullable=False, default=0)
    menu_items_count = db.Column(db.Integer, nullable=False, default=0)

    # Plan limits (-1 = unlimited)
    max_restaurants = db.Column(db.Integer, nullable=False, default=1)
    max_orders = db.Column(db.Integer, nullable=False, default=50)
    max_staff = db.Column(db.Integer, nullable=False, default=5)
    max_tables = db.Column(db.Integer, nullable=False, default=10)
    max_menu_items = db.Column(db.Integer, nullable=False, default=50)

    features = db.Column(db.JSON, nullable=False, default=dict)

    # Cancellation / renewal
    auto_renew = db.Column(db.Boolean, nullable=False, default=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    restaurant = db.relationship("Restaurant", backref=db.backref("subscription", uselist=False, lazy=True))
    notifications = db.relationship(
        "SubscriptionNotification",
        backref="subscription",
        lazy=True,
        order_by="SubscriptionNotification.id",
    )
    payments = db.relationship(
        "SubscriptionPayment",
        backref="subscription",
        lazy=True,
        order_by="SubscriptionPayment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} restaurant_id={self.restaurant_id} plan={self.plan} status={self.status}>"

    def usage_dict(self) -> dict:
        return {key: getattr(self, key) for key in USAGE_LIMIT_COLUMNS}

    def limits_dict(self) -> dict:
        return {limit: getattr(self, limit) for limit in USAGE_LIMIT_COLUMNS.values()}

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "plan": self.plan,
            "status": self.status,
            "trial_start": to_utc_z(self.trial_start),
            "trial_end": to_utc_z(self.trial_end),
            "trial_active": self.trial_active,
            "current_period_start": to_utc_z(self.current_period_start),
            "current_period_end": to_utc_z(self.current_period_end),
            "billing_cycle": self.billing_cycle,
            "amount": str(self.amount),
            "currency": self.currency,
            "payment_method": self.payment_method,
            "last_payment_date": to_utc_z(self.last_payment_date),
            "next_billing_date": to_utc_z(self.next_billing_date),
            "usage": self.usage_dict(),
            "limits": self.limits_dict(),
            "features": dict(self.features or {}),
            "auto_renew": self.auto_renew,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "is_active": is_period_active(self, now),
            "is_trial_valid": is_trial_valid(self, now),
            "trial_days_remaining": trial_days_remaining(self, now),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def is_trial_valid(sub: Subscription, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return bool(sub.trial_active) and sub.trial_end is not None and now < sub.trial_end


def is_period_active(sub: Subscription, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return sub.status == "active" and now < sub.current_period_end


def has_access(sub: Subscription, now: Optional[datetime] = None) -> bool:
    """A valid trial grants access regardless of status and period end."""
    now = now or utcnow()
    return is_trial_valid(sub, now) or is_period_active(sub, now)


def trial_days_remaining(sub: Subscription, now: Optional[datetime] = None) -> int:
    if not sub.trial_active:
        return 0
    return days_until(sub.trial_end, now)


class SubscriptionNotification(db.Model):
    """Append-only notification log entry; only `read` ever changes."""
    __tablename__ = "subscription_notifications"
    __table_args__ = (
        db.Index("ix_sub_notifications_restaurant_sent", "restaurant_id", "sent_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id"), nullable=False, index=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    message = db.Column(db.String(512), nullable=False)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    read = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "type": self.type,
            "message": self.message,
            "sent_at": to_utc_z(self.sent_at),
            "read": self.read,
        }


class SubscriptionPayment(db.Model):
    """Append-only payment history entry for a subscription."""
    __tablename__ = "subscription_payments"
    __table_args__ = (
        db.Index("ix_sub_payments_restaurant_paid", "restaurant_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id"), nullable=False, index=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False)
    amount = db.Column(db.Numeric(14, 4), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    status = db.Column(db.String(16), nullable=False)  # success, failed, pending, refunded
    method = db.Column(db.String(32), nullable=True)
    transaction_id = db.Column(db.String(128), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    invoice_url = db.Column(db.String(512), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status,
            "method": self.method,
            "transaction_id": self.transaction_id,
            "paid_at": to_utc_z(self.paid_at),
            "invoice_url": self.invoice_url,
        }
