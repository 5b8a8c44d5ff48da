# Overview: Service-layer operations for subscriptions; encapsulates business logic and database work.

"""
Subscription Engine

One subscription per restaurant. Governs plan assignment, the trial window,
the billing period, usage counters and the notification / payment logs.

LIFECYCLE:
    create (free_trial, active, 5-day trial)
      -> upgrade / downgrade (plan catalog applied)
      -> renew (payment recorded; success extends the period)
      -> cancel (status transition, never a delete)
    sweep_expired: active + period ended -> expired

DESIGN PRINCIPLES:
- Limits and features only ever come from the plan catalog
- Plan assignment, payment append and period extension commit together
  under the row's version_id (optimistic concurrency)
- Usage counters move with single UPDATE col = col + 1 statements
- Sweeps use status-conditional UPDATEs, so overlapping runs transition and
  notify each subscription once
- Read paths lazily create a missing subscription (legacy tenants)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Subscription, SubscriptionNotification, SubscriptionPayment
from ..models.subscriptions import UNLIMITED, USAGE_LIMIT_COLUMNS, has_access, trial_days_remaining
from ..validation import (
    AlreadyExistsError,
    NotFoundError,
    ValidationError,
    parse_amount,
)
from restobill.time_utils import add_days, add_months, parse_iso_datetime, utcnow
from .concurrency import lock_for_update, run_with_retry
from .plan_catalog import PLAN_FREE_TRIAL, FEATURE_NAMES, PlanCatalog, PlanDefinition, get_plan_catalog
from .tenant_service import require_restaurant


# =============================================================================
# STATUS / NOTIFICATION / PAYMENT (CONSTANTS)
# =============================================================================

STATUS_ACTIVE = "active"
STATUS_CANCELLED = "cancelled"
STATUS_EXPIRED = "expired"
STATUS_SUSPENDED = "suspended"
STATUS_PAST_DUE = "past_due"

SUBSCRIPTION_STATUSES = [
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_EXPIRED,
    STATUS_SUSPENDED,
    STATUS_PAST_DUE,
]

NOTIFY_PAYMENT_DUE = "payment_due"
NOTIFY_PAYMENT_FAILED = "payment_failed"
NOTIFY_TRIAL_ENDING = "trial_ending"
NOTIFY_RENEWED = "subscription_renewed"
NOTIFY_CANCELLED = "subscription_cancelled"
NOTIFY_LIMIT_REACHED = "limit_reached"

NOTIFICATION_TYPES = [
    NOTIFY_PAYMENT_DUE,
    NOTIFY_PAYMENT_FAILED,
    NOTIFY_TRIAL_ENDING,
    NOTIFY_RENEWED,
    NOTIFY_CANCELLED,
    NOTIFY_LIMIT_REACHED,
]

PAYMENT_SUCCESS = "success"
PAYMENT_FAILED = "failed"
PAYMENT_PENDING = "pending"
PAYMENT_REFUNDED = "refunded"

PAYMENT_STATUSES = [PAYMENT_SUCCESS, PAYMENT_FAILED, PAYMENT_PENDING, PAYMENT_REFUNDED]

PAYMENT_FIELDS = frozenset({
    "amount",
    "currency",
    "status",
    "method",
    "transaction_id",
    "paid_at",
    "invoice_url",
})

LIMIT_TO_USAGE = {limit: usage for usage, limit in USAGE_LIMIT_COLUMNS.items()}

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name must be a non-empty string")
    return _CAMEL_BOUNDARY.sub("_", name.strip()).lower()


def normalize_limit_type(limit_type) -> str:
    """'maxStaff' / 'max_staff' -> 'max_staff'."""
    key = _snake(limit_type)
    if key not in LIMIT_TO_USAGE:
        raise ValidationError(f"Unknown limit type: {limit_type}. Must be one of {sorted(LIMIT_TO_USAGE)}")
    return key


def normalize_usage_type(usage_type) -> str:
    """'staffCount' / 'staff_count' -> 'staff_count'."""
    key = _snake(usage_type)
    if key not in USAGE_LIMIT_COLUMNS:
        raise ValidationError(f"Unknown usage type: {usage_type}. Must be one of {sorted(USAGE_LIMIT_COLUMNS)}")
    return key


def normalize_feature(feature) -> str:
    key = _snake(feature)
    if key not in FEATURE_NAMES:
        raise ValidationError(f"Unknown feature: {feature}. Must be one of {list(FEATURE_NAMES)}")
    return key


def limit_label(limit_type: str) -> str:
    return limit_type[len("max_"):].replace("_", " ")


@dataclass(frozen=True)
class LimitCheck:
    limit_type: str
    allowed: bool
    remaining: int
    limit: int
    current: int

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    def to_dict(self) -> dict:
        return {
            "limit_type": self.limit_type,
            "allowed": self.allowed,
            "remaining": self.remaining,
            "limit": self.limit,
            "current": self.current,
        }


def evaluate_limit(sub: Subscription, limit_type: str) -> LimitCheck:
    """Pure limit check over a loaded subscription; -1 means unlimited."""
    limit_type = normalize_limit_type(limit_type)
    limit = getattr(sub, limit_type)
    current = getattr(sub, LIMIT_TO_USAGE[limit_type]) or 0
    if limit == UNLIMITED:
        return LimitCheck(limit_type, True, UNLIMITED, UNLIMITED, current)
    return LimitCheck(
        limit_type=limit_type,
        allowed=current < limit,
        remaining=max(0, limit - current),
        limit=limit,
        current=current,
    )


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _apply_plan(sub: Subscription, plan: PlanDefinition) -> None:
    sub.plan = plan.key
    sub.amount = plan.monthly_price
    for limit_type, value in plan.limits.items():
        setattr(sub, limit_type, value)
    sub.features = dict(plan.features)


def _append_notification(sub: Subscription, type_: str, message: str, now: datetime) -> SubscriptionNotification:
    note = SubscriptionNotification(
        subscription_id=sub.id,
        restaurant_id=sub.restaurant_id,
        type=type_,
        message=message,
        sent_at=now,
    )
    db.session.add(note)
    return note


def _parse_payment(payment_data, now: datetime) -> dict:
    """Validate a payment record before any mutation happens."""
    if not isinstance(payment_data, dict):
        raise ValidationError("payment_data must be an object")

    payment = {}
    for key, value in payment_data.items():
        field = _snake(key)
        if field not in PAYMENT_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")
        payment[field] = value

    if "amount" not in payment:
        raise ValidationError("Missing required fields: amount")
    payment["amount"] = parse_amount(payment["amount"], "amount")

    status = str(payment.get("status") or "").strip().lower()
    if status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {payment.get('status')}. Must be one of {PAYMENT_STATUSES}")
    payment["status"] = status

    paid_at = payment.get("paid_at")
    if paid_at is None:
        payment["paid_at"] = now
    elif isinstance(paid_at, str):
        try:
            payment["paid_at"] = parse_iso_datetime(paid_at) or now
        except ValueError:
            raise ValidationError("paid_at must be an ISO-8601 datetime")
    elif not isinstance(paid_at, datetime):
        raise ValidationError("paid_at must be a datetime")

    payment["currency"] = str(payment.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "INR"))
    for key in ("method", "transaction_id", "invoice_url"):
        if payment.get(key) is not None:
            payment[key] = str(payment[key]).strip()
    return payment


def _record_payment(sub: Subscription, payment: dict) -> SubscriptionPayment:
    """
    Append to payment history. A successful payment reactivates the
    subscription and extends the period by one month from its current end.
    """
    row = SubscriptionPayment(
        subscription_id=sub.id,
        restaurant_id=sub.restaurant_id,
        amount=payment["amount"],
        currency=payment["currency"],
        status=payment["status"],
        method=payment.get("method"),
        transaction_id=payment.get("transaction_id"),
        paid_at=payment["paid_at"],
        invoice_url=payment.get("invoice_url"),
    )
    db.session.add(row)

    if payment["status"] == PAYMENT_SUCCESS:
        sub.last_payment_date = payment["paid_at"]
        sub.status = STATUS_ACTIVE
        sub.current_period_end = add_months(sub.current_period_end, 1)
        sub.next_billing_date = sub.current_period_end
        if payment.get("method"):
            sub.payment_method = payment["method"]
    return row


def _locked_subscription(restaurant_id: int) -> Subscription:
    sub = lock_for_update(
        db.session.query(Subscription).filter_by(restaurant_id=restaurant_id)
    ).first()
    if sub is None:
        raise NotFoundError("Subscription not found")
    return sub


# =============================================================================
# CREATE / READ
# =============================================================================

def create_subscription(
    restaurant_id: int,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> Subscription:
    """
    Start a restaurant on free_trial / active with a fresh trial window.

    Raises:
        NotFoundError: restaurant does not exist
        AlreadyExistsError: the restaurant already has a subscription
    """
    plan = get_plan_catalog(catalog).require(PLAN_FREE_TRIAL)
    now = now or utcnow()

    def _op() -> Subscription:
        require_restaurant(restaurant_id)
        exists = db.session.query(Subscription.id).filter_by(restaurant_id=restaurant_id).first()
        if exists is not None:
            raise AlreadyExistsError("Subscription already exists for this restaurant")

        sub = Subscription(
            restaurant_id=restaurant_id,
            status=STATUS_ACTIVE,
            trial_active=True,
            trial_start=now,
            trial_end=add_days(now, plan.trial_days),
            current_period_start=now,
            current_period_end=add_months(now, 1),
            billing_cycle="monthly",
            currency=current_app.config.get("DEFAULT_CURRENCY", "INR"),
            auto_renew=True,
        )
        _apply_plan(sub, plan)
        db.session.add(sub)
        db.session.commit()
        return sub

    try:
        sub = run_with_retry(_op)
    except IntegrityError as exc:
        # Lost a concurrent create; uq_subscriptions_restaurant rejected ours.
        raise AlreadyExistsError("Subscription already exists for this restaurant") from exc

    current_app.logger.info("Subscription created for restaurant_id=%s (free_trial)", restaurant_id)
    return sub


def get_subscription(restaurant_id: int) -> Subscription:
    sub = db.session.query(Subscription).filter_by(restaurant_id=restaurant_id).first()
    if sub is None:
        raise NotFoundError("Subscription not found")
    return sub


def get_or_create_subscription(
    restaurant_id: int,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> Subscription:
    """Read path: a restaurant without a subscription gets a fresh trial one."""
    sub = db.session.query(Subscription).filter_by(restaurant_id=restaurant_id).first()
    if sub is not None:
        return sub
    try:
        return create_subscription(restaurant_id, now=now, catalog=catalog)
    except AlreadyExistsError:
        return get_subscription(restaurant_id)


# =============================================================================
# PLAN TRANSITIONS
# =============================================================================

def upgrade_plan(
    restaurant_id: int,
    new_plan: str,
    payment_data: dict | None = None,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> Subscription:
    """
    Move to `new_plan`, optionally recording a payment in the same commit.

    free_trial restarts the trial and ends the period with it. A paid plan
    becomes active with a period of [now, now + 1 month]. A successful
    payment then extends that period by one more month from its current end,
    so an upgrade with payment runs two months and one without runs one.

    Raises:
        ValidationError: malformed plan name or payment_data
        ConflictError: plan not in the catalog
        NotFoundError: restaurant has no subscription
    """
    plan = get_plan_catalog(catalog).require(new_plan)
    now = now or utcnow()
    payment = _parse_payment(payment_data, now) if payment_data is not None else None

    def _op() -> Subscription:
        sub = _locked_subscription(restaurant_id)
        _apply_plan(sub, plan)

        if plan.key == PLAN_FREE_TRIAL:
            sub.trial_active = True
            sub.trial_start = now
            sub.trial_end = add_days(now, plan.trial_days)
            sub.current_period_start = now
            sub.current_period_end = sub.trial_end
        else:
            sub.status = STATUS_ACTIVE
            sub.trial_active = False
            sub.current_period_start = now
            sub.current_period_end = add_months(now, 1)
            sub.next_billing_date = sub.current_period_end

        if payment is not None:
            _record_payment(sub, payment)

        _append_notification(sub, NOTIFY_RENEWED, f"Your subscription has been upgraded to {plan.key} plan", now)
        db.session.commit()
        return sub

    sub = run_with_retry(_op)
    current_app.logger.info(
        "Subscription upgraded: restaurant_id=%s plan=%s period_end=%s",
        restaurant_id, plan.key, sub.current_period_end,
    )
    return sub


def downgrade_plan(
    restaurant_id: int,
    new_plan: str,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> Subscription:
    """Apply a plan's limits/features without touching the period or the trial."""
    plan = get_plan_catalog(catalog).require(new_plan)
    now = now or utcnow()

    def _op() -> Subscription:
        sub = _locked_subscription(restaurant_id)
        _apply_plan(sub, plan)
        _append_notification(sub, NOTIFY_RENEWED, f"Your subscription has been changed to {plan.key} plan", now)
        db.session.commit()
        return sub

    sub = run_with_retry(_op)
    current_app.logger.info("Subscription downgraded: restaurant_id=%s plan=%s", restaurant_id, plan.key)
    return sub


def cancel_subscription(
    restaurant_id: int,
    reason: str | None = None,
    *,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Cancel without deleting anything. Cancelling an already cancelled
    subscription returns it unchanged.
    """
    now = now or utcnow()
    if reason is not None:
        reason = str(reason).strip()[:255]

    def _op() -> Subscription:
        sub = _locked_subscription(restaurant_id)
        if sub.status == STATUS_CANCELLED:
            return sub
        sub.status = STATUS_CANCELLED
        sub.auto_renew = False
        sub.cancelled_at = now
        sub.cancel_reason = reason
        _append_notification(sub, NOTIFY_CANCELLED, "Your subscription has been cancelled", now)
        db.session.commit()
        current_app.logger.info("Subscription cancelled: restaurant_id=%s reason=%r", restaurant_id, reason)
        return sub

    return run_with_retry(_op)


def renew_subscription(
    restaurant_id: int,
    payment_data: dict,
    *,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Record a renewal payment. Only a `success` payment extends the period by
    one month and reactivates; a `failed` one leaves the period alone and
    adds a payment_failed notification.
    """
    now = now or utcnow()
    payment = _parse_payment(payment_data, now)

    def _op() -> Subscription:
        sub = _locked_subscription(restaurant_id)
        _record_payment(sub, payment)
        if payment["status"] == PAYMENT_SUCCESS:
            _append_notification(sub, NOTIFY_RENEWED, "Your subscription has been renewed successfully", now)
        elif payment["status"] == PAYMENT_FAILED:
            _append_notification(
                sub,
                NOTIFY_PAYMENT_FAILED,
                "Your subscription payment failed. Please update your payment method.",
                now,
            )
        db.session.commit()
        return sub

    sub = run_with_retry(_op)
    current_app.logger.info(
        "Subscription renewal recorded: restaurant_id=%s payment_status=%s period_end=%s",
        restaurant_id, payment["status"], sub.current_period_end,
    )
    return sub


# =============================================================================
# LIMITS / USAGE / FEATURES
# =============================================================================

def check_limit(
    restaurant_id: int,
    limit_type: str,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> LimitCheck:
    """
    Advisory quota check; callers run it before creating the resource.

    allowed = limit == -1 or current < limit
    """
    limit_type = normalize_limit_type(limit_type)
    sub = get_or_create_subscription(restaurant_id, now=now, catalog=catalog)
    return evaluate_limit(sub, limit_type)


def usage_report(
    restaurant_id: int,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> dict:
    sub = get_or_create_subscription(restaurant_id, now=now, catalog=catalog)
    return {
        "plan": sub.plan,
        "limits": {limit: evaluate_limit(sub, limit).to_dict() for limit in LIMIT_TO_USAGE},
    }


def increment_usage(restaurant_id: int, usage_type: str, amount: int = 1) -> Subscription:
    """Monotonic counter increment, applied atomically in the database."""
    usage_type = normalize_usage_type(usage_type)
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        raise ValidationError("amount must be a positive integer")
    column = getattr(Subscription, usage_type)

    def _op() -> Subscription:
        result = db.session.execute(
            update(Subscription)
            .where(Subscription.restaurant_id == restaurant_id)
            .values({usage_type: column + amount})
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            raise NotFoundError("Subscription not found")
        db.session.commit()
        return get_subscription(restaurant_id)

    return run_with_retry(_op)


def reset_monthly_usage() -> int:
    """Zero orders_this_month for every subscription; returns rows touched."""
    def _op() -> int:
        result = db.session.execute(
            update(Subscription)
            .values(orders_this_month=0)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount

    count = run_with_retry(_op)
    current_app.logger.info("Monthly usage reset for %s subscriptions", count)
    return count


def has_feature(
    restaurant_id: int,
    feature: str,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> bool:
    feature = normalize_feature(feature)
    sub = get_or_create_subscription(restaurant_id, now=now, catalog=catalog)
    return bool((sub.features or {}).get(feature))


def check_access(
    restaurant_id: int,
    *,
    now: Optional[datetime] = None,
    catalog: PlanCatalog | None = None,
) -> bool:
    """A valid trial, or an active status with the period still running."""
    now = now or utcnow()
    sub = get_or_create_subscription(restaurant_id, now=now, catalog=catalog)
    return has_access(sub, now)


# =============================================================================
# NOTIFICATIONS / PAYMENT HISTORY
# =============================================================================

def add_notification(
    restaurant_id: int,
    type_: str,
    message: str,
    *,
    now: Optional[datetime] = None,
) -> SubscriptionNotification:
    if type_ not in NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type: {type_}. Must be one of {NOTIFICATION_TYPES}")
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("message is required")
    now = now or utcnow()

    def _op() -> SubscriptionNotification:
        sub = get_subscription(restaurant_id)
        note = _append_notification(sub, type_, message.strip()[:512], now)
        db.session.commit()
        return note

    return run_with_retry(_op)


def notify_limit_reached(restaurant_id: int, limit_type: str, *, now: Optional[datetime] = None) -> SubscriptionNotification:
    limit_type = normalize_limit_type(limit_type)
    return add_notification(
        restaurant_id,
        NOTIFY_LIMIT_REACHED,
        f"You have reached your {limit_label(limit_type)} limit. Please upgrade your plan.",
        now=now,
    )


def list_notifications(
    restaurant_id: int,
    *,
    unread_only: bool = False,
    limit: int | None = None,
) -> list[dict]:
    """Most recent first, truncated to NOTIFICATION_LIST_LIMIT."""
    get_or_create_subscription(restaurant_id)
    limit = limit or current_app.config.get("NOTIFICATION_LIST_LIMIT", 50)

    query = db.session.query(SubscriptionNotification).filter_by(restaurant_id=restaurant_id)
    if unread_only:
        query = query.filter(SubscriptionNotification.read.is_(False))
    notes = (
        query.order_by(SubscriptionNotification.sent_at.desc(), SubscriptionNotification.id.desc())
        .limit(limit)
        .all()
    )
    return [note.to_dict() for note in notes]


def mark_notification_read(restaurant_id: int, notification_id: int) -> SubscriptionNotification:
    def _op() -> SubscriptionNotification:
        note = (
            db.session.query(SubscriptionNotification)
            .filter_by(id=notification_id, restaurant_id=restaurant_id)
            .first()
        )
        if note is None:
            raise NotFoundError("Notification not found")
        note.read = True
        db.session.commit()
        return note

    return run_with_retry(_op)


def list_payment_history(restaurant_id: int) -> list[dict]:
    """Most recent first."""
    get_or_create_subscription(restaurant_id)
    rows = (
        db.session.query(SubscriptionPayment)
        .filter_by(restaurant_id=restaurant_id)
        .order_by(SubscriptionPayment.paid_at.desc(), SubscriptionPayment.id.desc())
        .all()
    )
    return [row.to_dict() for row in rows]


# =============================================================================
# SWEEPS (invoked by the external scheduler)
# =============================================================================

def sweep_expired(now: Optional[datetime] = None) -> list[Subscription]:
    """
    Expire every active subscription whose period has ended.

    Each row moves with its own status-conditional UPDATE; only rows this
    call actually moved get the notification and are returned, so a second
    run (or a concurrent one) returns nothing for them.
    """
    now = now or utcnow()

    def _op() -> list[int]:
        candidates = (
            db.session.query(Subscription.id, Subscription.restaurant_id)
            .filter(
                Subscription.status == STATUS_ACTIVE,
                Subscription.current_period_end < now,
            )
            .all()
        )
        moved = []
        for sub_id, restaurant_id in candidates:
            result = db.session.execute(
                update(Subscription)
                .where(
                    Subscription.id == sub_id,
                    Subscription.status == STATUS_ACTIVE,
                    Subscription.current_period_end < now,
                )
                .values(status=STATUS_EXPIRED, version_id=Subscription.version_id + 1)
                .execution_options(synchronize_session=False)
            )
            if not result.rowcount:
                continue
            db.session.add(SubscriptionNotification(
                subscription_id=sub_id,
                restaurant_id=restaurant_id,
                type=NOTIFY_CANCELLED,
                message="Your subscription has expired",
                sent_at=now,
            ))
            moved.append(sub_id)
        db.session.commit()
        return moved

    moved_ids = run_with_retry(_op)
    if not moved_ids:
        return []

    current_app.logger.info("Expired %s subscriptions", len(moved_ids))
    return (
        db.session.query(Subscription)
        .filter(Subscription.id.in_(moved_ids))
        .order_by(Subscription.id.asc())
        .all()
    )


def sweep_trials_ending(
    threshold_days: int | None = None,
    *,
    now: Optional[datetime] = None,
) -> list[Subscription]:
    """Read-only: active trials ending within (now, now + threshold_days]."""
    if threshold_days is None:
        threshold_days = current_app.config.get("TRIAL_ENDING_THRESHOLD_DAYS", 3)
    if isinstance(threshold_days, bool) or not isinstance(threshold_days, int) or threshold_days < 0:
        raise ValidationError("threshold_days must be a non-negative integer")
    now = now or utcnow()

    return (
        db.session.query(Subscription)
        .filter(
            Subscription.trial_active.is_(True),
            Subscription.trial_end > now,
            Subscription.trial_end <= add_days(now, threshold_days),
        )
        .order_by(Subscription.trial_end.asc(), Subscription.id.asc())
        .all()
    )


def notify_trials_ending(
    threshold_days: int | None = None,
    *,
    now: Optional[datetime] = None,
) -> list[Subscription]:
    """Caller-side composition: sweep_trials_ending + one trial_ending notification each."""
    now = now or utcnow()
    subs = sweep_trials_ending(threshold_days, now=now)

    def _op() -> None:
        for sub in subs:
            days = trial_days_remaining(sub, now)
            _append_notification(
                sub,
                NOTIFY_TRIAL_ENDING,
                f"Your trial period ends in {days} days. Please subscribe to continue using the service.",
                now,
            )
        db.session.commit()

    if subs:
        run_with_retry(_op)
        current_app.logger.info("Trial-ending notifications sent to %s subscriptions", len(subs))
    return subs


# =============================================================================
# STATISTICS (admin)
# =============================================================================

def _decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def statistics() -> dict:
    """Counts and revenue across all tenants."""
    total = db.session.query(func.count(Subscription.id)).scalar() or 0
    status_counts = dict(
        db.session.query(Subscription.status, func.count(Subscription.id))
        .group_by(Subscription.status)
        .all()
    )
    trials = (
        db.session.query(func.count(Subscription.id))
        .filter(Subscription.trial_active.is_(True))
        .scalar()
        or 0
    )
    plan_rows = (
        db.session.query(Subscription.plan, func.count(Subscription.id), func.sum(Subscription.amount))
        .group_by(Subscription.plan)
        .all()
    )
    monthly_revenue = (
        db.session.query(func.sum(Subscription.amount))
        .filter(Subscription.status == STATUS_ACTIVE)
        .scalar()
    )

    return {
        "total": total,
        "active": status_counts.get(STATUS_ACTIVE, 0),
        "trials": trials,
        "cancelled": status_counts.get(STATUS_CANCELLED, 0),
        "expired": status_counts.get(STATUS_EXPIRED, 0),
        "plan_breakdown": {
            plan: {"count": count, "revenue": _decimal(revenue)}
            for plan, count, revenue in plan_rows
        },
        "monthly_revenue": _decimal(monthly_revenue),
    }
