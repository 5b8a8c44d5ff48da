# Overview: Service-layer operations for account transactions (payments, refunds, subscription charges).

"""
Transactions

Ledger-adjacent money movements. Rows are append-only; the one permitted
change is COMPLETED -> REFUNDED on the original when a refund is issued, and
the refund itself is a new COMPLETED row of type REFUND pointing back at it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Transaction
from ..validation import (
    AlreadyExistsError,
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    parse_amount,
    validate_payload,
)
from restobill.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .plan_catalog import get_plan_catalog
from .tenant_service import require_restaurant


TYPE_PAYMENT = "PAYMENT"
TYPE_REFUND = "REFUND"
TYPE_SUBSCRIPTION = "SUBSCRIPTION"
TYPE_UPGRADE = "UPGRADE"
TYPE_DOWNGRADE = "DOWNGRADE"

TRANSACTION_TYPES = [TYPE_PAYMENT, TYPE_REFUND, TYPE_SUBSCRIPTION, TYPE_UPGRADE, TYPE_DOWNGRADE]

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_REFUNDED = "refunded"

TRANSACTION_STATUSES = [STATUS_PENDING, STATUS_COMPLETED, STATUS_FAILED, STATUS_REFUNDED]

PAYMENT_METHODS = ["UPI", "CARD", "NET_BANKING", "WALLET", "OTHER"]

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 100

CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "type",
        "amount",
        "currency",
        "status",
        "payment_method",
        "transaction_id",
        "payment_proof_id",
        "plan",
        "description",
        "processed_by",
    }),
    required_on_create=frozenset({"type", "amount", "transaction_id"}),
)


def _choice(value, choices: list[str], field: str, *, upper: bool) -> str:
    text = str(value or "").strip()
    text = text.upper() if upper else text.lower()
    if text not in choices:
        raise ValidationError(f"Invalid {field}: {value}. Must be one of {choices}")
    return text


def create_transaction(restaurant_id: int, data: dict | None, *, now: Optional[datetime] = None) -> Transaction:
    """
    Record a transaction for a restaurant.

    `data` may carry a `metadata` object in addition to the CREATE_POLICY fields.

    Raises:
        ValidationError: bad fields, unknown type/status/method
        ConflictError: plan not in the catalog
        NotFoundError: restaurant does not exist
        AlreadyExistsError: transaction_id already recorded
    """
    data = dict(data or {})
    metadata = data.pop("metadata", None)
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object")

    patch = validate_payload(model=Transaction, payload=data, policy=CREATE_POLICY, partial=False)
    patch["type"] = _choice(patch["type"], TRANSACTION_TYPES, "type", upper=True)
    patch["status"] = _choice(patch.get("status") or STATUS_PENDING, TRANSACTION_STATUSES, "status", upper=False)
    patch["payment_method"] = _choice(patch.get("payment_method") or "UPI", PAYMENT_METHODS, "payment method", upper=True)
    if not patch["transaction_id"]:
        raise ValidationError("transaction_id is required")
    if patch.get("plan"):
        patch["plan"] = get_plan_catalog().require(patch["plan"]).key
    patch["currency"] = patch.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "INR")

    now = now or utcnow()

    def _op() -> Transaction:
        require_restaurant(restaurant_id)
        exists = db.session.query(Transaction.id).filter_by(transaction_id=patch["transaction_id"]).first()
        if exists is not None:
            raise AlreadyExistsError(f"Transaction {patch['transaction_id']} already exists")
        txn = Transaction(restaurant_id=restaurant_id, meta=dict(metadata or {}), created_at=now, **patch)
        db.session.add(txn)
        db.session.commit()
        return txn

    try:
        return run_with_retry(_op)
    except IntegrityError as exc:
        raise AlreadyExistsError(f"Transaction {patch['transaction_id']} already exists") from exc


def get_transaction(transaction_pk: int, restaurant_id: int | None = None) -> Transaction:
    """Admin callers omit restaurant_id; tenant callers are scoped to their own rows."""
    query = db.session.query(Transaction).filter_by(id=transaction_pk)
    if restaurant_id is not None:
        query = query.filter_by(restaurant_id=restaurant_id)
    txn = query.first()
    if txn is None:
        raise NotFoundError("Transaction not found")
    return txn


def list_transactions(
    *,
    restaurant_id: int | None = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    type: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Transaction)

    if restaurant_id is not None:
        query = query.filter(Transaction.restaurant_id == restaurant_id)
    if start_date is not None:
        query = query.filter(Transaction.created_at >= start_date)
    if end_date is not None:
        query = query.filter(Transaction.created_at <= end_date)
    if type:
        query = query.filter(Transaction.type == _choice(type, TRANSACTION_TYPES, "type", upper=True))
    if status:
        query = query.filter(Transaction.status == _choice(status, TRANSACTION_STATUSES, "status", upper=False))

    query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())

    if page is not None and page < 1:
        raise ValidationError("page must be >= 1")
    if per_page is not None and per_page < 1:
        raise ValidationError("per_page must be >= 1")
    per_page = min(per_page or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    page = page or 1

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [txn.to_dict() for txn in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def refund_transaction(
    transaction_pk: int,
    *,
    amount=None,
    reason: str | None = None,
    processed_by: str | None = None,
    restaurant_id: int | None = None,
    now: Optional[datetime] = None,
) -> tuple[Transaction, Transaction]:
    """
    Refund a completed transaction, fully or partially.

    Returns:
        (original, refund)

    Raises:
        NotFoundError: transaction missing (or outside restaurant_id when given)
        ConflictError: already refunded, not completed, or itself a refund
        ValidationError: amount <= 0 or greater than the original amount
    """
    refund_amount = parse_amount(amount, "amount") if amount is not None else None
    if refund_amount is not None and refund_amount <= 0:
        raise ValidationError("amount must be > 0")
    now = now or utcnow()

    def _op() -> tuple[Transaction, Transaction]:
        query = db.session.query(Transaction).filter_by(id=transaction_pk)
        if restaurant_id is not None:
            query = query.filter_by(restaurant_id=restaurant_id)
        original = lock_for_update(query).first()
        if original is None:
            raise NotFoundError("Transaction not found")
        if original.status == STATUS_REFUNDED:
            raise ConflictError("Transaction already refunded")
        if original.type == TYPE_REFUND:
            raise ConflictError("A refund cannot be refunded")
        if original.status != STATUS_COMPLETED:
            raise ConflictError(f"Only completed transactions can be refunded (status={original.status})")

        value = refund_amount if refund_amount is not None else Decimal(original.amount)
        if value > original.amount:
            raise ValidationError("Refund amount cannot exceed the original amount")

        millis = int(now.timestamp() * 1000)
        refund = Transaction(
            restaurant_id=original.restaurant_id,
            type=TYPE_REFUND,
            amount=value,
            currency=original.currency,
            status=STATUS_COMPLETED,
            payment_method=original.payment_method,
            transaction_id=f"REFUND-{millis}-{original.id}",
            plan=original.plan,
            description=f"Refund for {original.transaction_id}",
            refund_reason=reason,
            processed_by=processed_by,
            meta={"original_transaction_id": original.id, "original_transaction": original.transaction_id},
            created_at=now,
        )
        db.session.add(refund)

        original.status = STATUS_REFUNDED
        original.refunded_at = now
        db.session.commit()
        return original, refund

    original, refund = run_with_retry(_op)
    current_app.logger.info(
        "Refund %s issued for transaction %s amount=%s",
        refund.transaction_id, original.transaction_id, refund.amount,
    )
    return original, refund


def financial_summary(
    start_date: datetime,
    end_date: datetime,
    *,
    restaurant_id: int | None = None,
) -> dict:
    """
    Revenue, refunds and net over settled transactions in [start_date, end_date],
    broken down by type, plan and payment method.

    A refunded payment stays in total_revenue at its original amount; its
    REFUND row carries the money returned, so net_revenue is what was kept.
    """
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")

    query = db.session.query(Transaction).filter(
        Transaction.status.in_([STATUS_COMPLETED, STATUS_REFUNDED]),
        Transaction.created_at >= start_date,
        Transaction.created_at <= end_date,
    )
    if restaurant_id is not None:
        query = query.filter(Transaction.restaurant_id == restaurant_id)
    rows = query.all()

    zero = Decimal("0")
    summary = {
        "total_revenue": zero,
        "total_refunds": zero,
        "net_revenue": zero,
        "transaction_count": len(rows),
        "by_type": {},
        "by_plan": {},
        "by_payment_method": {},
    }

    def _bump(bucket: dict, key: str, amount: Decimal) -> None:
        entry = bucket.setdefault(key, {"count": 0, "amount": zero})
        entry["count"] += 1
        entry["amount"] += amount

    for txn in rows:
        amount = Decimal(txn.amount)
        if txn.type == TYPE_REFUND:
            summary["total_refunds"] += amount
        else:
            summary["total_revenue"] += amount
        _bump(summary["by_type"], txn.type, amount)
        if txn.plan:
            _bump(summary["by_plan"], txn.plan, amount)
        _bump(summary["by_payment_method"], txn.payment_method, amount)

    summary["net_revenue"] = summary["total_revenue"] - summary["total_refunds"]
    return summary
