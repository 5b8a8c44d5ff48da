# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Invoice Engine

Issues GST invoices from a restaurant's own orders and tracks their payment.

DESIGN PRINCIPLES:
- Every lookup filters on (id, restaurant_id) together; another tenant's
  invoice is indistinguishable from a missing one
- Restaurant identity and order lines are copied at creation (no live joins)
- Money figures are always recomputed by the tax calculator, never taken
  from the caller
- payment_status is derived from paid_amount vs grand_total on every write
- A paid invoice cannot be deleted
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from urllib.parse import quote

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Invoice, InvoiceLine
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_invoice_discount,
    parse_amount,
    validate_payload,
)
from restobill.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .invoice_number_service import allocate_invoice_number
from .tax_service import calculate_taxes
from .tenant_service import require_order_in_restaurant, require_restaurant


# =============================================================================
# PAYMENT STATUS / METHOD (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_UNPAID = "unpaid"

PAYMENT_STATUSES = [PAYMENT_STATUS_PAID, PAYMENT_STATUS_UNPAID, PAYMENT_STATUS_PARTIAL]

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
PAYMENT_METHOD_UPI = "upi"
PAYMENT_METHOD_WALLET = "wallet"
PAYMENT_METHOD_PENDING = "pending"

PAYMENT_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_UPI,
    PAYMENT_METHOD_WALLET,
    PAYMENT_METHOD_PENDING,
]

DEFAULT_CUSTOMER_NAME = "Walk-in Customer"

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

UPI_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+@[A-Za-z0-9.-]+$")


CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "customer_name",
        "customer_phone",
        "customer_email",
        "customer_gstin",
        "discount",
        "discount_percentage",
        "is_inter_state",
        "payment_method",
        "paid_amount",
        "upi_id",
        "notes",
        "terms_and_conditions",
        "due_date",
    }),
)

UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "customer_name",
        "customer_phone",
        "customer_email",
        "customer_gstin",
        "discount",
        "discount_percentage",
        "notes",
        "terms_and_conditions",
    }),
)


def compute_payment_status(paid_amount: Decimal, grand_total: Decimal) -> str:
    if paid_amount >= grand_total:
        return PAYMENT_STATUS_PAID
    if paid_amount > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_UNPAID


def build_upi_payload(upi_id: str, payee_name: str, amount: Decimal, currency: str = "INR") -> str:
    """UPI collect deep link, rendered as a QR code by the presentation layer."""
    return f"upi://pay?pa={quote(upi_id, safe='@')}&pn={quote(payee_name or '', safe='')}&am={amount}&cu={currency}"


def _normalize_upi_id(value) -> str:
    upi_id = str(value or "").strip()
    if upi_id and not UPI_ID_PATTERN.match(upi_id):
        raise ValidationError("upi_id must look like name@handle")
    return upi_id


def _normalize_payment_method(value) -> str:
    method = str(value or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {value}. Must be one of {PAYMENT_METHODS}")
    return method


def _refresh_qr_payload(invoice: Invoice) -> None:
    if invoice.upi_id and invoice.payment_status != PAYMENT_STATUS_PAID:
        invoice.qr_payload = build_upi_payload(
            invoice.upi_id,
            invoice.restaurant_name,
            int(invoice.grand_total),
            current_app.config.get("DEFAULT_CURRENCY", "INR"),
        )
    else:
        invoice.qr_payload = ""


def _gst_rate() -> Decimal:
    return parse_amount(current_app.config.get("GST_RATE_PERCENT", "5"), "GST_RATE_PERCENT")


def _scoped_query(invoice_id: int, restaurant_id: int):
    return db.session.query(Invoice).filter_by(id=invoice_id, restaurant_id=restaurant_id)


# =============================================================================
# CREATE
# =============================================================================

def create_invoice(
    order_id: int,
    restaurant_id: int,
    overrides: dict | None = None,
    *,
    now: Optional[datetime] = None,
) -> Invoice:
    """
    Issue an invoice for one of the restaurant's orders.

    Args:
        order_id: Order being billed (must belong to restaurant_id)
        restaurant_id: Authenticated tenant
        overrides: Optional customer/discount/payment fields (see CREATE_POLICY)
        now: Invoice date; also selects the numbering month

    Returns:
        The committed Invoice

    Raises:
        ValidationError: bad override fields or an order with no items
        NotFoundError: order or restaurant missing / owned by another restaurant
        ConflictError: no free invoice number after the configured insert attempts
    """
    patch = validate_payload(model=Invoice, payload=overrides, policy=CREATE_POLICY, partial=True)
    enforce_rules_invoice_discount(patch)
    if "payment_method" in patch:
        patch["payment_method"] = _normalize_payment_method(patch["payment_method"])
    if "upi_id" in patch:
        patch["upi_id"] = _normalize_upi_id(patch["upi_id"])

    now = now or utcnow()
    gst_rate = _gst_rate()
    hsn_code = current_app.config.get("INVOICE_DEFAULT_HSN_CODE", "996331")
    attempts = current_app.config.get("INVOICE_INSERT_ATTEMPTS", 5)

    rejected: set[str] = set()
    candidate: dict = {}

    def _op() -> Invoice:
        restaurant = require_restaurant(restaurant_id)
        order = require_order_in_restaurant(order_id, restaurant_id)
        if not order.items:
            raise ValidationError("Order has no items to invoice")

        lines = [
            InvoiceLine(
                name=item.name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_amount=item.unit_price * item.quantity,
                tax_code=hsn_code,
            )
            for item in order.items
        ]
        subtotal = sum((line.line_amount for line in lines), Decimal("0"))

        breakdown = calculate_taxes(
            subtotal,
            patch.get("discount") or 0,
            patch.get("discount_percentage") or 0,
            bool(patch.get("is_inter_state", False)),
            gst_rate=gst_rate,
        )

        paid_amount = patch.get("paid_amount") or Decimal("0")
        snapshot = restaurant.snapshot()

        invoice = Invoice(
            restaurant_id=restaurant_id,
            order_id=order.id,
            customer_name=patch.get("customer_name") or DEFAULT_CUSTOMER_NAME,
            customer_phone=patch.get("customer_phone") or "",
            customer_email=patch.get("customer_email") or "",
            customer_gstin=patch.get("customer_gstin") or "",
            restaurant_name=snapshot["name"],
            restaurant_address=snapshot["address"],
            restaurant_phone=snapshot["phone"],
            restaurant_email=snapshot["email"],
            restaurant_gst_number=snapshot["gst_number"],
            restaurant_logo_url=snapshot["logo_url"],
            payment_method=patch.get("payment_method") or PAYMENT_METHOD_PENDING,
            paid_amount=paid_amount,
            payment_status=compute_payment_status(paid_amount, breakdown.grand_total),
            upi_id=patch.get("upi_id") or "",
            table_number=order.table_number,
            notes=patch.get("notes") or "",
            terms_and_conditions=(
                patch.get("terms_and_conditions")
                or current_app.config.get("INVOICE_DEFAULT_TERMS", "")
            ),
            invoice_date=now,
            due_date=patch.get("due_date"),
            lines=lines,
            **breakdown.invoice_fields(),
        )
        _refresh_qr_payload(invoice)

        invoice.invoice_number = allocate_invoice_number(restaurant_id, now=now, exclude=rejected)
        candidate["number"] = invoice.invoice_number

        db.session.add(invoice)
        db.session.commit()
        return invoice

    for attempt in range(attempts):
        try:
            invoice = run_with_retry(_op)
        except IntegrityError:
            rejected.add(candidate["number"])
            current_app.logger.warning(
                "Invoice number %s already taken for restaurant_id=%s (attempt %s/%s)",
                candidate["number"], restaurant_id, attempt + 1, attempts,
            )
            continue
        current_app.logger.info(
            "Invoice %s created for order_id=%s restaurant_id=%s grand_total=%s",
            invoice.invoice_number, order_id, restaurant_id, invoice.grand_total,
        )
        return invoice

    raise ConflictError("Could not allocate a unique invoice number; retry the request")


# =============================================================================
# READ
# =============================================================================

def get_invoice(invoice_id: int, restaurant_id: int) -> Invoice:
    invoice = _scoped_query(invoice_id, restaurant_id).first()
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def list_invoices(
    restaurant_id: int,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    payment_status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Tenant-scoped invoice listing, newest first.

    Args:
        restaurant_id: Authenticated tenant
        start_date / end_date: Inclusive invoice_date bounds
        payment_status: paid, unpaid or partial
        page: Page number (1-indexed, default 1)
        per_page: Items per page (default 50, max 100)

    Returns:
        Dict with 'items', 'count' and 'pagination'
    """
    query = db.session.query(Invoice).filter(Invoice.restaurant_id == restaurant_id)

    if start_date is not None:
        query = query.filter(Invoice.invoice_date >= start_date)
    if end_date is not None:
        query = query.filter(Invoice.invoice_date <= end_date)
    if payment_status:
        status = payment_status.strip().lower()
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {payment_status}. Must be one of {PAYMENT_STATUSES}")
        query = query.filter(Invoice.payment_status == status)

    query = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())

    if page is not None and page < 1:
        raise ValidationError("page must be >= 1")
    if per_page is not None and per_page < 1:
        raise ValidationError("per_page must be >= 1")
    per_page = min(per_page or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)
    page = page or 1

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    invoices = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [inv.to_dict() for inv in invoices],
        "count": len(invoices),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


# =============================================================================
# UPDATE
# =============================================================================

def update_invoice(invoice_id: int, restaurant_id: int, fields: dict | None) -> Invoice:
    """
    Edit customer details, notes, terms or the discount.

    A discount change re-runs the tax calculator over the stored subtotal and
    keeps the invoice's original jurisdiction. Payment status and the UPI
    payload follow the new grand total in the same commit.
    """
    patch = validate_payload(model=Invoice, payload=fields, policy=UPDATE_POLICY, partial=True)
    enforce_rules_invoice_discount(patch)

    def _op() -> Invoice:
        invoice = lock_for_update(_scoped_query(invoice_id, restaurant_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")

        discount_changed = "discount" in patch or "discount_percentage" in patch

        for key in ("customer_name", "customer_phone", "customer_email", "customer_gstin",
                    "notes", "terms_and_conditions"):
            if key in patch:
                setattr(invoice, key, patch[key] if patch[key] is not None else "")

        if discount_changed:
            discount = patch.get("discount", invoice.discount)
            pct = patch.get("discount_percentage", invoice.discount_percentage)
            breakdown = calculate_taxes(
                invoice.subtotal,
                discount if discount is not None else 0,
                pct if pct is not None else 0,
                invoice.is_inter_state,
                gst_rate=_gst_rate(),
            )
            for key, value in breakdown.invoice_fields().items():
                setattr(invoice, key, value)
            invoice.payment_status = compute_payment_status(invoice.paid_amount, invoice.grand_total)
            _refresh_qr_payload(invoice)

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def update_payment_status(
    invoice_id: int,
    restaurant_id: int,
    payment_method,
    paid_amount,
) -> Invoice:
    """
    Record the amount paid so far and re-derive payment_status.

    Settling the originating order is the caller's step: when the returned
    invoice is `paid`, call order_service.mark_order_paid().
    """
    method = _normalize_payment_method(payment_method)
    amount = parse_amount(paid_amount, "paid_amount")

    def _op() -> Invoice:
        invoice = lock_for_update(_scoped_query(invoice_id, restaurant_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")

        invoice.payment_method = method
        invoice.paid_amount = amount
        invoice.payment_status = compute_payment_status(amount, invoice.grand_total)
        _refresh_qr_payload(invoice)

        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    current_app.logger.info(
        "Invoice %s payment updated: method=%s paid=%s status=%s",
        invoice.invoice_number, method, amount, invoice.payment_status,
    )
    return invoice


def mark_email_sent(invoice_id: int, restaurant_id: int, *, now: Optional[datetime] = None) -> Invoice:
    """Flag the invoice as delivered by the (external) mailer."""
    def _op() -> Invoice:
        invoice = lock_for_update(_scoped_query(invoice_id, restaurant_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")
        invoice.email_sent = True
        invoice.email_sent_at = now or utcnow()
        db.session.commit()
        return invoice

    return run_with_retry(_op)


# =============================================================================
# DELETE
# =============================================================================

def delete_invoice(invoice_id: int, restaurant_id: int) -> None:
    """
    Raises:
        NotFoundError: invoice missing or owned by another restaurant
        ConflictError: invoice is paid (left unchanged)
    """
    def _op() -> None:
        invoice = lock_for_update(_scoped_query(invoice_id, restaurant_id)).first()
        if invoice is None:
            raise NotFoundError("Invoice not found")
        if invoice.payment_status == PAYMENT_STATUS_PAID:
            raise ConflictError("Cannot delete a paid invoice")
        number = invoice.invoice_number
        db.session.delete(invoice)
        db.session.commit()
        current_app.logger.info("Invoice %s deleted for restaurant_id=%s", number, restaurant_id)

    run_with_retry(_op)


# =============================================================================
# DOCUMENT
# =============================================================================

def generate_document(
    invoice_id: int,
    restaurant_id: int,
    renderer: Callable[[dict], bytes],
) -> bytes:
    """
    Render the finalized invoice with an external renderer (PDF, HTML, ...).

    The renderer receives the invoice snapshot dict and returns bytes.
    """
    invoice = get_invoice(invoice_id, restaurant_id)
    return renderer(invoice.to_dict())


# =============================================================================
# STATS
# =============================================================================

def invoice_stats(
    restaurant_id: int,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> dict:
    """
    Per-restaurant invoice totals over an optional invoice_date range.

    total_partial is the amount still outstanding on partially paid invoices.
    """
    query = db.session.query(Invoice).filter(Invoice.restaurant_id == restaurant_id)
    if start_date is not None:
        query = query.filter(Invoice.invoice_date >= start_date)
    if end_date is not None:
        query = query.filter(Invoice.invoice_date <= end_date)
    invoices = query.all()

    zero = Decimal("0")
    by_status = {status: [] for status in PAYMENT_STATUSES}
    method_counts = {method: 0 for method in PAYMENT_METHODS}
    for inv in invoices:
        by_status.setdefault(inv.payment_status, []).append(inv)
        method_counts[inv.payment_method] = method_counts.get(inv.payment_method, 0) + 1

    stats = {
        "total_invoices": len(invoices),
        "total_revenue": sum((inv.grand_total for inv in invoices), zero),
        "total_paid": sum((inv.paid_amount for inv in by_status[PAYMENT_STATUS_PAID]), zero),
        "total_unpaid": sum((inv.grand_total for inv in by_status[PAYMENT_STATUS_UNPAID]), zero),
        "total_partial": sum(
            (inv.grand_total - inv.paid_amount for inv in by_status[PAYMENT_STATUS_PARTIAL]),
            zero,
        ),
        "total_tax": sum((inv.total_tax for inv in invoices), zero),
        "total_discount": sum((inv.discount for inv in invoices), zero),
        "payment_method_breakdown": method_counts,
        "status_breakdown": {status: len(rows) for status, rows in by_status.items()},
    }
    return stats
