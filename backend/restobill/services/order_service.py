# Overview: Order settlement step performed by the caller once an invoice is fully paid.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Invoice, Order
from ..models.orders import ORDER_STATUS_PAID
from ..validation import ConflictError, NotFoundError
from .concurrency import lock_for_update, run_with_retry


def mark_order_paid(order_id: int, restaurant_id: int) -> Order:
    """
    Move an order to PAID after its invoice reports `paid`.

    Invoicing never mutates orders; the caller runs this step explicitly.
    Idempotent for an order that is already PAID.

    Raises:
        NotFoundError: order missing or owned by another restaurant
        ConflictError: no paid invoice exists for the order
    """
    def _op() -> Order:
        order = lock_for_update(
            db.session.query(Order).filter_by(id=order_id, restaurant_id=restaurant_id)
        ).first()
        if order is None:
            raise NotFoundError("Order not found")
        if order.status == ORDER_STATUS_PAID:
            return order

        paid_invoice = (
            db.session.query(Invoice.id)
            .filter_by(order_id=order_id, restaurant_id=restaurant_id, payment_status="paid")
            .first()
        )
        if paid_invoice is None:
            raise ConflictError("Order has no paid invoice")

        order.status = ORDER_STATUS_PAID
        db.session.commit()
        current_app.logger.info("Order %s marked PAID for restaurant_id=%s", order_id, restaurant_id)
        return order

    return run_with_retry(_op)
