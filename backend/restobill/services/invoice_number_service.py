# Overview: Per-restaurant, per-month invoice number allocation.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from flask import current_app

from ..extensions import db
from ..models import Invoice
from restobill.time_utils import utcnow

INVOICE_PREFIX = "INV"
SEQUENCE_PAD = 4


def month_prefix(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"{INVOICE_PREFIX}-{now.year:04d}{now.month:02d}-"


def allocate_invoice_number(
    restaurant_id: int,
    *,
    now: Optional[datetime] = None,
    exclude: Iterable[str] = (),
    max_probes: Optional[int] = None,
) -> str:
    """
    Pick the lowest free INV-YYYYMM-#### number for a restaurant.

    The probe only reduces collisions. Uniqueness is guaranteed by the
    (restaurant_id, invoice_number) constraint; callers retry the insert with
    the rejected number in `exclude` when it fires.

    After `max_probes` taken candidates the number falls back to a
    millisecond-clock suffix so allocation always makes progress.
    """
    prefix = month_prefix(now)
    if max_probes is None:
        max_probes = current_app.config.get("INVOICE_NUMBER_MAX_PROBES", 100)

    taken = {
        number
        for (number,) in db.session.query(Invoice.invoice_number)
        .filter(
            Invoice.restaurant_id == restaurant_id,
            Invoice.invoice_number.like(f"{prefix}%"),
        )
        .all()
    }
    taken.update(exclude)

    for sequence in range(1, max_probes + 1):
        candidate = f"{prefix}{sequence:0{SEQUENCE_PAD}d}"
        if candidate not in taken:
            return candidate

    # Wall clock, not `now`: repeated fallbacks must not repeat the suffix.
    millis = int(utcnow().timestamp() * 1000)
    fallback = f"{prefix}{millis % 1_000_000:06d}"
    current_app.logger.warning(
        "Invoice number probe exhausted after %s candidates for restaurant_id=%s; using %s",
        max_probes, restaurant_id, fallback,
    )
    return fallback
