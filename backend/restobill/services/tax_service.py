# Overview: GST computation for restaurant invoices; pure functions, no database work.

"""
Tax Calculator

Turns an invoice subtotal plus discount inputs into the itemized GST
breakdown and rounded grand total. Used when an invoice is created and
again whenever its discount is edited.

RULES:
- A positive discount_percentage always wins over a flat discount value.
- The flat discount is clamped to the subtotal; the taxable amount is never negative.
- Intra-state supplies split the GST rate evenly into CGST + SGST.
- Inter-state supplies carry the whole rate as IGST.
- grand_total is rounded to the nearest rupee (half up); round_off is the
  signed difference and always satisfies |round_off| <= 0.5.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..validation import ValidationError, parse_amount, parse_percentage

DEFAULT_GST_RATE = Decimal("5")

ROUND = Decimal("0.0001")
RUPEE = Decimal("1")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _q(value: Decimal) -> Decimal:
    return value.quantize(ROUND, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxLine:
    rate: Decimal
    amount: Decimal

    def to_dict(self) -> dict:
        return {"rate": str(self.rate), "amount": str(self.amount)}


@dataclass(frozen=True)
class TaxBreakdown:
    subtotal: Decimal
    discount: Decimal
    discount_percentage: Decimal
    amount_after_discount: Decimal
    is_inter_state: bool
    cgst: TaxLine
    sgst: TaxLine
    igst: TaxLine
    total_tax: Decimal
    total_amount: Decimal
    round_off: Decimal
    grand_total: Decimal

    def invoice_fields(self) -> dict:
        """Column values for an Invoice row."""
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "discount_percentage": self.discount_percentage,
            "is_inter_state": self.is_inter_state,
            "cgst_rate": self.cgst.rate,
            "cgst_amount": self.cgst.amount,
            "sgst_rate": self.sgst.rate,
            "sgst_amount": self.sgst.amount,
            "igst_rate": self.igst.rate,
            "igst_amount": self.igst.amount,
            "total_tax": self.total_tax,
            "total_amount": self.total_amount,
            "round_off": self.round_off,
            "grand_total": self.grand_total,
        }

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "discount_percentage": str(self.discount_percentage),
            "amount_after_discount": str(self.amount_after_discount),
            "is_inter_state": self.is_inter_state,
            "tax_details": {
                "cgst": self.cgst.to_dict(),
                "sgst": self.sgst.to_dict(),
                "igst": self.igst.to_dict(),
            },
            "total_tax": str(self.total_tax),
            "total_amount": str(self.total_amount),
            "round_off": str(self.round_off),
            "grand_total": str(self.grand_total),
        }


def calculate_taxes(
    subtotal,
    discount=0,
    discount_percentage=0,
    is_inter_state: bool = False,
    *,
    gst_rate=DEFAULT_GST_RATE,
) -> TaxBreakdown:
    """
    Compute discount, GST components and the rounded grand total.

    Args:
        subtotal: Sum of line amounts (>= 0)
        discount: Flat discount amount (>= 0); ignored when discount_percentage > 0
        discount_percentage: Percentage discount in [0, 100]
        is_inter_state: True for IGST, False for CGST + SGST
        gst_rate: Combined GST rate in percent

    Raises:
        ValidationError: negative or malformed amounts, percentage outside [0, 100]
    """
    subtotal = parse_amount(subtotal, "subtotal")
    flat_discount = parse_amount(discount, "discount")
    pct = parse_percentage(discount_percentage)
    rate = parse_amount(gst_rate, "gst_rate")
    if rate > HUNDRED:
        raise ValidationError("gst_rate must be between 0 and 100")

    if pct > ZERO:
        discount_amount = _q(subtotal * pct / HUNDRED)
    else:
        discount_amount = _q(flat_discount)
    discount_amount = min(discount_amount, subtotal)

    amount_after_discount = subtotal - discount_amount

    if is_inter_state:
        cgst = TaxLine(ZERO, ZERO)
        sgst = TaxLine(ZERO, ZERO)
        igst = TaxLine(rate, _q(amount_after_discount * rate / HUNDRED))
    else:
        half_rate = rate / 2
        half_amount = _q(amount_after_discount * half_rate / HUNDRED)
        cgst = TaxLine(half_rate, half_amount)
        sgst = TaxLine(half_rate, half_amount)
        igst = TaxLine(ZERO, ZERO)

    total_tax = cgst.amount + sgst.amount + igst.amount
    total_amount = amount_after_discount + total_tax
    grand_total = total_amount.quantize(RUPEE, rounding=ROUND_HALF_UP)
    round_off = grand_total - total_amount

    return TaxBreakdown(
        subtotal=subtotal,
        discount=discount_amount,
        discount_percentage=pct,
        amount_after_discount=amount_after_discount,
        is_inter_state=bool(is_inter_state),
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        total_amount=total_amount,
        round_off=round_off,
        grand_total=grand_total,
    )
