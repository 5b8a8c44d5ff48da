# Overview: Pytest coverage for transactions, refunds and the financial summary.

from datetime import timedelta
from decimal import Decimal

import pytest

from restobill.models import Transaction
from restobill.services.transaction_service import (
    create_transaction,
    financial_summary,
    get_transaction,
    list_transactions,
    refund_transaction,
)
from restobill.validation import AlreadyExistsError, ConflictError, NotFoundError, ValidationError


def _payment(restaurant, now, transaction_id="pay_001", **extra):
    data = {
        "type": "payment",
        "amount": "999",
        "transaction_id": transaction_id,
        "status": "completed",
        "payment_method": "upi",
        "plan": "basic",
    }
    data.update(extra)
    return create_transaction(restaurant.id, data, now=now)


class TestCreateTransaction:
    def test_create(self, db_session, restaurant_a, now):
        txn = _payment(restaurant_a, now, metadata={"gateway": "razorpay"})

        assert txn.type == "PAYMENT"
        assert txn.status == "completed"
        assert txn.payment_method == "UPI"
        assert txn.amount == Decimal("999")
        assert txn.currency == "INR"
        assert txn.created_at == now
        assert txn.to_dict()["metadata"] == {"gateway": "razorpay"}

    def test_defaults(self, db_session, restaurant_a, now):
        txn = create_transaction(restaurant_a.id, {
            "type": "SUBSCRIPTION",
            "amount": 2999,
            "transaction_id": "sub_001",
        }, now=now)

        assert txn.status == "pending"
        assert txn.payment_method == "UPI"
        assert txn.to_dict()["metadata"] == {}

    def test_duplicate_transaction_id(self, db_session, restaurant_a, restaurant_b, now):
        _payment(restaurant_a, now)
        with pytest.raises(AlreadyExistsError):
            _payment(restaurant_b, now)
        assert db_session.query(Transaction).count() == 1

    @pytest.mark.parametrize("overrides", [
        {"type": "GIFT"},
        {"status": "settled"},
        {"payment_method": "barter"},
        {"amount": "-1"},
        {"metadata": ["not", "a", "dict"]},
        {"unknown_field": 1},
    ])
    def test_invalid_fields(self, db_session, restaurant_a, now, overrides):
        with pytest.raises(ValidationError):
            _payment(restaurant_a, now, **overrides)

    def test_missing_required(self, db_session, restaurant_a, now):
        with pytest.raises(ValidationError):
            create_transaction(restaurant_a.id, {"type": "PAYMENT", "amount": 10}, now=now)

    def test_unknown_plan(self, db_session, restaurant_a, now):
        with pytest.raises(ConflictError):
            _payment(restaurant_a, now, plan="gold")

    def test_unknown_restaurant(self, db_session, now):
        with pytest.raises(NotFoundError):
            create_transaction(99999, {"type": "PAYMENT", "amount": 10, "transaction_id": "x1"}, now=now)


class TestReadTransactions:
    def test_get_scoped(self, db_session, restaurant_a, restaurant_b, now):
        txn = _payment(restaurant_a, now)

        assert get_transaction(txn.id).id == txn.id
        assert get_transaction(txn.id, restaurant_a.id).id == txn.id
        with pytest.raises(NotFoundError):
            get_transaction(txn.id, restaurant_b.id)

    def test_list_filters(self, db_session, restaurant_a, restaurant_b, now):
        _payment(restaurant_a, now, "pay_001")
        _payment(restaurant_a, now + timedelta(minutes=1), "pay_002", status="failed")
        _payment(restaurant_b, now, "pay_003")

        mine = list_transactions(restaurant_id=restaurant_a.id)
        assert mine["pagination"]["total"] == 2
        assert [item["transaction_id"] for item in mine["items"]] == ["pay_002", "pay_001"]

        failed = list_transactions(status="FAILED")
        assert [item["transaction_id"] for item in failed["items"]] == ["pay_002"]

        payments = list_transactions(type="payment", per_page=1)
        assert payments["count"] == 1
        assert payments["pagination"]["total_pages"] == 3

        with pytest.raises(ValidationError):
            list_transactions(type="GIFT")

    @pytest.mark.parametrize("paging", [{"page": 0}, {"per_page": 0}, {"per_page": -1}])
    def test_list_rejects_non_positive_paging(self, db_session, restaurant_a, now, paging):
        _payment(restaurant_a, now)
        with pytest.raises(ValidationError):
            list_transactions(**paging)


class TestRefunds:
    def test_full_refund(self, db_session, restaurant_a, now):
        txn = _payment(restaurant_a, now)

        original, refund = refund_transaction(
            txn.id, reason="Duplicate charge", processed_by="admin@restobill.in", now=now
        )

        assert original.status == "refunded"
        assert original.refunded_at == now
        assert refund.type == "REFUND"
        assert refund.status == "completed"
        assert refund.amount == Decimal("999")
        assert refund.refund_reason == "Duplicate charge"
        assert refund.processed_by == "admin@restobill.in"
        assert refund.transaction_id.startswith("REFUND-")
        assert refund.transaction_id.endswith(f"-{txn.id}")
        assert refund.meta == {"original_transaction_id": txn.id, "original_transaction": "pay_001"}

    def test_partial_refund(self, db_session, restaurant_a, now):
        txn = _payment(restaurant_a, now)
        _, refund = refund_transaction(txn.id, amount="499", now=now)
        assert refund.amount == Decimal("499")

    def test_refund_twice_rejected(self, db_session, restaurant_a, now):
        txn = _payment(restaurant_a, now)
        _, refund = refund_transaction(txn.id, now=now)

        with pytest.raises(ConflictError):
            refund_transaction(txn.id, now=now)
        with pytest.raises(ConflictError):
            refund_transaction(refund.id, now=now)
        assert db_session.query(Transaction).filter_by(type="REFUND").count() == 1

    def test_only_completed_refundable(self, db_session, restaurant_a, now):
        txn = _payment(restaurant_a, now, status="pending")
        with pytest.raises(ConflictError):
            refund_transaction(txn.id, now=now)

    def test_amount_bounds(self, db_session, restaurant_a, now):
        txn = _payment(restaurant_a, now)
        with pytest.raises(ValidationError):
            refund_transaction(txn.id, amount=0, now=now)
        with pytest.raises(ValidationError):
            refund_transaction(txn.id, amount="1000", now=now)
        assert get_transaction(txn.id).status == "completed"

    def test_refund_scoped_to_restaurant(self, db_session, restaurant_a, restaurant_b, now):
        txn = _payment(restaurant_a, now)
        with pytest.raises(NotFoundError):
            refund_transaction(txn.id, restaurant_id=restaurant_b.id, now=now)


class TestFinancialSummary:
    def test_summary(self, db_session, restaurant_a, restaurant_b, now):
        first = _payment(restaurant_a, now, "pay_001")
        create_transaction(restaurant_a.id, {
            "type": "SUBSCRIPTION",
            "amount": "2999",
            "transaction_id": "sub_001",
            "status": "completed",
            "payment_method": "CARD",
            "plan": "professional",
        }, now=now)
        _payment(restaurant_b, now, "pay_002", status="failed", amount="500")

        window = (now - timedelta(days=1), now + timedelta(days=1))
        summary = financial_summary(*window)

        assert summary["transaction_count"] == 2
        assert summary["total_revenue"] == Decimal("3998")
        assert summary["total_refunds"] == Decimal("0")
        assert summary["by_plan"]["professional"] == {"count": 1, "amount": Decimal("2999")}
        assert summary["by_payment_method"]["UPI"]["count"] == 1

        refund_transaction(first.id, amount="499", now=now)
        summary = financial_summary(*window)

        # the refunded payment keeps its full amount; the refund row offsets it
        assert summary["transaction_count"] == 3
        assert summary["total_revenue"] == Decimal("3998")
        assert summary["total_refunds"] == Decimal("499")
        assert summary["net_revenue"] == Decimal("3499")
        assert summary["by_type"]["REFUND"]["count"] == 1

    def test_full_refund_leaves_retained_revenue(self, db_session, restaurant_a, now):
        kept = _payment(restaurant_a, now, "pay_001", amount="2999")
        returned = _payment(restaurant_a, now, "pay_002")
        refund_transaction(returned.id, now=now)

        summary = financial_summary(now - timedelta(days=1), now + timedelta(days=1))

        assert summary["total_revenue"] == Decimal("3998")
        assert summary["total_refunds"] == Decimal("999")
        assert summary["net_revenue"] == kept.amount
        assert summary["by_type"]["PAYMENT"] == {"count": 2, "amount": Decimal("3998")}

    def test_summary_scoped(self, db_session, restaurant_a, restaurant_b, now):
        _payment(restaurant_a, now, "pay_001")
        _payment(restaurant_b, now, "pay_002")

        summary = financial_summary(now - timedelta(days=1), now + timedelta(days=1), restaurant_id=restaurant_b.id)
        assert summary["transaction_count"] == 1

    def test_summary_requires_ordered_range(self, db_session, now):
        with pytest.raises(ValidationError):
            financial_summary(now, now - timedelta(days=1))
