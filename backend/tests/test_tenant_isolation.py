# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for billing records.

These tests create two restaurants, each with its own order, then verify that:
1. Restaurant A cannot read, edit, pay or delete Restaurant B's invoices
2. Another tenant's record is reported exactly like a missing one
3. Listings and stats only ever include the caller's own rows
4. Cross-tenant order probes are logged

Test Coverage:
- Orders: invoicing another tenant's order blocked
- Invoices: cross-tenant read/write/delete blocked
- Notifications: cross-tenant mark-read blocked
- Transactions: cross-tenant read/refund blocked
"""

import logging
from decimal import Decimal

import pytest
from flask import g

from restobill.models import Invoice
from restobill.services import subscription_service
from restobill.services.invoice_service import (
    create_invoice,
    delete_invoice,
    generate_document,
    get_invoice,
    invoice_stats,
    list_invoices,
    mark_email_sent,
    update_invoice,
    update_payment_status,
)
from restobill.services.order_service import mark_order_paid
from restobill.services.tenant_service import (
    get_current_restaurant_id,
    require_order_in_restaurant,
    require_restaurant,
)
from restobill.validation import NotFoundError


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_order_in_restaurant_valid(self, db_session, restaurant_a, order_a):
        """Order in its own restaurant passes validation."""
        result = require_order_in_restaurant(order_a.id, restaurant_a.id)
        assert result.id == order_a.id

    def test_require_order_in_restaurant_cross_tenant(self, db_session, restaurant_a, order_b):
        """Order from a different restaurant raises NotFoundError."""
        with pytest.raises(NotFoundError):
            require_order_in_restaurant(order_b.id, restaurant_a.id)

    def test_require_order_in_restaurant_nonexistent(self, db_session, restaurant_a):
        """Non-existent order raises the same NotFoundError."""
        with pytest.raises(NotFoundError) as missing:
            require_order_in_restaurant(99999, restaurant_a.id)
        assert str(missing.value) == "Order not found"

    def test_cross_tenant_probe_logged(self, db_session, restaurant_a, order_b, caplog):
        """Cross-tenant access attempt is logged."""
        with caplog.at_level(logging.WARNING):
            with pytest.raises(NotFoundError):
                require_order_in_restaurant(order_b.id, restaurant_a.id)

        assert "Cross-tenant order access denied" in caplog.text

    def test_missing_order_not_logged(self, db_session, restaurant_a, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.raises(NotFoundError):
                require_order_in_restaurant(99999, restaurant_a.id)

        assert "Cross-tenant" not in caplog.text

    def test_require_restaurant(self, db_session, restaurant_a):
        assert require_restaurant(restaurant_a.id).name == "Spice Garden"
        with pytest.raises(NotFoundError):
            require_restaurant(99999)

    def test_get_current_restaurant_id(self, app, db_session, restaurant_a):
        with app.test_request_context():
            with pytest.raises(NotFoundError):
                get_current_restaurant_id()
            g.restaurant_id = restaurant_a.id
            assert get_current_restaurant_id() == restaurant_a.id


class TestInvoiceIsolation:
    """Invoices are only reachable through their own restaurant."""

    @pytest.fixture
    def invoice_b(self, db_session, restaurant_b, order_b, now):
        return create_invoice(order_b.id, restaurant_b.id, now=now)

    def test_cannot_invoice_foreign_order(self, db_session, restaurant_a, order_b, now):
        with pytest.raises(NotFoundError):
            create_invoice(order_b.id, restaurant_a.id, now=now)
        assert db_session.query(Invoice).count() == 0

    def test_cannot_read_foreign_invoice(self, db_session, restaurant_a, invoice_b):
        with pytest.raises(NotFoundError):
            get_invoice(invoice_b.id, restaurant_a.id)
        with pytest.raises(NotFoundError):
            generate_document(invoice_b.id, restaurant_a.id, lambda data: b"")

    def test_cannot_modify_foreign_invoice(self, db_session, restaurant_a, restaurant_b, invoice_b):
        invoice_id = invoice_b.id

        with pytest.raises(NotFoundError):
            update_invoice(invoice_id, restaurant_a.id, {"discount_percentage": 50})
        with pytest.raises(NotFoundError):
            update_payment_status(invoice_id, restaurant_a.id, "cash", 1)
        with pytest.raises(NotFoundError):
            mark_email_sent(invoice_id, restaurant_a.id)
        with pytest.raises(NotFoundError):
            delete_invoice(invoice_id, restaurant_a.id)

        untouched = get_invoice(invoice_id, restaurant_b.id)
        assert untouched.discount == Decimal("0")
        assert untouched.paid_amount == Decimal("0")
        assert untouched.email_sent is False

    def test_listing_and_stats_scoped(self, db_session, restaurant_a, order_a, invoice_b, now):
        create_invoice(order_a.id, restaurant_a.id, now=now)

        listed = list_invoices(restaurant_a.id)
        assert listed["pagination"]["total"] == 1
        assert all(item["restaurant_id"] == restaurant_a.id for item in listed["items"])
        assert invoice_stats(restaurant_a.id)["total_invoices"] == 1

    def test_cannot_settle_foreign_order(self, db_session, restaurant_a, restaurant_b, order_b, invoice_b):
        update_payment_status(invoice_b.id, restaurant_b.id, "cash", 1049)
        with pytest.raises(NotFoundError):
            mark_order_paid(order_b.id, restaurant_a.id)


class TestSubscriptionIsolation:
    def test_notifications_scoped(self, db_session, restaurant_a, restaurant_b, now):
        subscription_service.create_subscription(restaurant_a.id, now=now)
        subscription_service.create_subscription(restaurant_b.id, now=now)
        subscription_service.add_notification(restaurant_a.id, "payment_due", "Invoice due", now=now)

        assert subscription_service.list_notifications(restaurant_b.id) == []

    def test_usage_counters_scoped(self, db_session, restaurant_a, restaurant_b, now):
        subscription_service.create_subscription(restaurant_a.id, now=now)
        subscription_service.create_subscription(restaurant_b.id, now=now)

        subscription_service.increment_usage(restaurant_a.id, "tablesCount", 3)

        assert subscription_service.get_subscription(restaurant_b.id).tables_count == 0
