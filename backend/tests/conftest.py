"""
Pytest fixtures for restobill tests.

Provides an in-memory application, per-test table wipe, and two-tenant
fixtures (restaurant A and B, each with one order).
"""

from datetime import datetime
from decimal import Decimal

import pytest

from restobill import create_app
from restobill.extensions import db
from restobill.models import Order, OrderItem, Restaurant


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def now():
    """Fixed clock: mid-March 2026."""
    return datetime(2026, 3, 15, 10, 0, 0)


@pytest.fixture(scope='function')
def restaurant_a(db_session):
    """Restaurant A (first tenant)."""
    restaurant = Restaurant(
        name="Spice Garden",
        address="12 MG Road, Bengaluru",
        phone="+91-80-5550-0101",
        email="billing@spicegarden.in",
        gst_number="29ABCDE1234F1Z5",
    )
    db_session.add(restaurant)
    db_session.commit()
    return restaurant


@pytest.fixture(scope='function')
def restaurant_b(db_session):
    """Restaurant B (second tenant)."""
    restaurant = Restaurant(name="Coastal Curry", address="4 Beach Rd, Chennai")
    db_session.add(restaurant)
    db_session.commit()
    return restaurant


def _make_order(db_session, restaurant, table_number, items):
    order = Order(restaurant_id=restaurant.id, table_number=table_number)
    for name, quantity, unit_price in items:
        order.items.append(OrderItem(name=name, quantity=quantity, unit_price=Decimal(unit_price)))
    db_session.add(order)
    db_session.commit()
    return order


@pytest.fixture(scope='function')
def order_a(db_session, restaurant_a):
    """Order for restaurant A with a subtotal of 1000."""
    return _make_order(db_session, restaurant_a, "T4", [
        ("Paneer Tikka", 2, "350"),
        ("Butter Naan", 4, "75"),
    ])


@pytest.fixture(scope='function')
def order_b(db_session, restaurant_b):
    """Order for restaurant B with a subtotal of 999."""
    return _make_order(db_session, restaurant_b, "B1", [
        ("Fish Thali", 1, "999"),
    ])
