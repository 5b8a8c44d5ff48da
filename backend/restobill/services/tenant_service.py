"""
Tenant Scoping Helpers

Every billing query is scoped by the authenticated restaurant id. The caller
(request handler) has already authenticated; these helpers only resolve
entities inside that scope.

SECURITY INVARIANTS:
1. An entity owned by another restaurant is reported exactly like a missing one
2. Ownership is checked in the query itself, never by a second comparison
3. Cross-tenant probes are logged

USAGE:
    from restobill.services.tenant_service import require_order_in_restaurant

    order = require_order_in_restaurant(order_id, g.restaurant_id)
"""

from flask import current_app, g

from ..extensions import db
from ..models import Order, Restaurant
from ..validation import NotFoundError


def get_current_restaurant_id() -> int:
    """
    Authenticated restaurant id from the request context.

    Raises NotFoundError if the caller never established tenant context.
    """
    restaurant_id = getattr(g, "restaurant_id", None)
    if restaurant_id is None:
        raise NotFoundError("Restaurant context not established")
    return restaurant_id


def require_restaurant(restaurant_id: int) -> Restaurant:
    restaurant = db.session.get(Restaurant, restaurant_id) if restaurant_id else None
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return restaurant


def require_order_in_restaurant(order_id: int, restaurant_id: int) -> Order:
    """
    Load an order that belongs to the restaurant.

    Raises:
        NotFoundError: order is absent or owned by another restaurant
    """
    order = (
        db.session.query(Order)
        .filter_by(id=order_id, restaurant_id=restaurant_id)
        .first()
    )
    if order is None:
        if db.session.query(Order.id).filter_by(id=order_id).first() is not None:
            current_app.logger.warning(
                "Cross-tenant order access denied: order_id=%s restaurant_id=%s",
                order_id, restaurant_id,
            )
        raise NotFoundError("Order not found")
    return order
