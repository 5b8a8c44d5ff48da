from __future__ import annotations

from ..extensions import db
from restobill.time_utils import to_utc_z


ORDER_STATUS_NEW = "NEW"
ORDER_STATUS_PREPARING = "PREPARING"
ORDER_STATUS_SERVED = "SERVED"
ORDER_STATUS_PAID = "PAID"


class Order(db.Model):
    """
    Table order placed through the POS. Read-only input to invoicing, apart
    from the explicit settlement step once its invoice is fully paid.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_restaurant_status", "restaurant_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    table_number = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_NEW)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    restaurant = db.relationship("Restaurant", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    @property
    def total_amount(self):
        return sum((item.unit_price * item.quantity for item in self.items), 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "table_number": self.table_number,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
        }
