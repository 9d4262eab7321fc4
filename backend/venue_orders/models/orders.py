from __future__ import annotations

from ..extensions import db
from venue_orders.time_utils import to_utc_z


class Order(db.Model):
    """
    Customer/staff order document.

    Financial fields are either all NULL (not priced yet, only visible inside
    the creating unit of work) or all set by the FinancialCalculator.
    Status moves only through order_service.transition_status.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for walk-in orders
    customer_id = db.Column(db.Integer, nullable=True, index=True)

    order_kind = db.Column(db.String(16), nullable=False)  # DINE_IN, ROOM_SERVICE, WALK_IN, TAKE_OUT
    destination = db.Column(db.String(64), nullable=False)  # table / room / counter label
    instructions = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="Pending", index=True)

    # Pricing (all amounts in cents)
    items_subtotal_cents = db.Column(db.Integer, nullable=True)
    service_charge_cents = db.Column(db.Integer, nullable=True)
    tax_cents = db.Column(db.Integer, nullable=True)
    grand_total_cents = db.Column(db.Integer, nullable=True)

    # Staff member who accepted the order into preparation
    assigned_staff_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} destination={self.destination!r}>"

    @property
    def is_priced(self) -> bool:
        return self.grand_total_cents is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_kind": self.order_kind,
            "destination": self.destination,
            "instructions": self.instructions,
            "status": self.status,
            "items_subtotal_cents": self.items_subtotal_cents,
            "service_charge_cents": self.service_charge_cents,
            "tax_cents": self.tax_cents,
            "grand_total_cents": self.grand_total_cents,
            "assigned_staff_id": self.assigned_staff_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class OrderLine(db.Model):
    """One menu item and quantity on an order. Immutable after creation."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    # Price snapshot at order time; never re-read from the catalog
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    instructions = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("lines", lazy=True, order_by="OrderLine.id"))
    menu_item = db.relationship("MenuItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "menu_item_id": self.menu_item_id,
            "item_name": self.menu_item.name if self.menu_item else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "instructions": self.instructions,
        }
