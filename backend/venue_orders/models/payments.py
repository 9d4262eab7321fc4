from __future__ import annotations

from ..extensions import db
from venue_orders.time_utils import to_utc_z


class Payment(db.Model):
    """
    Payment outcome for an order.

    Populated by the cashier/gateway flow. The order engine only asks one
    question of this table: does the order have any payment with status 'paid'.

    STATUSES: pending, paid, failed, refunded
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_order_status", "order_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False)  # CASH, CARD, E_WALLET
    amount_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="paid")

    # Card auth code, e-wallet reference, etc.
    reference_number = db.Column(db.String(128), nullable=True)
    recorded_by_staff_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "change_cents": self.change_cents,
            "status": self.status,
            "reference_number": self.reference_number,
            "recorded_by_staff_id": self.recorded_by_staff_id,
            "created_at": to_utc_z(self.created_at),
        }
