from __future__ import annotations

from ..extensions import db
from venue_orders.time_utils import to_utc_z


class Ingredient(db.Model):
    """
    Stock-tracked raw material.

    stock_level is a stored running balance, kept equal to the replay of
    stock_change_logs for the ingredient. Only stock_ledger_service writes it.
    """
    __tablename__ = "ingredients"
    __table_args__ = (
        db.CheckConstraint("stock_level >= 0", name="ck_ingredients_stock_nonnegative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    unit = db.Column(db.String(16), nullable=False)  # g, ml, pcs ...

    stock_level = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    reorder_threshold = db.Column(db.Numeric(12, 3), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Ingredient id={self.id} name={self.name!r} stock_level={self.stock_level}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock_level <= self.reorder_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "stock_level": str(self.stock_level),
            "reorder_threshold": str(self.reorder_threshold),
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockChangeLog(db.Model):
    """
    Append-only audit trail of stock movements.

    ACTIONS:
    - ORDER_DEDUCT: order accepted into preparation (negative change)
    - ORDER_RESTORE: accepted order cancelled before payment (positive change)
    - RESTOCK: manual intake (positive change, no order)
    - WASTE: manual write-off (negative change, no order)

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_change_logs"
    __table_args__ = (
        db.Index("ix_stock_logs_ingredient_occurred", "ingredient_id", "occurred_at"),
        db.Index("ix_stock_logs_order_action", "order_id", "action"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    action = db.Column(db.String(16), nullable=False, index=True)

    # Signed: negative for deductions/waste, positive for restores/restock
    quantity_change = db.Column(db.Numeric(12, 3), nullable=False)
    resulting_level = db.Column(db.Numeric(12, 3), nullable=False)

    staff_id = db.Column(db.Integer, nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    ingredient = db.relationship("Ingredient", backref=db.backref("stock_changes", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient.name if self.ingredient else None,
            "order_id": self.order_id,
            "action": self.action,
            "quantity_change": str(self.quantity_change),
            "resulting_level": str(self.resulting_level),
            "staff_id": self.staff_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
