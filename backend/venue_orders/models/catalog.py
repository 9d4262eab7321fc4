from __future__ import annotations

from ..extensions import db
from venue_orders.time_utils import to_utc_z


class MenuItem(db.Model):
    """
    Catalog item as owned by menu management.

    The order engine only reads `price_cents` and existence/availability.
    Prices here may change at any time; order lines keep their own snapshot.
    """
    __tablename__ = "menu_items"
    __table_args__ = (
        db.Index("ix_menu_items_category_available", "category", "is_available"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<MenuItem id={self.id} name={self.name!r} price_cents={self.price_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
        }


class RecipeRequirement(db.Model):
    """Ingredient quantity consumed by ONE unit of a menu item."""
    __tablename__ = "recipe_requirements"
    __table_args__ = (
        db.UniqueConstraint("menu_item_id", "ingredient_id", name="uq_recipe_item_ingredient"),
        db.CheckConstraint("quantity_per_unit > 0", name="ck_recipe_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    menu_item_id = db.Column(db.Integer, db.ForeignKey("menu_items.id"), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey("ingredients.id"), nullable=False, index=True)
    quantity_per_unit = db.Column(db.Numeric(12, 3), nullable=False)

    menu_item = db.relationship("MenuItem", backref=db.backref("recipe", lazy=True))
    ingredient = db.relationship("Ingredient")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "menu_item_id": self.menu_item_id,
            "ingredient_id": self.ingredient_id,
            "quantity_per_unit": str(self.quantity_per_unit),
        }
