# Overview: Read-only lookups into the menu catalog (prices, availability, recipes).

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..errors import NotFoundError
from ..models import MenuItem, RecipeRequirement


def get_orderable_item(menu_item_id: int) -> MenuItem:
    """
    Current catalog row for pricing a new order line.

    Unavailable items are treated the same as missing ones: they cannot be
    ordered, and the caller's unit of work is aborted.
    """
    item = db.session.query(MenuItem).filter_by(id=menu_item_id).first()
    if item is None or not item.is_available:
        raise NotFoundError(
            f"Menu item {menu_item_id} not found",
            details={"menu_item_id": menu_item_id},
        )
    return item


def get_recipe(menu_item_id: int) -> list[tuple[int, Decimal]]:
    """(ingredient_id, quantity_per_unit) pairs; empty for untracked items."""
    rows = (
        db.session.query(RecipeRequirement.ingredient_id, RecipeRequirement.quantity_per_unit)
        .filter(RecipeRequirement.menu_item_id == menu_item_id)
        .order_by(RecipeRequirement.ingredient_id)
        .all()
    )
    return [(ingredient_id, Decimal(qty)) for ingredient_id, qty in rows]


def list_menu_items(*, available_only: bool = True) -> list[MenuItem]:
    q = db.session.query(MenuItem)
    if available_only:
        q = q.filter(MenuItem.is_available.is_(True))
    return q.order_by(MenuItem.category, MenuItem.name).all()
