# Overview: Service-layer operations for ingredient stock; validation, adjustment and intake.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Ingredient, OrderLine
from venue_orders.validation import normalize_quantity, positive_quantity
from . import audit_service, catalog_service
from .concurrency import lock_for_update, run_with_retry, unit_of_work
"""
Stock Ledger Invariants (authoritative)

Stock model:
- Ingredient.stock_level is a stored running balance (fast reads for the
  kitchen), and the stock_change_logs table is its full history.
- Reconciliation: stock_level == SUM(quantity_change) over the ingredient's log.
- stock_level never goes negative as a committed value (also a DB check).

Mutation rules:
- This module is the only writer of Ingredient.stock_level.
- Ingredient rows are locked in ascending id order before being written.
- Every adjustment is paired with exactly one audit entry in the same
  transaction (order transitions append them in order_service; manual
  intake/waste appends them here).
- Deduction for an order is preceded by validate() in the same unit of work.
- Restoration replays the logged deduction, not the current recipe.
"""

DIRECTION_DEDUCT = "deduct"
DIRECTION_RESTORE = "restore"
VALID_DIRECTIONS = {DIRECTION_DEDUCT, DIRECTION_RESTORE}


@dataclass(frozen=True)
class StockChange:
    ingredient_id: int
    ingredient_name: str
    quantity_change: Decimal
    resulting_level: Decimal


def requirements_for_lines(lines: Iterable[OrderLine]) -> dict[int, Decimal]:
    """
    Expand order lines through their recipes and aggregate per ingredient.

    Two lines for the same dish (or two dishes sharing an ingredient) add up,
    so the shortage check sees the real total the order needs.
    """
    required: dict[int, Decimal] = {}
    for line in lines:
        for ingredient_id, per_unit in catalog_service.get_recipe(line.menu_item_id):
            required[ingredient_id] = required.get(ingredient_id, Decimal("0")) + per_unit * line.quantity
    return {ingredient_id: normalize_quantity(qty) for ingredient_id, qty in sorted(required.items())}


def _lock_ingredients(ingredient_ids: Iterable[int]) -> dict[int, Ingredient]:
    ids = sorted(set(ingredient_ids))
    if not ids:
        return {}
    query = (
        db.session.query(Ingredient)
        .filter(Ingredient.id.in_(ids))
        .order_by(Ingredient.id)
        .populate_existing()
    )
    rows = {ingredient.id: ingredient for ingredient in lock_for_update(query).all()}
    missing = [i for i in ids if i not in rows]
    if missing:
        raise NotFoundError(
            f"Ingredient {missing[0]} not found",
            details={"ingredient_id": missing[0]},
        )
    return rows


def validate(lines: Iterable[OrderLine]) -> dict[int, Decimal]:
    """
    Check that current stock covers the aggregated requirement of `lines`.

    Read-only. Raises InsufficientStockError for the first ingredient (by id)
    that is short. Returns the aggregated requirements so the caller can pass
    the same working set to adjust().
    """
    required = requirements_for_lines(lines)
    ingredients = _lock_ingredients(required)
    for ingredient_id, qty in required.items():
        ingredient = ingredients[ingredient_id]
        available = normalize_quantity(ingredient.stock_level)
        if qty > available:
            raise InsufficientStockError(ingredient.id, ingredient.name, qty, available)
    return required


def adjust(requirements: dict[int, Decimal], direction: str) -> list[StockChange]:
    """
    Apply one signed update per ingredient: negative for deduct, positive for restore.

    Does not write audit entries; the caller appends one per returned change
    before committing.
    """
    if direction not in VALID_DIRECTIONS:
        raise ValueError(f"Unknown stock direction {direction!r}")

    ingredients = _lock_ingredients(requirements)
    changes = []
    for ingredient_id in sorted(requirements):
        qty = normalize_quantity(requirements[ingredient_id])
        if qty <= 0:
            continue
        ingredient = ingredients[ingredient_id]
        current = normalize_quantity(ingredient.stock_level)
        delta = -qty if direction == DIRECTION_DEDUCT else qty
        new_level = current + delta
        if new_level < 0:
            raise InsufficientStockError(ingredient.id, ingredient.name, qty, current)
        ingredient.stock_level = new_level
        changes.append(StockChange(
            ingredient_id=ingredient.id,
            ingredient_name=ingredient.name,
            quantity_change=delta,
            resulting_level=new_level,
        ))
    db.session.flush()
    return changes


def _manual_movement(ingredient_id: int, quantity, action: str, staff_id: int | None, note: str | None) -> dict:
    qty = positive_quantity(quantity)
    direction = DIRECTION_RESTORE if action == audit_service.ACTION_RESTOCK else DIRECTION_DEDUCT

    def _op():
        with unit_of_work(immediate=True):
            changes = adjust({ingredient_id: qty}, direction)
            change = changes[0]
            entry = audit_service.append_stock_change(
                ingredient_id=ingredient_id,
                action=action,
                quantity_change=change.quantity_change,
                resulting_level=change.resulting_level,
                staff_id=staff_id,
                note=note,
            )
            return {"ingredient_id": ingredient_id, "log_id": entry.id, "stock_level": change.resulting_level}

    result = run_with_retry(_op)
    current_app.logger.info(
        "Stock %s for ingredient %s: %s (now %s)",
        action, ingredient_id, qty, result["stock_level"],
    )
    return result


def receive_stock(ingredient_id: int, quantity, *, staff_id: int | None = None, note: str | None = None) -> dict:
    """Manual intake (delivery, opening balance)."""
    return _manual_movement(ingredient_id, quantity, audit_service.ACTION_RESTOCK, staff_id, note)


def record_waste(ingredient_id: int, quantity, *, staff_id: int | None = None, note: str | None = None) -> dict:
    """Manual write-off. Rejected with InsufficientStockError if more than on hand."""
    return _manual_movement(ingredient_id, quantity, audit_service.ACTION_WASTE, staff_id, note)


def apply_manual_movement(ingredient_id: int, action: str, quantity, *, staff_id=None, note=None) -> dict:
    if action == audit_service.ACTION_RESTOCK:
        return receive_stock(ingredient_id, quantity, staff_id=staff_id, note=note)
    if action == audit_service.ACTION_WASTE:
        return record_waste(ingredient_id, quantity, staff_id=staff_id, note=note)
    raise ValidationError(
        f"Invalid stock action '{action}'. Must be one of: "
        f"{audit_service.ACTION_RESTOCK}, {audit_service.ACTION_WASTE}"
    )


def create_ingredient(
    name: str,
    unit: str,
    *,
    opening_stock=0,
    reorder_threshold=0,
    staff_id: int | None = None,
) -> Ingredient:
    """
    Register an ingredient at zero and book any opening stock as RESTOCK,
    so the log replays to the stored level from day one.

    Insert and opening entry commit together.

    Raises:
        ValidationError: blank name/unit, negative quantities, duplicate name
    """
    name = (name or "").strip()
    unit = (unit or "").strip()
    if not name or not unit:
        raise ValidationError("name and unit are required")
    threshold = normalize_quantity(reorder_threshold)
    if threshold < 0:
        raise ValidationError("reorder_threshold cannot be negative")
    opening = normalize_quantity(opening_stock)
    if opening < 0:
        raise ValidationError("opening_stock cannot be negative")
    if opening > 0:
        opening = positive_quantity(opening, "opening_stock")

    def _op() -> Ingredient:
        with unit_of_work(immediate=True):
            ingredient = Ingredient(name=name, unit=unit, stock_level=Decimal("0"), reorder_threshold=threshold)
            db.session.add(ingredient)
            _flush_unique_name(name)

            if opening > 0:
                change = adjust({ingredient.id: opening}, DIRECTION_RESTORE)[0]
                audit_service.append_stock_change(
                    ingredient_id=ingredient.id,
                    action=audit_service.ACTION_RESTOCK,
                    quantity_change=change.quantity_change,
                    resulting_level=change.resulting_level,
                    staff_id=staff_id,
                    note="Opening stock",
                )
            return ingredient

    ingredient = run_with_retry(_op)
    current_app.logger.info("Ingredient %s (%s) created with %s %s", ingredient.id, name, opening, unit)
    return ingredient


def _flush_unique_name(name: str) -> None:
    try:
        db.session.flush()
    except IntegrityError:
        raise ValidationError(
            f"An ingredient named '{name}' already exists",
            details={"name": name},
        )


def get_ingredient(ingredient_id: int) -> Ingredient:
    ingredient = db.session.get(Ingredient, ingredient_id)
    if ingredient is None:
        raise NotFoundError(f"Ingredient {ingredient_id} not found", details={"ingredient_id": ingredient_id})
    return ingredient


def update_ingredient(
    ingredient_id: int,
    *,
    name: str | None = None,
    unit: str | None = None,
    reorder_threshold=None,
) -> Ingredient:
    """
    Change descriptive fields. stock_level is not editable here; stock moves
    only through adjust() with an audit entry.
    """
    if name is not None and not name.strip():
        raise ValidationError("name must not be empty")
    if unit is not None and not unit.strip():
        raise ValidationError("unit must not be empty")
    threshold = None
    if reorder_threshold is not None:
        threshold = normalize_quantity(reorder_threshold)
        if threshold < 0:
            raise ValidationError("reorder_threshold cannot be negative")

    def _op() -> Ingredient:
        with unit_of_work(immediate=True):
            ingredient = _lock_ingredients([ingredient_id])[ingredient_id]
            if name is not None:
                ingredient.name = name.strip()
            if unit is not None:
                ingredient.unit = unit.strip()
            if threshold is not None:
                ingredient.reorder_threshold = threshold
            _flush_unique_name(ingredient.name)
            return ingredient

    ingredient = run_with_retry(_op)
    current_app.logger.info("Ingredient %s details updated", ingredient_id)
    return ingredient


def list_ingredients(*, low_stock_only: bool = False) -> list[Ingredient]:
    q = db.session.query(Ingredient)
    if low_stock_only:
        q = q.filter(Ingredient.stock_level <= Ingredient.reorder_threshold)
    return q.order_by(Ingredient.name).all()


def reconcile() -> list[dict]:
    """
    Compare every ingredient's stored level with the replay of its log.

    Returns the mismatches (empty list when the ledger is consistent).
    """
    replayed = audit_service.replayed_levels()
    mismatches = []
    for ingredient in db.session.query(Ingredient).order_by(Ingredient.id).all():
        stored = normalize_quantity(ingredient.stock_level)
        expected = replayed.get(ingredient.id, normalize_quantity(0))
        if stored != expected:
            mismatches.append({
                "ingredient_id": ingredient.id,
                "ingredient_name": ingredient.name,
                "stock_level": str(stored),
                "replayed_level": str(expected),
                "difference": str(stored - expected),
            })
    return mismatches
