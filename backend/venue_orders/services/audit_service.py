# Overview: Append-only stock change log; writes and reads of the audit trail.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func

from ..extensions import db
from ..models import StockChangeLog
from venue_orders.time_utils import utcnow
from venue_orders.validation import normalize_quantity
"""
Stock Audit Log Invariants (authoritative)

- Append-only: no update/delete path exists in this module.
- Entries are written inside the same DB transaction as the stock
  adjustment they document, after the adjustment and before commit.
- ORDER_DEDUCT / ORDER_RESTORE entries always carry the order id.
- Replaying quantity_change per ingredient from zero yields stock_level.
"""

ACTION_ORDER_DEDUCT = "ORDER_DEDUCT"
ACTION_ORDER_RESTORE = "ORDER_RESTORE"
ACTION_RESTOCK = "RESTOCK"
ACTION_WASTE = "WASTE"

VALID_ACTIONS = {ACTION_ORDER_DEDUCT, ACTION_ORDER_RESTORE, ACTION_RESTOCK, ACTION_WASTE}
ORDER_ACTIONS = {ACTION_ORDER_DEDUCT, ACTION_ORDER_RESTORE}


def append_stock_change(
    *,
    ingredient_id: int,
    action: str,
    quantity_change: Decimal,
    resulting_level: Decimal,
    order_id: int | None = None,
    staff_id: int | None = None,
    note: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> StockChangeLog:
    if action not in VALID_ACTIONS:
        raise ValueError(f"Unknown stock change action {action!r}")
    if action in ORDER_ACTIONS and order_id is None:
        raise ValueError(f"{action} entries must reference an order")

    entry = StockChangeLog(
        ingredient_id=ingredient_id,
        order_id=order_id,
        action=action,
        quantity_change=quantity_change,
        resulting_level=resulting_level,
        staff_id=staff_id,
        note=note,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def outstanding_deductions(order_id: int) -> dict[int, Decimal]:
    """
    Quantities deducted for an order and not yet restored, per ingredient.

    This is what a cancellation gives back: the logged deduction, never a
    recomputation from the current recipes.
    """
    rows = (
        db.session.query(StockChangeLog.ingredient_id, func.sum(StockChangeLog.quantity_change))
        .filter(
            StockChangeLog.order_id == order_id,
            StockChangeLog.action.in_(sorted(ORDER_ACTIONS)),
        )
        .group_by(StockChangeLog.ingredient_id)
        .order_by(StockChangeLog.ingredient_id)
        .all()
    )
    outstanding = {}
    for ingredient_id, net_change in rows:
        net = normalize_quantity(net_change or 0)
        if net < 0:
            outstanding[ingredient_id] = -net
    return outstanding


def list_stock_changes(
    *,
    ingredient_id: int | None = None,
    order_id: int | None = None,
    action: str | None = None,
    since: datetime | None = None,
    limit: int = 200,
) -> list[StockChangeLog]:
    """Newest first."""
    q = db.session.query(StockChangeLog)
    if ingredient_id is not None:
        q = q.filter(StockChangeLog.ingredient_id == ingredient_id)
    if order_id is not None:
        q = q.filter(StockChangeLog.order_id == order_id)
    if action is not None:
        q = q.filter(StockChangeLog.action == action)
    if since is not None:
        q = q.filter(StockChangeLog.occurred_at >= since)
    return q.order_by(StockChangeLog.occurred_at.desc(), StockChangeLog.id.desc()).limit(limit).all()


def replayed_levels() -> dict[int, Decimal]:
    """Sum of signed changes per ingredient, as replayed from zero."""
    rows = (
        db.session.query(StockChangeLog.ingredient_id, func.sum(StockChangeLog.quantity_change))
        .group_by(StockChangeLog.ingredient_id)
        .all()
    )
    return {ingredient_id: normalize_quantity(total or 0) for ingredient_id, total in rows}
