# Overview: Order creation and the status state machine, coupled to stock and audit writes.

"""
Order Lifecycle Service

================================================================================
PURPOSE: Create priced orders and move them through the kitchen lifecycle,
keeping ingredient stock and its audit log consistent with order status.
================================================================================

STATE MACHINE:
    Pending -> Preparing -> Ready -> Served | Completed
    Pending | Preparing | Ready -> Cancelled

    Pending:    priced, no stock committed; cancel is a pure status update
    Preparing:  accepted by the kitchen; ingredients deducted (ORDER_DEDUCT)
    Ready:      stock still committed
    Served / Completed / Cancelled: terminal

STOCK COUPLING:
- Pending -> Preparing validates and deducts the aggregated recipe
  requirement, one ORDER_DEDUCT entry per ingredient.
- Preparing | Ready -> Cancelled restores the logged deduction with one
  ORDER_RESTORE entry per ingredient, unless the order has a paid payment,
  in which case stock stays as is and only the status changes.
- Every other transition touches status only.

RULES:
1. Current status is read from the locked row, never from the caller.
2. Each call is one unit of work: status, stock and log commit together or
   not at all.
3. Totals come from FinancialCalculator using catalog prices read at
   creation; clients never send prices.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db, order_created, order_status_changed
from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..models import Order, OrderLine
from venue_orders.validation import CreateOrderRequest
from . import audit_service, catalog_service, payment_service, stock_ledger_service
from .concurrency import run_with_retry, unit_of_work, with_locked_order
from .financial_service import FinancialCalculator, get_calculator


STATUS_PENDING = "Pending"
STATUS_PREPARING = "Preparing"
STATUS_READY = "Ready"
STATUS_SERVED = "Served"
STATUS_COMPLETED = "Completed"
STATUS_CANCELLED = "Cancelled"

VALID_STATUSES = (
    STATUS_PENDING,
    STATUS_PREPARING,
    STATUS_READY,
    STATUS_SERVED,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
)
TERMINAL_STATUSES = {STATUS_SERVED, STATUS_COMPLETED, STATUS_CANCELLED}
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_PREPARING, STATUS_READY)

# Statuses in which the order's ingredients have been deducted
STOCK_COMMITTED_STATUSES = {STATUS_PREPARING, STATUS_READY}

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: {STATUS_PREPARING, STATUS_CANCELLED},
    STATUS_PREPARING: {STATUS_READY, STATUS_CANCELLED},
    STATUS_READY: {STATUS_SERVED, STATUS_COMPLETED, STATUS_CANCELLED},
}

_STATUS_LOOKUP = {status.lower(): status for status in VALID_STATUSES}


@dataclass(frozen=True)
class OrderCreated:
    order_id: int
    grand_total_cents: int


@dataclass(frozen=True)
class StatusChanged:
    order_id: int
    previous_status: str
    status: str
    stock_restored: bool = False


def normalize_status(value) -> str:
    """
    Map caller input onto a canonical status ('preparing' -> 'Preparing').

    Raises ValidationError for anything outside the fixed set.
    """
    if not isinstance(value, str) or value.strip().lower() not in _STATUS_LOOKUP:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {', '.join(VALID_STATUSES)}",
            details={"allowed": list(VALID_STATUSES)},
        )
    return _STATUS_LOOKUP[value.strip().lower()]


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, ())


def create_order(request: CreateOrderRequest, *, calculator: FinancialCalculator | None = None) -> OrderCreated:
    """
    Create a Pending order with server-computed totals.

    Lines are priced from the catalog as it is now; that price is stored on
    the line and never looked up again. No stock is reserved at this point.

    Raises:
        NotFoundError: a menu item does not exist or is unavailable
    """
    calculator = calculator or get_calculator()

    def _op() -> OrderCreated:
        with unit_of_work():
            order = Order(
                customer_id=request.customer_id,
                order_kind=request.order_kind,
                destination=request.destination.strip(),
                instructions=request.instructions,
                status=STATUS_PENDING,
            )
            db.session.add(order)
            db.session.flush()

            priced = []
            for item in request.items:
                menu_item = catalog_service.get_orderable_item(item.menu_item_id)
                unit_price = menu_item.price_cents
                db.session.add(OrderLine(
                    order_id=order.id,
                    menu_item_id=menu_item.id,
                    quantity=item.quantity,
                    unit_price_cents=unit_price,
                    line_total_cents=unit_price * item.quantity,
                    instructions=item.instructions,
                ))
                priced.append((unit_price, item.quantity))

            totals = calculator.calculate_lines(priced)
            order.items_subtotal_cents = totals.items_subtotal_cents
            order.service_charge_cents = totals.service_charge_cents
            order.tax_cents = totals.tax_cents
            order.grand_total_cents = totals.grand_total_cents
            db.session.flush()
            return OrderCreated(order_id=order.id, grand_total_cents=totals.grand_total_cents)

    result = run_with_retry(_op)
    current_app.logger.info(
        "Order %s created (%d lines, total %d cents)",
        result.order_id, len(request.items), result.grand_total_cents,
    )
    _notify(order_created, result.order_id, STATUS_PENDING)
    return result


def _accept(order: Order, acting_staff_id: int) -> None:
    lines = db.session.query(OrderLine).filter_by(order_id=order.id).order_by(OrderLine.id).all()
    requirements = stock_ledger_service.validate(lines)
    changes = stock_ledger_service.adjust(requirements, stock_ledger_service.DIRECTION_DEDUCT)
    for change in changes:
        audit_service.append_stock_change(
            ingredient_id=change.ingredient_id,
            order_id=order.id,
            action=audit_service.ACTION_ORDER_DEDUCT,
            quantity_change=change.quantity_change,
            resulting_level=change.resulting_level,
            staff_id=acting_staff_id,
        )
    order.assigned_staff_id = acting_staff_id


def _restore(order: Order, acting_staff_id: int) -> bool:
    if payment_service.has_paid_payment(order.id):
        current_app.logger.info("Order %s is paid; cancelling without restoring stock", order.id)
        return False

    deducted = audit_service.outstanding_deductions(order.id)
    changes = stock_ledger_service.adjust(deducted, stock_ledger_service.DIRECTION_RESTORE)
    for change in changes:
        audit_service.append_stock_change(
            ingredient_id=change.ingredient_id,
            order_id=order.id,
            action=audit_service.ACTION_ORDER_RESTORE,
            quantity_change=change.quantity_change,
            resulting_level=change.resulting_level,
            staff_id=acting_staff_id,
        )
    return bool(changes)


def transition_status(order_id: int, requested_status, acting_staff_id: int) -> StatusChanged:
    """
    Move an order to `requested_status` under its row lock.

    Raises:
        ValidationError: unknown status value (before any unit of work)
        NotFoundError: order does not exist
        InvalidTransitionError: target not reachable from the locked status
        InsufficientStockError: accept with not enough ingredients
        ConcurrencyError / PersistenceError: store trouble, fully rolled back
    """
    target = normalize_status(requested_status)
    if isinstance(acting_staff_id, bool) or not isinstance(acting_staff_id, int):
        raise ValidationError("acting staff id is required")

    def _apply(order: Order) -> StatusChanged:
        previous = order.status
        if not can_transition(previous, target):
            raise InvalidTransitionError(order.id, previous, target)

        restored = False
        if target == STATUS_PREPARING:
            _accept(order, acting_staff_id)
        elif target == STATUS_CANCELLED and previous in STOCK_COMMITTED_STATUSES:
            restored = _restore(order, acting_staff_id)

        order.status = target
        db.session.flush()
        return StatusChanged(order_id=order.id, previous_status=previous, status=target, stock_restored=restored)

    result = run_with_retry(lambda: with_locked_order(order_id, _apply))
    current_app.logger.info(
        "Order %s: %s -> %s by staff %s", order_id, result.previous_status, result.status, acting_staff_id,
    )
    _notify(order_status_changed, order_id, result.status, previous_status=result.previous_status)
    return result


def _notify(signal, order_id: int, status: str, *, previous_status: str | None = None) -> None:
    """
    Publish after commit; receiver failures never undo the committed order.

    `status` is the one this call committed, never a re-read of the row.
    """
    order = db.session.get(Order, order_id)
    if order is None:
        return
    payload = {
        "order_id": order.id,
        "status": status,
        "previous_status": previous_status,
        "lines": [line.to_dict() for line in order.lines],
    }
    try:
        signal.send(current_app._get_current_object(), **payload)
    except Exception:
        current_app.logger.exception("Receiver of %s failed for order %s", signal.name, order_id)


def get_order(order_id: int) -> dict:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return {
        **order.to_dict(),
        "lines": [line.to_dict() for line in order.lines],
        "payments": [payment.to_dict() for payment in payment_service.list_payments(order_id)],
    }


def list_orders(*, status: str | None = None, customer_id: int | None = None, limit: int = 100) -> list[Order]:
    """Newest first."""
    q = db.session.query(Order)
    if status is not None:
        q = q.filter(Order.status == normalize_status(status))
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def list_kitchen_orders() -> list[dict]:
    """Active orders for the kitchen display, oldest first, with their lines."""
    orders = (
        db.session.query(Order)
        .filter(Order.status.in_(ACTIVE_STATUSES))
        .order_by(Order.created_at, Order.id)
        .all()
    )
    return [{**order.to_dict(), "lines": [line.to_dict() for line in order.lines]} for order in orders]
