# Overview: Manual payment recording and the paid-payment lookup used on cancellation.

"""
Payment recording

WHY: Gateway checkout lives outside this service. What the order engine
needs is (1) a place for the cashier flow to record an outcome and (2) an
answer to "has this order been paid" when a prepared order is cancelled.

POLICY:
- Any payment row with status 'paid' means the order counts as paid,
  no matter how many partial rows exist.
- Payments are recorded under the order row lock and are refused for
  Cancelled orders, so a payment can never land after a cancellation has
  already restored stock.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import PaymentError
from ..models import Order, Payment
from .concurrency import run_with_retry, with_locked_order


METHOD_CASH = "CASH"
METHOD_CARD = "CARD"
METHOD_E_WALLET = "E_WALLET"

VALID_METHODS = [METHOD_CASH, METHOD_CARD, METHOD_E_WALLET]

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"


def has_paid_payment(order_id: int) -> bool:
    count = (
        db.session.query(func.count(Payment.id))
        .filter(Payment.order_id == order_id, Payment.status == PAYMENT_PAID)
        .scalar()
    )
    return bool(count)


def amount_paid_cents(order_id: int) -> int:
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount_cents - Payment.change_cents), 0))
        .filter(Payment.order_id == order_id, Payment.status == PAYMENT_PAID)
        .scalar()
    )
    return int(total or 0)


def record_payment(
    order_id: int,
    method: str,
    amount_cents: int,
    *,
    staff_id: int | None = None,
    reference_number: str | None = None,
) -> Payment:
    """
    Record a completed payment against an order.

    Cash over-tender is kept as change; other methods may not exceed the
    balance still due.

    Raises:
        PaymentError: invalid method/amount, cancelled or unpriced order
        NotFoundError: order does not exist
    """
    if method not in VALID_METHODS:
        raise PaymentError(f"Invalid payment method: {method}. Must be one of {VALID_METHODS}")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise PaymentError("Payment amount must be a positive number of cents")

    def _record(order: Order) -> Payment:
        if order.status == "Cancelled":
            raise PaymentError(f"Cannot record payment for cancelled order {order.id}")
        if not order.is_priced:
            raise PaymentError(f"Order {order.id} has no computed total")

        balance_due = order.grand_total_cents - amount_paid_cents(order.id)
        if balance_due <= 0:
            raise PaymentError(f"Order {order.id} is already fully paid")

        change = 0
        if amount_cents > balance_due:
            if method != METHOD_CASH:
                raise PaymentError(
                    "Non-cash payment cannot exceed balance due",
                    details={"balance_due_cents": balance_due},
                )
            change = amount_cents - balance_due

        payment = Payment(
            order_id=order.id,
            method=method,
            amount_cents=amount_cents,
            change_cents=change,
            status=PAYMENT_PAID,
            reference_number=reference_number,
            recorded_by_staff_id=staff_id,
        )
        db.session.add(payment)
        db.session.flush()
        return payment

    payment = run_with_retry(lambda: with_locked_order(order_id, _record))
    current_app.logger.info(
        "Recorded %s payment %s for order %s (%s cents)", method, payment.id, order_id, amount_cents,
    )
    return payment


def list_payments(order_id: int) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at, Payment.id)
        .all()
    )
