# Overview: Pytest coverage for order creation and the status state machine.

"""
Order lifecycle tests.

Cover pricing at creation, the accept/cancel stock coupling, the paid-order
cancellation policy, transition rules, and all-or-nothing rollback.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from venue_orders.extensions import db, order_created, order_status_changed
from venue_orders.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from venue_orders.models import MenuItem, Order, OrderLine, RecipeRequirement
from venue_orders.services import audit_service, order_service, payment_service, stock_ledger_service
from venue_orders.validation import CreateOrderRequest, OrderItemRequest

from conftest import log_entries, order_status, stock_of

STAFF = 11


class TestCreateOrder:
    def test_totals_are_computed_server_side(self, place_order, burger, fries):
        result = place_order((burger, 2), (fries, 1))

        order = db.session.get(Order, result.order_id)
        assert order.status == "Pending"
        assert order.items_subtotal_cents == 43500
        assert order.service_charge_cents == 4350
        assert order.tax_cents == 5742
        assert order.grand_total_cents == 53592
        assert result.grand_total_cents == order.grand_total_cents
        assert order.grand_total_cents == (
            order.items_subtotal_cents + order.service_charge_cents + order.tax_cents
        )

    def test_lines_snapshot_catalog_price(self, place_order, burger):
        result = place_order((burger, 2))

        burger.price_cents = 99900
        db.session.commit()

        line = db.session.query(OrderLine).filter_by(order_id=result.order_id).one()
        assert line.unit_price_cents == 18000
        assert line.line_total_cents == 36000
        assert db.session.get(Order, result.order_id).items_subtotal_cents == 36000

    def test_creation_does_not_touch_stock(self, place_order, burger, beef):
        place_order((burger, 3))

        assert stock_of(beef.id) == Decimal("1000")
        assert log_entries(action=audit_service.ACTION_ORDER_DEDUCT) == []

    def test_unknown_menu_item_aborts_whole_order(self, place_order, burger):
        missing = MenuItem(id=9999, name="Ghost", price_cents=1)
        with pytest.raises(NotFoundError):
            place_order((burger, 1), (missing, 1))

        assert db.session.query(Order).count() == 0
        assert db.session.query(OrderLine).count() == 0

    def test_unavailable_menu_item_is_not_orderable(self, place_order, burger):
        burger.is_available = False
        db.session.commit()

        with pytest.raises(NotFoundError):
            place_order((burger, 1))
        assert db.session.query(Order).count() == 0

    def test_walk_in_without_customer(self, place_order, soda):
        result = place_order((soda, 1), order_kind="WALK_IN", destination="Counter")

        order = db.session.get(Order, result.order_id)
        assert order.customer_id is None
        assert order.order_kind == "WALK_IN"

    def test_custom_rates_via_injected_calculator(self, db_session, soda):
        from venue_orders.services.financial_service import FinancialCalculator, FinancialRates

        request = CreateOrderRequest(
            order_kind="TAKE_OUT",
            destination="Counter",
            items=(OrderItemRequest(menu_item_id=soda.id, quantity=2),),
        )
        result = order_service.create_order(
            request, calculator=FinancialCalculator(FinancialRates(service_charge_bps=0, tax_bps=0)),
        )
        assert result.grand_total_cents == 9000

    def test_emits_order_created(self, place_order, soda):
        received = []

        def receiver(sender, **payload):
            received.append(payload)

        with order_created.connected_to(receiver):
            result = place_order((soda, 2))

        assert received[0]["order_id"] == result.order_id
        assert received[0]["status"] == "Pending"
        assert received[0]["lines"][0]["quantity"] == 2


class TestAcceptOrder:
    def test_burger_example_deduct_then_cancel(self, place_order, burger, beef, bun):
        order_id = place_order((burger, 2)).order_id

        result = order_service.transition_status(order_id, "Preparing", STAFF)

        assert result.status == "Preparing"
        assert stock_of(beef.id) == Decimal("700")
        assert stock_of(bun.id) == Decimal("8")
        deducts = log_entries(order_id, audit_service.ACTION_ORDER_DEDUCT)
        beef_entry = [e for e in deducts if e.ingredient_id == beef.id]
        assert len(beef_entry) == 1
        assert beef_entry[0].quantity_change == Decimal("-300")
        assert beef_entry[0].resulting_level == Decimal("700")
        assert beef_entry[0].staff_id == STAFF
        assert db.session.get(Order, order_id).assigned_staff_id == STAFF

        result = order_service.transition_status(order_id, "Cancelled", STAFF)

        assert result.stock_restored is True
        assert stock_of(beef.id) == Decimal("1000")
        assert stock_of(bun.id) == Decimal("10")
        restores = log_entries(order_id, audit_service.ACTION_ORDER_RESTORE)
        assert sorted(e.ingredient_id for e in restores) == sorted([beef.id, bun.id])
        assert [e.quantity_change for e in restores if e.ingredient_id == beef.id] == [Decimal("300")]
        assert stock_ledger_service.reconcile() == []

    def test_requirements_aggregate_across_lines(self, db_session, burger, beef):
        request = CreateOrderRequest(
            order_kind="DINE_IN",
            destination="Table 1",
            items=(
                OrderItemRequest(menu_item_id=burger.id, quantity=4),
                OrderItemRequest(menu_item_id=burger.id, quantity=3),
            ),
        )
        order_id = order_service.create_order(request).order_id

        # 7 x 150 g = 1050 g > 1000 g, although each line alone would fit
        with pytest.raises(InsufficientStockError) as exc:
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert exc.value.ingredient_id == beef.id
        assert exc.value.required == Decimal("1050")
        assert exc.value.available == Decimal("1000")
        assert exc.value.shortfall == Decimal("50")

    def test_insufficient_stock_changes_nothing(self, place_order, burger, beef, bun):
        order_id = place_order((burger, 7)).order_id
        logs_before = len(log_entries())

        with pytest.raises(InsufficientStockError):
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert order_status(order_id) == "Pending"
        assert stock_of(beef.id) == Decimal("1000")
        assert stock_of(bun.id) == Decimal("10")
        assert len(log_entries()) == logs_before
        assert db.session.get(Order, order_id).assigned_staff_id is None

    def test_items_without_recipe_accept_without_stock(self, place_order, soda):
        order_id = place_order((soda, 3)).order_id

        order_service.transition_status(order_id, "Preparing", STAFF)

        assert order_status(order_id) == "Preparing"
        assert log_entries(order_id) == []

    def test_second_accept_is_rejected(self, place_order, burger, beef):
        order_id = place_order((burger, 1)).order_id
        order_service.transition_status(order_id, "Preparing", STAFF)

        with pytest.raises(InvalidTransitionError) as exc:
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert exc.value.current_status == "Preparing"
        assert stock_of(beef.id) == Decimal("850")
        assert len(log_entries(order_id, audit_service.ACTION_ORDER_DEDUCT)) == 2  # beef + bun

    def test_downstream_failure_rolls_back_everything(self, place_order, burger, beef, monkeypatch):
        order_id = place_order((burger, 2)).order_id

        def broken_append(**kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(audit_service, "append_stock_change", broken_append)

        with pytest.raises(PersistenceError) as exc:
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert "disk full" not in str(exc.value)
        assert order_status(order_id) == "Pending"
        assert stock_of(beef.id) == Decimal("1000")
        assert log_entries(order_id) == []


class TestCancelOrder:
    def test_cancel_pending_is_status_only(self, place_order, burger, beef):
        order_id = place_order((burger, 2)).order_id
        logs_before = len(log_entries())

        result = order_service.transition_status(order_id, "Cancelled", STAFF)

        assert result.status == "Cancelled"
        assert result.stock_restored is False
        assert stock_of(beef.id) == Decimal("1000")
        assert len(log_entries()) == logs_before

    def test_cancel_ready_unpaid_restores(self, place_order, burger, beef):
        order_id = place_order((burger, 2)).order_id
        order_service.transition_status(order_id, "Preparing", STAFF)
        order_service.transition_status(order_id, "Ready", STAFF)

        order_service.transition_status(order_id, "Cancelled", STAFF)

        assert stock_of(beef.id) == Decimal("1000")

    def test_cancel_paid_order_keeps_stock(self, place_order, burger, beef):
        created = place_order((burger, 2))
        order_service.transition_status(created.order_id, "Preparing", STAFF)
        payment_service.record_payment(created.order_id, "CARD", created.grand_total_cents, staff_id=STAFF)

        result = order_service.transition_status(created.order_id, "Cancelled", STAFF)

        assert result.status == "Cancelled"
        assert result.stock_restored is False
        assert stock_of(beef.id) == Decimal("700")
        assert log_entries(created.order_id, audit_service.ACTION_ORDER_RESTORE) == []

    def test_partial_paid_payment_still_blocks_restore(self, place_order, burger, beef):
        created = place_order((burger, 1))
        order_service.transition_status(created.order_id, "Preparing", STAFF)
        payment_service.record_payment(created.order_id, "CASH", 1000, staff_id=STAFF)

        order_service.transition_status(created.order_id, "Cancelled", STAFF)

        assert stock_of(beef.id) == Decimal("850")

    def test_restore_replays_logged_quantities_not_current_recipe(self, place_order, burger, beef):
        order_id = place_order((burger, 2)).order_id
        order_service.transition_status(order_id, "Preparing", STAFF)

        recipe = db.session.query(RecipeRequirement).filter_by(
            menu_item_id=burger.id, ingredient_id=beef.id,
        ).one()
        recipe.quantity_per_unit = Decimal("500")
        db.session.commit()

        order_service.transition_status(order_id, "Cancelled", STAFF)

        assert stock_of(beef.id) == Decimal("1000")
        restore = log_entries(order_id, audit_service.ACTION_ORDER_RESTORE)
        assert [e.quantity_change for e in restore if e.ingredient_id == beef.id] == [Decimal("300")]

    def test_cancelled_is_terminal(self, place_order, burger):
        order_id = place_order((burger, 1)).order_id
        order_service.transition_status(order_id, "Cancelled", STAFF)

        for target in ("Pending", "Preparing", "Cancelled"):
            with pytest.raises(InvalidTransitionError):
                order_service.transition_status(order_id, target, STAFF)


class TestTransitionRules:
    def test_full_happy_path(self, place_order, burger, beef):
        order_id = place_order((burger, 1)).order_id

        for target in ("Preparing", "Ready", "Served"):
            order_service.transition_status(order_id, target, STAFF)

        assert order_status(order_id) == "Served"
        assert stock_of(beef.id) == Decimal("850")
        with pytest.raises(InvalidTransitionError):
            order_service.transition_status(order_id, "Cancelled", STAFF)

    def test_ready_to_completed(self, place_order, soda):
        order_id = place_order((soda, 1)).order_id
        for target in ("Preparing", "Ready", "Completed"):
            order_service.transition_status(order_id, target, STAFF)
        assert order_status(order_id) == "Completed"

    @pytest.mark.parametrize("target", ["Ready", "Served", "Completed", "Pending"])
    def test_pending_cannot_skip_ahead(self, place_order, soda, target):
        order_id = place_order((soda, 1)).order_id
        with pytest.raises(InvalidTransitionError):
            order_service.transition_status(order_id, target, STAFF)
        assert order_status(order_id) == "Pending"

    def test_status_is_case_insensitive(self, place_order, soda):
        order_id = place_order((soda, 1)).order_id
        result = order_service.transition_status(order_id, "  preparing ", STAFF)
        assert result.status == "Preparing"

    @pytest.mark.parametrize("target", ["paid", "archived", "", None, 3])
    def test_unknown_status_rejected_before_any_work(self, place_order, soda, target):
        order_id = place_order((soda, 1)).order_id
        with pytest.raises(ValidationError):
            order_service.transition_status(order_id, target, STAFF)

    def test_unknown_status_checked_before_order_lookup(self, db_session):
        with pytest.raises(ValidationError):
            order_service.transition_status(424242, "nonsense", STAFF)

    def test_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.transition_status(424242, "Preparing", STAFF)

    def test_staff_is_required(self, place_order, soda):
        order_id = place_order((soda, 1)).order_id
        with pytest.raises(ValidationError):
            order_service.transition_status(order_id, "Preparing", None)

    def test_emits_status_changed(self, place_order, soda):
        order_id = place_order((soda, 1)).order_id
        received = []

        def receiver(sender, **payload):
            received.append(payload)

        with order_status_changed.connected_to(receiver):
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert len(received) == 1
        assert received[0]["order_id"] == order_id
        assert received[0]["status"] == "Preparing"
        assert received[0]["lines"][0]["item_name"] == "Soda"

    def test_status_event_reports_committed_status(self, place_order, soda, monkeypatch):
        order_id = place_order((soda, 1)).order_id
        real_run_with_retry = order_service.run_with_retry

        def run_then_advance_elsewhere(func, **kwargs):
            result = real_run_with_retry(func, **kwargs)
            # Another terminal moves the order on before this call notifies
            db.session.get(Order, order_id).status = "Ready"
            db.session.commit()
            return result

        monkeypatch.setattr(order_service, "run_with_retry", run_then_advance_elsewhere)
        received = []

        def receiver(sender, **payload):
            received.append(payload)

        with order_status_changed.connected_to(receiver):
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert received[0]["status"] == "Preparing"
        assert received[0]["previous_status"] == "Pending"
        assert order_status(order_id) == "Ready"

    def test_failing_receiver_does_not_undo_transition(self, place_order, soda):
        order_id = place_order((soda, 1)).order_id

        def receiver(sender, **payload):
            raise RuntimeError("display offline")

        with order_status_changed.connected_to(receiver):
            order_service.transition_status(order_id, "Preparing", STAFF)

        assert order_status(order_id) == "Preparing"


class TestReads:
    def test_kitchen_feed_lists_active_orders_oldest_first(self, place_order, soda):
        first = place_order((soda, 1)).order_id
        second = place_order((soda, 2)).order_id
        done = place_order((soda, 1)).order_id
        order_service.transition_status(done, "Cancelled", STAFF)

        feed = order_service.list_kitchen_orders()

        assert [o["id"] for o in feed] == [first, second]
        assert feed[1]["lines"][0]["quantity"] == 2

    def test_get_order_includes_lines_and_payments(self, place_order, soda):
        created = place_order((soda, 1))
        payment_service.record_payment(created.order_id, "CASH", 10000)

        order = order_service.get_order(created.order_id)

        assert order["grand_total_cents"] == created.grand_total_cents
        assert len(order["lines"]) == 1
        assert order["payments"][0]["status"] == "paid"

    def test_get_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.get_order(1)

    def test_list_orders_by_status(self, place_order, soda):
        pending = place_order((soda, 1)).order_id
        accepted = place_order((soda, 1)).order_id
        order_service.transition_status(accepted, "Preparing", STAFF)

        assert [o.id for o in order_service.list_orders(status="pending")] == [pending]
