# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/venue_orders/routes/orders.py
"""Order API routes. Authentication is handled upstream; staff_id arrives in the body."""

from flask import Blueprint, request, jsonify, current_app

from ..errors import OrderEngineError
from ..services import order_service
from ..validation import CreateOrderRequest, StatusChangeRequest


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _error_response(e: OrderEngineError):
    return jsonify(e.to_dict()), e.http_status


@orders_bp.post("")
def create_order_route():
    """
    Create an order. Prices and totals are computed server-side.

    Body: {customer_id?, order_kind, destination, instructions?, items: [{menu_item_id, quantity, instructions?}]}
    """
    try:
        order_request = CreateOrderRequest.from_payload(request.get_json(silent=True))
        result = order_service.create_order(order_request)
        return jsonify({"order_id": result.order_id, "grand_total_cents": result.grand_total_cents}), 201

    except OrderEngineError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
def list_orders_route():
    try:
        status = request.args.get("status")
        customer_id = request.args.get("customer_id", type=int)
        limit = max(1, min(request.args.get("limit", 100, type=int), 500))
        orders = order_service.list_orders(status=status, customer_id=customer_id, limit=limit)
        return jsonify({"orders": [order.to_dict() for order in orders]}), 200

    except OrderEngineError as e:
        return _error_response(e)


@orders_bp.get("/kitchen")
def kitchen_orders_route():
    """Active orders (Pending, Preparing, Ready) for the kitchen display."""
    return jsonify({"orders": order_service.list_kitchen_orders()}), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return jsonify({"order": order_service.get_order(order_id)}), 200
    except OrderEngineError as e:
        return _error_response(e)


@orders_bp.put("/<int:order_id>/status")
def update_order_status_route(order_id: int):
    """
    Move an order to a new status.

    Body: {status, staff_id}
    409 on insufficient stock, 503 when the order is locked by another
    terminal for too long (safe to retry).
    """
    try:
        change = StatusChangeRequest.from_payload(request.get_json(silent=True))
        result = order_service.transition_status(order_id, change.status, change.staff_id)
        return jsonify({
            "order_id": result.order_id,
            "previous_status": result.previous_status,
            "status": result.status,
            "stock_restored": result.stock_restored,
        }), 200

    except OrderEngineError as e:
        if e.http_status >= 500:
            current_app.logger.warning("Status change for order %s failed: %s", order_id, e.code)
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500
