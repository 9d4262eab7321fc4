# backend/venue_orders/routes/inventory.py
"""
Ingredient stock routes.

Order-driven stock changes happen only through order status transitions;
the only direct stock writes exposed here are manual RESTOCK / WASTE
movements (and opening stock on create), which go through the same ledger
and audit path. Ingredient updates never touch stock_level.

Time semantics:
- `since` accepts ISO-8601 with Z/offsets; normalized to UTC-naive internally.
"""
from flask import Blueprint, request, jsonify, current_app

from ..errors import OrderEngineError, ValidationError
from venue_orders.time_utils import parse_iso_datetime
from ..validation import CreateIngredientRequest, StockMovementRequest, UpdateIngredientRequest
from ..services import audit_service, stock_ledger_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/ingredients")
def list_ingredients_route():
    low_stock_only = request.args.get("low_stock", "").lower() in {"1", "true", "yes"}
    ingredients = stock_ledger_service.list_ingredients(low_stock_only=low_stock_only)
    return jsonify({"ingredients": [i.to_dict() for i in ingredients]}), 200


@inventory_bp.post("/ingredients")
def create_ingredient_route():
    """
    Register an ingredient.

    Body: {name, unit, opening_stock?, reorder_threshold?, staff_id?}
    Opening stock is logged as RESTOCK in the same transaction.
    """
    try:
        ingredient_request = CreateIngredientRequest.from_payload(request.get_json(silent=True))
        ingredient = stock_ledger_service.create_ingredient(
            ingredient_request.name,
            ingredient_request.unit,
            opening_stock=ingredient_request.opening_stock,
            reorder_threshold=ingredient_request.reorder_threshold,
            staff_id=ingredient_request.staff_id,
        )
        return jsonify({"ingredient": ingredient.to_dict()}), 201

    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create ingredient")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/ingredients/<int:ingredient_id>")
def get_ingredient_route(ingredient_id: int):
    try:
        ingredient = stock_ledger_service.get_ingredient(ingredient_id)
        return jsonify({"ingredient": ingredient.to_dict()}), 200
    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.put("/ingredients/<int:ingredient_id>")
def update_ingredient_route(ingredient_id: int):
    """
    Update name, unit or reorder_threshold. Stock levels change only via /stock.
    """
    try:
        update = UpdateIngredientRequest.from_payload(request.get_json(silent=True))
        ingredient = stock_ledger_service.update_ingredient(
            ingredient_id,
            name=update.name,
            unit=update.unit,
            reorder_threshold=update.reorder_threshold,
        )
        return jsonify({"ingredient": ingredient.to_dict()}), 200

    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update ingredient")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/ingredients/<int:ingredient_id>/stock")
def adjust_stock_route(ingredient_id: int):
    """
    Manual stock movement.

    Body: {action: RESTOCK|WASTE, quantity, staff_id, note?}
    """
    try:
        movement = StockMovementRequest.from_payload(request.get_json(silent=True))
        result = stock_ledger_service.apply_manual_movement(
            ingredient_id,
            movement.action,
            movement.quantity,
            staff_id=movement.staff_id,
            note=movement.note,
        )
        return jsonify({
            "ingredient_id": result["ingredient_id"],
            "log_id": result["log_id"],
            "stock_level": str(result["stock_level"]),
        }), 200

    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/logs")
def list_logs_route():
    """
    Stock change history, newest first.

    Query: ingredient_id, order_id, action, since (ISO-8601), limit
    """
    try:
        action = request.args.get("action")
        if action is not None:
            action = action.upper()
            if action not in audit_service.VALID_ACTIONS:
                raise ValidationError(f"Invalid action '{action}'")
        try:
            since = parse_iso_datetime(request.args.get("since"))
        except ValueError:
            raise ValidationError("since must be an ISO-8601 datetime")

        entries = audit_service.list_stock_changes(
            ingredient_id=request.args.get("ingredient_id", type=int),
            order_id=request.args.get("order_id", type=int),
            action=action,
            since=since,
            limit=max(1, min(request.args.get("limit", 200, type=int), 1000)),
        )
        return jsonify({"logs": [entry.to_dict() for entry in entries]}), 200

    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.get("/reconciliation")
def reconciliation_route():
    mismatches = stock_ledger_service.reconcile()
    return jsonify({"consistent": not mismatches, "mismatches": mismatches}), 200
