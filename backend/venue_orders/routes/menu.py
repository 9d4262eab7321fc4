# backend/venue_orders/routes/menu.py
"""Read-only menu listing for order-entry screens. Menu management lives elsewhere."""

from flask import Blueprint, request, jsonify

from ..services import catalog_service


menu_bp = Blueprint("menu", __name__, url_prefix="/api/menu")


@menu_bp.get("")
def list_menu_route():
    include_unavailable = request.args.get("all", "").lower() in {"1", "true", "yes"}
    items = catalog_service.list_menu_items(available_only=not include_unavailable)
    return jsonify({"items": [item.to_dict() for item in items]}), 200
