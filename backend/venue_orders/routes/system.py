# backend/venue_orders/routes/system.py
"""
System health endpoint.

Reports store connectivity and whether the stock ledger still reconciles.
"""

import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Order, Ingredient
from venue_orders.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        ingredient_count = db.session.query(Ingredient).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "orders": order_count,
                "ingredients": ingredient_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_stock_ledger_health() -> dict:
    from ..services.stock_ledger_service import reconcile

    try:
        mismatches = reconcile()
    except Exception:
        current_app.logger.exception("Stock ledger health check failed")
        return {"status": "unhealthy", "error": "Stock ledger error"}

    if mismatches:
        return {
            "status": "degraded",
            "warning": f"{len(mismatches)} ingredient(s) do not match their stock log",
        }
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    checks = {
        "database": check_database_health(),
        "stock_ledger": check_stock_ledger_health(),
    }
    statuses = {check["status"] for check in checks.values()}
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return jsonify({
        "status": overall,
        "checked_at": to_utc_z(utcnow()),
        "checks": checks,
    }), (503 if overall == "unhealthy" else 200)
