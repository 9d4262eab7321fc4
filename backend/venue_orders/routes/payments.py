# backend/venue_orders/routes/payments.py
"""Manual payment recording (cashier). Gateway checkout/webhooks live elsewhere."""

from flask import Blueprint, request, jsonify, current_app

from ..errors import OrderEngineError
from ..services import payment_service
from ..validation import PaymentRequest


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
def record_payment_route():
    """
    Body: {order_id, method: CASH|CARD|E_WALLET, amount_cents, staff_id?, reference_number?}
    """
    try:
        payment_request = PaymentRequest.from_payload(request.get_json(silent=True))
        payment = payment_service.record_payment(
            payment_request.order_id,
            payment_request.method,
            payment_request.amount_cents,
            staff_id=payment_request.staff_id,
            reference_number=payment_request.reference_number,
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except OrderEngineError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<int:order_id>")
def list_payments_route(order_id: int):
    payments = payment_service.list_payments(order_id)
    return jsonify({
        "order_id": order_id,
        "payments": [p.to_dict() for p in payments],
        "amount_paid_cents": payment_service.amount_paid_cents(order_id),
    }), 200
