import hmac

from flask import Blueprint, request, jsonify, current_app

from services import get_booking_service

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

CALLBACK_TOKEN_HEADER = "X-Callback-Token"


@payments_bp.post("/confirm")
def confirm_payment():
    secret = current_app.config.get("PAYMENT_CALLBACK_SECRET")
    if not secret:
        return jsonify(error="Payment callback secret not configured"), 500

    token = request.headers.get(CALLBACK_TOKEN_HEADER) or ""
    if not hmac.compare_digest(token, secret):
        return jsonify(error="Invalid callback token"), 401

    data = request.get_json(silent=True) or {}
    result = get_booking_service().confirm_payment(data.get("sessionId"), data.get("status"))
    return jsonify(result), 200
