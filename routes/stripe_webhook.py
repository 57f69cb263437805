import stripe
from flask import Blueprint, request, jsonify, current_app

from services import get_booking_service
from services.exceptions import NotFoundError
from services.gateway import callback_status

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.data

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError):
        return jsonify(error="Invalid webhook signature"), 400

    session_id, status = callback_status(event)
    if session_id is None:
        return jsonify(received=True), 200

    try:
        get_booking_service().confirm_payment(session_id, status)
    except NotFoundError:
        # sessions from other integrations on the same Stripe account, or
        # bookings cancelled before the event arrived; retrying will not help
        current_app.logger.info("Stripe event %s for unknown session %s", event.get("type"), session_id)

    return jsonify(received=True), 200
