"""
Stripe Checkout as the payment gateway.

Callers see only ``CheckoutSession`` and the two gateway errors; the Stripe
SDK stays behind this module.
"""
from dataclasses import dataclass

import stripe

from services.exceptions import BookingError

SUCCESSFUL = "successful"

# Stripe webhook event -> status string understood by confirm_payment
WEBHOOK_STATUSES = {
    "checkout.session.completed": SUCCESSFUL,
    "checkout.session.async_payment_succeeded": SUCCESSFUL,
    "checkout.session.async_payment_failed": "failed",
    "checkout.session.expired": "expired",
}


class GatewayError(BookingError):
    """The gateway answered, and the answer was an error. Nothing was charged."""
    pass


class GatewayTimeout(GatewayError):
    """No usable answer (timeout, connection reset). Outcome unknown."""
    pass


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str


def callback_status(event) -> tuple:
    """
    Translate a verified Stripe event into ``(session_id, status)``.

    Returns ``(None, None)`` for events that say nothing final about a
    payment, e.g. a completed checkout whose async payment is still unpaid.
    """
    status = WEBHOOK_STATUSES.get(event.get("type"))
    if status is None:
        return None, None

    session = event["data"]["object"]
    if event.get("type") == "checkout.session.completed" and session.get("payment_status") == "unpaid":
        return None, None
    return session.get("id"), status


class StripeGateway:
    def __init__(self, secret_key, timeout_seconds=10, product_name="Car wash booking"):
        self.secret_key = secret_key
        self.product_name = product_name
        # bounded network time for every SDK call made through this process
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)
        stripe.max_network_retries = 0

    def create_checkout(self, amount_minor: int, currency: str, success_url: str,
                        cancel_url: str, reference: str) -> CheckoutSession:
        if not self.secret_key:
            raise GatewayError("Stripe secret key missing (STRIPE_SECRET_KEY)")
        if not success_url or not cancel_url:
            raise GatewayError("Payment success/cancel URLs not configured")

        try:
            session = stripe.checkout.Session.create(
                api_key=self.secret_key,
                mode="payment",
                line_items=[{
                    "price_data": {
                        "currency": currency.lower(),
                        "product_data": {"name": self.product_name},
                        "unit_amount": amount_minor,
                    },
                    "quantity": 1,
                }],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=reference,
                metadata={"reference": reference},
            )
        except stripe.APIConnectionError as exc:
            raise GatewayTimeout(str(exc)) from exc
        except stripe.StripeError as exc:
            raise GatewayError(str(exc)) from exc

        return CheckoutSession(session_id=session["id"], redirect_url=session["url"])

    def expire_checkout(self, session_id: str):
        if not self.secret_key:
            raise GatewayError("Stripe secret key missing (STRIPE_SECRET_KEY)")
        try:
            stripe.checkout.Session.expire(session_id, api_key=self.secret_key)
        except stripe.APIConnectionError as exc:
            raise GatewayTimeout(str(exc)) from exc
        except stripe.StripeError as exc:
            raise GatewayError(str(exc)) from exc
