from flask import Blueprint, request, current_app
from markupsafe import escape

pay_pages_bp = Blueprint("pay_pages", __name__)


def _page(title: str, heading: str, message: str, link_text: str, link_path: str) -> str:
    base_url = (current_app.config.get("FRONTEND_BASE_URL") or "").rstrip("/")
    return f"""
    <html>
      <head><title>{title}</title></head>
      <body style="font-family: system-ui; max-width: 720px; margin: 40px auto;">
        <h1>{heading}</h1>
        <p>{message}</p>
        <a href="{base_url}{link_path}" style="display: inline-block; padding: 12px 18px; background: #0ea5e9; color: white; text-decoration: none; border-radius: 8px; font-weight: 600;">{link_text}</a>
      </body>
    </html>
    """


@pay_pages_bp.get("/pay/success")
def pay_success():
    # Simple page the gateway redirects to after payment
    booking_id = escape(request.args.get("bookingId", ""))
    return _page(
        "Payment Success",
        "Payment Successful ✅",
        f"Your payment for booking #{booking_id} was accepted. "
        "A confirmation email is on its way once the payment provider confirms it.",
        "Go to My Bookings",
        "/#/my-bookings",
    ), 200


@pay_pages_bp.get("/pay/cancel")
def pay_cancel():
    # The booking stays Pending until the checkout session expires at the gateway
    booking_id = escape(request.args.get("bookingId", ""))
    return _page(
        "Payment Cancelled",
        "Payment Cancelled ❌",
        f"No payment was taken for booking #{booking_id}. You can pick another slot and try again.",
        "Back to booking",
        "/#/booking",
    ), 200
