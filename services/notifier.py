import json

from services.exceptions import NotificationError
from utils.emailer import send_email

SMTP_KEYS = (
    "SMTP_HOST", "SMTP_PORT", "SMTP_USERNAME", "SMTP_PASSWORD",
    "SMTP_FROM_EMAIL", "SMTP_USE_TLS", "SMTP_TIMEOUT_SECONDS",
)


def _money(value) -> str:
    return f"R{value:.2f}" if value is not None else "-"


class SmtpNotifier:
    """Booking confirmation emails for the operator and the customer."""

    def __init__(self, smtp_settings: dict, owner_email=None, business_name="Kiings Car Wash"):
        self.smtp_settings = dict(smtp_settings)
        self.owner_email = owner_email or smtp_settings.get("SMTP_FROM_EMAIL")
        self.business_name = business_name

    @classmethod
    def from_config(cls, cfg) -> "SmtpNotifier":
        return cls(
            {key: cfg.get(key) for key in SMTP_KEYS if cfg.get(key) is not None},
            owner_email=cfg.get("OWNER_EMAIL"),
            business_name=cfg.get("BUSINESS_NAME", "Kiings Car Wash"),
        )

    def _details(self, booking, total) -> str:
        extras = json.loads(booking.additional_services_json or "[]")
        lines = [
            f"Name: {booking.first_name} {booking.last_name}",
            f"Email: {booking.email}",
            f"Car Model: {booking.car_model}",
            f"Wash Type: {booking.wash_type_name or '-'}",
        ]
        if extras:
            lines.append("Additional Services: " + ", ".join(e["name"] for e in extras))
        lines += [
            f"Date: {booking.date.isoformat()}",
            f"Time: {booking.time}",
            f"Location: {booking.service_location or '-'}",
        ]
        if booking.address:
            lines.append(f"Address: {booking.address}")
        lines.append(f"Total Price: {_money(total)}")
        return "\n".join(lines)

    def send_booking_confirmation(self, booking, total):
        details = self._details(booking, total)
        messages = [
            (self.owner_email, "New Car Wash Booking", f"New booking received\n\n{details}\n"),
            (
                booking.email,
                f"Booking Confirmation - {self.business_name}",
                f"Dear {booking.first_name},\n\n"
                f"Your car wash appointment has been confirmed.\n\n{details}\n\n"
                f"Thank you for choosing {self.business_name}!\n",
            ),
        ]

        failures = []
        for to_email, subject, body in messages:
            sent, error = send_email(self.smtp_settings, to_email, subject, body)
            if not sent:
                failures.append(f"{to_email or 'owner'}: {error}")
        if failures:
            raise NotificationError("; ".join(failures))
