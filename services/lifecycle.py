"""
Booking lifecycle - pure business logic, no HTTP/request awareness.

Public API (BookingService):
  available_slots(date)
  create_booking(data)
  confirm_payment(session_id, status)
  get_booking(booking_id)
  list_customer_bookings(email)
  list_bookings(date=None, status=None)
  cancel_booking(booking_id)
  reconcile_orphans(ttl_minutes=None)

A booking is Pending from the moment it is stored until the gateway reports
back, then Paid or Failed for good. Only the payment callback (and orphan
reconciliation) moves it out of Pending.
"""
import json
import logging
from dataclasses import dataclass
from datetime import date as date_type, datetime, time as time_type, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from email.utils import parseaddr
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse
from zoneinfo import ZoneInfo

from models.booking import Booking, BookingStatus
from models.payment import Payment, PaymentStatus
from services.availability import claimed_minutes
from services.exceptions import (
    ConflictError,
    CutoffError,
    NotFoundError,
    NotificationError,
    UpstreamError,
    ValidationError,
)
from services.gateway import GatewayError, GatewayTimeout, SUCCESSFUL

REQUIRED_FIELDS = ("firstName", "lastName", "email", "carModel", "totalPrice")
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class BookingPolicy:
    currency: str = "ZAR"
    cancel_cutoff_hours: float = 1
    orphan_ttl_minutes: int = 30
    operating_timezone: str = "Africa/Johannesburg"
    success_url: str = None
    cancel_url: str = None

    @classmethod
    def from_mapping(cls, cfg) -> "BookingPolicy":
        return cls(
            currency=cfg.get("CURRENCY", "ZAR"),
            cancel_cutoff_hours=float(cfg.get("CANCEL_CUTOFF_HOURS", 1)),
            orphan_ttl_minutes=int(cfg.get("ORPHAN_TTL_MINUTES", 30)),
            operating_timezone=cfg.get("OPERATING_TIMEZONE", "Africa/Johannesburg"),
            success_url=cfg.get("PAYMENT_SUCCESS_URL"),
            cancel_url=cfg.get("PAYMENT_CANCEL_URL"),
        )


# ── Field parsing ─────────────────────────────────────────────────────────────

def parse_date(value) -> date_type:
    """Accept a date, or an ISO string ("2026-01-20" or a full ISO datetime)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date_type):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError("Date is required")
    text = value.strip()
    try:
        return date_type.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")


def parse_price(value, field="totalPrice") -> Decimal:
    """Positive, finite amount rounded to cents."""
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(f"Invalid {field}")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid {field}")
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Invalid {field}")
    amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError(f"Invalid {field}")
    return amount


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _clean(value):
    return value.strip() if isinstance(value, str) else value


def parse_email(value) -> str:
    """Single bare address; no display name, whitespace or line breaks."""
    text = str(_clean(value)).lower()
    if any(ch in text for ch in "\r\n\t "):
        raise ValidationError("Invalid email")
    name, address = parseaddr(text)
    local, _, domain = address.partition("@")
    if name or address != text or not local or "." not in domain or "@" in domain:
        raise ValidationError("Invalid email")
    return address


def _parse_wash_type(value):
    if not value:
        return None, None
    if isinstance(value, str):
        return value.strip() or None, None
    if not isinstance(value, dict) or not _clean(value.get("name")):
        raise ValidationError("washType must have a name")
    price = value.get("price")
    if price in (None, ""):
        return _clean(value["name"]), None
    return _clean(value["name"]), parse_price(price, "washType price")


def _parse_additional_services(value) -> list:
    if not value:
        return []
    if not isinstance(value, list):
        raise ValidationError("additionalServices must be a list")
    services = []
    for item in value:
        if not isinstance(item, dict) or not _clean(item.get("name")):
            raise ValidationError("Each additional service needs a name")
        price = item.get("price")
        services.append({
            "name": _clean(item["name"]),
            "price": str(parse_price(price, "additional service price")) if price not in (None, "") else None,
        })
    return services


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    return urlunparse(parts._replace(query=urlencode(query)))


# ── Service ───────────────────────────────────────────────────────────────────

class BookingService:
    def __init__(self, store, calendar, resolver, gateway, notifier, policy: BookingPolicy,
                 audit=None, logger=None, clock=None):
        self.store = store
        self.calendar = calendar
        self.resolver = resolver
        self.gateway = gateway
        self.notifier = notifier
        self.policy = policy
        self.audit = audit or (lambda *args, **kwargs: None)
        self.logger = logger or logging.getLogger(__name__)
        self.tz = ZoneInfo(policy.operating_timezone)
        self.clock = clock or (lambda: datetime.now(self.tz))

    def _now(self) -> datetime:
        return self.clock().astimezone(self.tz)

    def _utcnow(self) -> datetime:
        # naive UTC, matching the created_at columns
        return self._now().astimezone(timezone.utc).replace(tzinfo=None)

    def _starts_at(self, day: date_type, minute: int) -> datetime:
        return datetime.combine(day, time_type(minute // 60, minute % 60), tzinfo=self.tz)

    # ---------- availability ----------
    def available_slots(self, day) -> list:
        return self.resolver.available_slots(parse_date(day))

    # ---------- create ----------
    def _validate(self, data: dict) -> dict:
        missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "") or _clean(data.get(f)) == ""]
        if missing:
            raise ValidationError("Missing required booking fields: " + ", ".join(missing))

        email = parse_email(data["email"])

        total = parse_price(data["totalPrice"])
        day = parse_date(data.get("date"))
        if not data.get("time"):
            raise ValidationError("Time slot is required")
        minute = self.calendar.slot_minute(data["time"])
        if self._starts_at(day, minute) <= self._now():
            raise ValidationError("Cannot book past/started slots")

        wash_name, wash_price = _parse_wash_type(data.get("washType"))
        extras = _parse_additional_services(data.get("additionalServices"))

        return {
            "first_name": _clean(data["firstName"]),
            "last_name": _clean(data["lastName"]),
            "email": email,
            "car_model": _clean(data["carModel"]),
            "wash_type_name": wash_name,
            "wash_type_price": wash_price,
            "additional_services_json": json.dumps(extras) if extras else None,
            "date": day,
            "time": self.calendar.format_minute(minute),
            "start_minute": minute,
            "service_location": _clean(data.get("serviceLocation")) or None,
            "address": _clean(data.get("address")) or None,
            "subscription": bool(data.get("subscription")),
            "total_price": total,
        }

    def create_booking(self, data: dict) -> dict:
        """
        Validate, reserve the slot, and open a checkout session.

        Returns ``{"redirectUrl": ..., "bookingId": ...}``.

        Gateway failures: a definite error rolls the booking back; a timeout
        leaves it Pending without a payment for ``reconcile_orphans``.
        """
        fields = self._validate(data or {})
        day, minute = fields["date"], fields["start_minute"]

        if not self.resolver.is_available(day, minute):
            self.audit("BOOKING_CONFLICT", entity="slot", metadata={"date": day, "time": fields["time"]})
            raise ConflictError("Selected time slot is no longer available")

        booking = Booking(payment_status=BookingStatus.PENDING, created_at=self._utcnow(), **fields)
        claims = claimed_minutes(minute, self.calendar.config.min_gap_minutes,
                                 self.calendar.config.slot_minutes)
        try:
            booking_id = self.store.insert_booking(booking, claims)
        except ConflictError:
            self.audit("BOOKING_CONFLICT", entity="slot", metadata={"date": day, "time": fields["time"]})
            raise
        self.audit("BOOKING_CREATE", entity="booking", entity_id=booking_id,
                   metadata={"date": day, "time": fields["time"]})

        amount_minor = to_minor_units(fields["total_price"])
        try:
            checkout = self.gateway.create_checkout(
                amount_minor=amount_minor,
                currency=self.policy.currency,
                success_url=_append_query(self.policy.success_url, {"bookingId": str(booking_id)}),
                cancel_url=_append_query(self.policy.cancel_url, {"bookingId": str(booking_id)}),
                reference=f"booking-{booking_id}",
            )
        except GatewayTimeout as exc:
            self.logger.warning("Payment gateway timed out for booking %s: %s", booking_id, exc)
            self.audit("BOOKING_ORPHANED", entity="booking", entity_id=booking_id, metadata={"error": str(exc)})
            raise UpstreamError("Payment gateway did not respond; please try again shortly") from exc
        except GatewayError as exc:
            self.logger.error("Payment session creation failed for booking %s: %s", booking_id, exc)
            self.store.delete_booking(self.store.get_booking(booking_id))
            self.audit("PAYMENT_SESSION_FAIL", entity="booking", entity_id=booking_id, metadata={"error": str(exc)})
            raise UpstreamError("Payment initiation failed") from exc

        payment = Payment(
            booking_id=booking_id,
            amount=amount_minor,
            currency=self.policy.currency,
            session_id=checkout.session_id,
            status=PaymentStatus.PENDING,
        )
        self.store.add_payment(payment)
        self.audit("PAYMENT_SESSION_CREATED", entity="booking", entity_id=booking_id,
                   metadata={"session_id": checkout.session_id, "amount": amount_minor})

        return {"redirectUrl": checkout.redirect_url, "bookingId": booking_id}

    # ---------- payment callback ----------
    def confirm_payment(self, session_id, status) -> dict:
        """
        Apply a gateway callback. Safe to call any number of times.

        First callback wins: once a payment is successful or failed, later
        callbacks for the session are acknowledged and ignored, whatever
        status they carry.
        """
        if not session_id or not status:
            raise ValidationError("sessionId and status are required")

        payment = self.store.find_payment_by_session(session_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if payment.status in PaymentStatus.TERMINAL:
            return {"message": "Payment already processed", "status": payment.status}

        new_status = PaymentStatus.SUCCESSFUL if status == SUCCESSFUL else PaymentStatus.FAILED
        payment_id, booking_id = payment.id, payment.booking_id

        if not self.store.settle_payment(payment_id, booking_id, new_status):
            # a concurrent delivery got there first
            current = self.store.find_payment_by_session(session_id)
            return {"message": "Payment already processed", "status": current.status if current else new_status}

        if new_status == PaymentStatus.SUCCESSFUL:
            self.audit("PAYMENT_PAID", entity="payment", entity_id=payment_id,
                       metadata={"session_id": session_id, "booking_id": booking_id})
            self._notify(booking_id)
        else:
            self.audit("PAYMENT_FAILED", entity="payment", entity_id=payment_id,
                       metadata={"session_id": session_id, "booking_id": booking_id, "reported": status})

        return {"message": "Payment status updated successfully", "status": new_status}

    def _notify(self, booking_id: int):
        booking = self.store.get_booking(booking_id)
        if booking is None:
            self.logger.warning("Paid booking %s vanished before notification", booking_id)
            return
        try:
            self.notifier.send_booking_confirmation(booking, booking.total_price)
        except NotificationError as exc:
            self.logger.error("Booking confirmation email failed for booking %s: %s", booking_id, exc)
            self.audit("NOTIFICATION_FAIL", entity="booking", entity_id=booking_id, metadata={"error": str(exc)})

    # ---------- reads ----------
    def get_booking(self, booking_id: int) -> Booking:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    def list_customer_bookings(self, email) -> list:
        email = _clean(email)
        if not email:
            raise ValidationError("Email is required")
        return self.store.list_bookings(email=email.lower())

    def list_bookings(self, day=None, status=None) -> list:
        if status and status not in (BookingStatus.PENDING, BookingStatus.PAID, BookingStatus.FAILED):
            raise ValidationError("Invalid status filter")
        return self.store.list_bookings(day=parse_date(day) if day else None, status=status)

    # ---------- cancel ----------
    def cancel_booking(self, booking_id: int):
        booking = self.get_booking(booking_id)
        # Paid and Failed are terminal and kept for audit
        if booking.payment_status != BookingStatus.PENDING:
            raise ConflictError(f"Booking not cancellable: it is {booking.payment_status}")

        cutoff = timedelta(hours=self.policy.cancel_cutoff_hours)
        if self._starts_at(booking.date, booking.start_minute) - self._now() < cutoff:
            raise CutoffError(
                f"Cancellation not allowed within {self.policy.cancel_cutoff_hours:g} hours of the appointment"
            )

        session_id = booking.payment.session_id if booking.payment else None
        self.store.delete_booking(booking)
        self.audit("BOOKING_CANCEL", entity="booking", entity_id=booking_id)

        if session_id:
            try:
                self.gateway.expire_checkout(session_id)
            except GatewayError as exc:
                self.logger.warning("Could not expire checkout %s after cancellation: %s", session_id, exc)

    # ---------- reconciliation ----------
    def reconcile_orphans(self, ttl_minutes=None) -> int:
        """Fail Pending bookings whose payment session was never recorded."""
        ttl = self.policy.orphan_ttl_minutes if ttl_minutes is None else ttl_minutes
        created_before = self._utcnow() - timedelta(minutes=ttl)

        count = 0
        for booking in self.store.orphans(created_before):
            booking_id = booking.id
            self.store.mark_failed(booking)
            self.audit("ORPHAN_RECONCILED", entity="booking", entity_id=booking_id)
            count += 1
        return count
