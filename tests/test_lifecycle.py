import json
from decimal import Decimal

import pytest

from models import db
from models.audit_log import AuditLog
from models.booking import Booking, BookingStatus
from models.payment import Payment, PaymentStatus
from models.slot_claim import SlotClaim
from services import get_booking_service
from services.availability import AvailabilityResolver
from services.exceptions import (
    ConflictError,
    CutoffError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from services.gateway import GatewayError, GatewayTimeout
from services.lifecycle import BookingService, parse_price, to_minor_units
from services.notifier import SmtpNotifier
from tests.helpers import DAY, booking_payload


def _actions():
    return [row.action for row in AuditLog.query.order_by(AuditLog.id).all()]


# ---------- create ----------
def test_create_booking_persists_pending_booking_and_payment(service, gateway):
    result = service.create_booking(booking_payload(totalPrice="249.99"))

    booking = db.session.get(Booking, result["bookingId"])
    assert booking.payment_status == BookingStatus.PENDING
    assert booking.time == "10:00"
    assert booking.start_minute == 600
    assert booking.total_price == Decimal("249.99")
    assert booking.wash_type_name == "Full Valet"
    assert json.loads(booking.additional_services_json) == [{"name": "Tyre Shine", "price": "30.00"}]

    payment = booking.payment
    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == 24999
    assert payment.currency == "ZAR"
    assert result["redirectUrl"] == f"https://checkout.test/{payment.session_id}"

    call = gateway.calls[0]
    assert call["amount_minor"] == 24999
    assert call["success_url"] == f"https://carwash.test/pay/success?bookingId={booking.id}"
    assert call["cancel_url"] == f"https://carwash.test/pay/cancel?bookingId={booking.id}"
    assert "BOOKING_CREATE" in _actions()
    assert "PAYMENT_SESSION_CREATED" in _actions()


def test_email_is_normalised(service):
    result = service.create_booking(booking_payload(email="  Thabo@Example.COM "))
    assert db.session.get(Booking, result["bookingId"]).email == "thabo@example.com"


@pytest.mark.parametrize("email", [
    "thabo.example.com",
    "thabo@example.com\nBcc: evil@x.test",
    "thabo@example.com\r\nSubject: hi",
    "Thabo <thabo@example.com>",
    "thabo@@example.com",
    "thabo@localhost",
    "@example.com",
])
def test_malformed_email_is_rejected(service, gateway, email):
    with pytest.raises(ValidationError) as exc:
        service.create_booking(booking_payload(email=email))

    assert str(exc.value) == "Invalid email"
    assert Booking.query.count() == 0
    assert gateway.calls == []


@pytest.mark.parametrize("price", [0, "0", -10, "abc", "NaN", "Infinity", True, "0.001"])
def test_invalid_total_price_persists_nothing(service, gateway, price):
    with pytest.raises(ValidationError):
        service.create_booking(booking_payload(totalPrice=price))

    assert Booking.query.count() == 0
    assert Payment.query.count() == 0
    assert gateway.calls == []


def test_missing_required_fields_are_listed(service):
    with pytest.raises(ValidationError) as exc:
        service.create_booking(booking_payload(firstName="", carModel=None, email="   "))
    assert "firstName" in str(exc.value)
    assert "carModel" in str(exc.value)
    assert "email" in str(exc.value)


@pytest.mark.parametrize("overrides", [
    {"date": None},
    {"date": "03/03/2026"},
    {"time": None},
    {"time": "10:00 AM"},
    {"time": "10:15"},
    {"email": "not-an-email"},
    {"washType": {"price": 100}},
    {"additionalServices": "wax"},
    {"additionalServices": [{"price": 10}]},
])
def test_invalid_fields(service, overrides):
    with pytest.raises(ValidationError):
        service.create_booking(booking_payload(**overrides))
    assert Booking.query.count() == 0


def test_cannot_book_a_slot_that_already_started(service):
    # clock is 2026-03-02 09:00
    with pytest.raises(ValidationError):
        service.create_booking(booking_payload(date="2026-03-02", time="09:00"))
    service.create_booking(booking_payload(date="2026-03-02", time="09:30"))


def test_slot_inside_the_gap_is_a_conflict(service):
    service.create_booking(booking_payload(time="10:00"))

    for label in ("09:00", "09:30", "10:00", "10:30", "11:00"):
        with pytest.raises(ConflictError):
            service.create_booking(booking_payload(time=label, email="other@example.com"))

    service.create_booking(booking_payload(time="11:30", email="other@example.com"))
    assert "BOOKING_CONFLICT" in _actions()


def test_claims_block_a_racing_booking_even_when_the_read_check_passes(app, service):
    service.create_booking(booking_payload(time="10:00"))

    class StaleResolver(AvailabilityResolver):
        def is_available(self, day, minute):
            return True

    racing = BookingService(
        store=service.store,
        calendar=service.calendar,
        resolver=StaleResolver(service.calendar, service.store),
        gateway=service.gateway,
        notifier=service.notifier,
        policy=service.policy,
        clock=service.clock,
    )
    with pytest.raises(ConflictError):
        racing.create_booking(booking_payload(time="10:30"))

    assert Booking.query.count() == 1
    assert SlotClaim.query.count() == 3


def test_accepted_bookings_respect_the_minimum_gap(service):
    for label in service.calendar.slots_for(DAY):
        try:
            service.create_booking(booking_payload(time=label))
        except ConflictError:
            pass

    starts = sorted(b.start_minute for b in Booking.query.all())
    assert starts == [480, 570, 660, 750, 840, 930, 1020]
    assert all(b - a > 60 for a, b in zip(starts, starts[1:]))
    assert service.available_slots(DAY) == []


def test_gateway_error_rolls_the_booking_back(service, gateway):
    gateway.fail_with = GatewayError("card_declined")

    with pytest.raises(UpstreamError):
        service.create_booking(booking_payload())

    assert Booking.query.count() == 0
    assert SlotClaim.query.count() == 0
    assert "10:00" in service.available_slots(DAY)
    assert "PAYMENT_SESSION_FAIL" in _actions()


def test_gateway_timeout_keeps_an_orphan_for_reconciliation(service, gateway, clock):
    gateway.fail_with = GatewayTimeout("read timed out")

    with pytest.raises(UpstreamError):
        service.create_booking(booking_payload())

    orphan = Booking.query.one()
    assert orphan.payment_status == BookingStatus.PENDING
    assert orphan.payment is None
    assert "10:00" not in service.available_slots(DAY)
    assert "BOOKING_ORPHANED" in _actions()

    # too young to reconcile
    assert service.reconcile_orphans() == 0

    clock.advance(minutes=31)
    assert service.reconcile_orphans() == 1
    assert db.session.get(Booking, orphan.id).payment_status == BookingStatus.FAILED
    assert "10:00" in service.available_slots(DAY)
    assert "ORPHAN_RECONCILED" in _actions()


def test_reconcile_leaves_bookings_with_payments_alone(service, clock):
    service.create_booking(booking_payload())
    clock.advance(hours=2)
    assert service.reconcile_orphans() == 0
    assert Booking.query.one().payment_status == BookingStatus.PENDING


# ---------- confirm ----------
def _book(service, **overrides):
    result = service.create_booking(booking_payload(**overrides))
    booking = db.session.get(Booking, result["bookingId"])
    return booking.id, booking.payment.session_id


def test_successful_callback_marks_paid_and_notifies_once(service, notifier):
    booking_id, session_id = _book(service)

    first = service.confirm_payment(session_id, "successful")
    second = service.confirm_payment(session_id, "successful")

    assert first["message"] == "Payment status updated successfully"
    assert second["message"] == "Payment already processed"
    booking = db.session.get(Booking, booking_id)
    assert booking.payment_status == BookingStatus.PAID
    assert booking.payment.status == PaymentStatus.SUCCESSFUL
    assert booking.payment.paid_at is not None
    assert notifier.sent == [(booking_id, Decimal("280.00"))]
    assert _actions().count("PAYMENT_PAID") == 1


def test_booking_audit_trail(service):
    booking_id, _ = _book(service)

    trail = AuditLog.trail("booking", booking_id)

    assert [row.action for row in trail] == ["BOOKING_CREATE", "PAYMENT_SESSION_CREATED"]
    assert trail[0].details == {"date": DAY.isoformat(), "time": "10:00"}
    assert trail[0].ip is None


def test_unknown_session_is_not_found(service):
    _book(service)
    with pytest.raises(NotFoundError):
        service.confirm_payment("cs_test_missing", "successful")
    assert Booking.query.one().payment_status == BookingStatus.PENDING


def test_callback_requires_session_and_status(service):
    with pytest.raises(ValidationError):
        service.confirm_payment("", "successful")
    with pytest.raises(ValidationError):
        service.confirm_payment("cs_test_1", None)


@pytest.mark.parametrize("reported", ["failed", "SUCCESSFUL", "success", "paid", "expired"])
def test_anything_but_successful_fails_the_payment(service, notifier, reported):
    booking_id, session_id = _book(service)

    result = service.confirm_payment(session_id, reported)

    assert result["status"] == PaymentStatus.FAILED
    booking = db.session.get(Booking, booking_id)
    assert booking.payment_status == BookingStatus.FAILED
    assert booking.payment.status == PaymentStatus.FAILED
    assert booking.claims == []
    assert notifier.sent == []
    assert "10:00" in service.available_slots(DAY)


def test_first_callback_wins(service, notifier):
    booking_id, session_id = _book(service)

    service.confirm_payment(session_id, "failed")
    result = service.confirm_payment(session_id, "successful")

    assert result == {"message": "Payment already processed", "status": PaymentStatus.FAILED}
    booking = db.session.get(Booking, booking_id)
    assert booking.payment_status == BookingStatus.FAILED
    assert booking.payment.status == PaymentStatus.FAILED
    assert notifier.sent == []


def test_settle_is_a_conditional_write(service):
    booking_id, session_id = _book(service)
    payment_id = Payment.query.filter_by(session_id=session_id).one().id

    assert service.store.settle_payment(payment_id, booking_id, PaymentStatus.SUCCESSFUL) is True
    assert service.store.settle_payment(payment_id, booking_id, PaymentStatus.FAILED) is False
    assert db.session.get(Booking, booking_id).payment_status == BookingStatus.PAID


def test_notification_failure_does_not_undo_payment(service, notifier):
    notifier.fail = True
    booking_id, session_id = _book(service)

    result = service.confirm_payment(session_id, "successful")

    assert result["status"] == PaymentStatus.SUCCESSFUL
    assert db.session.get(Booking, booking_id).payment_status == BookingStatus.PAID
    assert "NOTIFICATION_FAIL" in _actions()

    # a redelivered callback does not retry the email
    service.confirm_payment(session_id, "successful")
    assert len(notifier.sent) == 1


def test_unsendable_address_on_record_does_not_break_the_callback(app, monkeypatch):
    delivered = []

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            pass

        def send_message(self, msg):
            delivered.append(msg["To"])

    monkeypatch.setattr("utils.emailer.smtplib.SMTP", FakeSMTP)
    app.extensions["booking_notifier"] = SmtpNotifier(
        {"SMTP_HOST": "smtp.test", "SMTP_FROM_EMAIL": "bookings@carwash.test"},
        owner_email="owner@carwash.test",
    )
    service = get_booking_service(app)
    booking_id, session_id = _book(service)
    # rows written before address validation existed
    booking = db.session.get(Booking, booking_id)
    booking.email = "thabo@example.com\nBcc: evil@x.test"
    db.session.commit()

    result = service.confirm_payment(session_id, "successful")

    assert result["status"] == PaymentStatus.SUCCESSFUL
    assert db.session.get(Booking, booking_id).payment_status == BookingStatus.PAID
    assert delivered == ["owner@carwash.test"]
    assert "NOTIFICATION_FAIL" in _actions()


# ---------- reads ----------
def test_list_customer_bookings(service):
    _book(service, time="08:00")
    _book(service, time="12:00", email="someone@example.com")

    rows = service.list_customer_bookings("THABO@example.com")
    assert [b.time for b in rows] == ["08:00"]

    with pytest.raises(ValidationError):
        service.list_customer_bookings("  ")


def test_list_bookings_filters(service):
    _, session_id = _book(service, time="08:00")
    _book(service, time="12:00")
    _book(service, date="2026-03-04", time="12:00")
    service.confirm_payment(session_id, "successful")

    assert len(service.list_bookings()) == 3
    assert [b.time for b in service.list_bookings(status="Paid")] == ["08:00"]
    assert len(service.list_bookings(day="2026-03-04")) == 1
    with pytest.raises(ValidationError):
        service.list_bookings(status="Cancelled")


def test_get_booking_not_found(service):
    with pytest.raises(NotFoundError):
        service.get_booking(404)


# ---------- cancel ----------
def test_cancel_deletes_booking_payment_and_claims(service, gateway):
    booking_id, session_id = _book(service)

    service.cancel_booking(booking_id)

    assert db.session.get(Booking, booking_id) is None
    assert Payment.query.count() == 0
    assert SlotClaim.query.count() == 0
    assert gateway.expired == [session_id]
    assert "BOOKING_CANCEL" in _actions()


def test_cancel_inside_cutoff_is_rejected(service, clock):
    booking_id, _ = _book(service, time="10:00")
    clock.advance(hours=24, minutes=1)  # 2026-03-03 09:01

    with pytest.raises(CutoffError):
        service.cancel_booking(booking_id)
    assert db.session.get(Booking, booking_id) is not None


def test_cancel_exactly_at_cutoff_boundary_is_allowed(service, clock):
    booking_id, _ = _book(service, time="10:00")
    clock.advance(hours=24)  # 2026-03-03 09:00, one hour before

    service.cancel_booking(booking_id)
    assert db.session.get(Booking, booking_id) is None


@pytest.mark.parametrize("reported,final", [
    ("successful", BookingStatus.PAID),
    ("failed", BookingStatus.FAILED),
])
def test_settled_booking_cannot_be_cancelled(service, gateway, reported, final):
    booking_id, session_id = _book(service)
    service.confirm_payment(session_id, reported)

    with pytest.raises(ConflictError):
        service.cancel_booking(booking_id)

    booking = db.session.get(Booking, booking_id)
    assert booking is not None
    assert booking.payment_status == final
    assert booking.payment.session_id == session_id
    assert Payment.query.count() == 1
    assert gateway.expired == []
    assert "BOOKING_CANCEL" not in _actions()


def test_cancel_unknown_booking(service):
    with pytest.raises(NotFoundError):
        service.cancel_booking(999)


# ---------- money ----------
def test_minor_units_round_half_up():
    assert to_minor_units(parse_price("149.995")) == 15000
    assert to_minor_units(parse_price(99.5)) == 9950
    assert to_minor_units(parse_price("0.01")) == 1
