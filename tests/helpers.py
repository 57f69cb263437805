from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from config import Config
from services.exceptions import NotificationError
from services.gateway import CheckoutSession

TZ = ZoneInfo("Africa/Johannesburg")
NOW = datetime(2026, 3, 2, 9, 0, tzinfo=TZ)
DAY = date(2026, 3, 3)


class TestingConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"

    OPENING_HOUR = 8
    CLOSING_HOUR = 18
    SLOT_MINUTES = 30
    SLOT_LABEL_FORMAT = "24h"
    MIN_GAP_MINUTES = 60
    CANCEL_CUTOFF_HOURS = 1
    ORPHAN_TTL_MINUTES = 30
    OPERATING_TIMEZONE = "Africa/Johannesburg"
    CURRENCY = "ZAR"

    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test_dummy"
    PAYMENT_CALLBACK_SECRET = "callback-secret"
    PAYMENT_SUCCESS_URL = "https://carwash.test/pay/success"
    PAYMENT_CANCEL_URL = "https://carwash.test/pay/cancel"
    FRONTEND_BASE_URL = "https://carwash.test"

    SMTP_HOST = None
    OWNER_EMAIL = "owner@carwash.test"


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.expired = []
        self.fail_with = None
        self._counter = 0

    def create_checkout(self, amount_minor, currency, success_url, cancel_url, reference):
        self.calls.append({
            "amount_minor": amount_minor,
            "currency": currency,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "reference": reference,
        })
        if self.fail_with is not None:
            raise self.fail_with
        self._counter += 1
        session_id = f"cs_test_{self._counter}"
        return CheckoutSession(session_id=session_id, redirect_url=f"https://checkout.test/{session_id}")

    def expire_checkout(self, session_id):
        self.expired.append(session_id)


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_booking_confirmation(self, booking, total):
        self.sent.append((booking.id, total))
        if self.fail:
            raise NotificationError("SMTP connection refused")


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def booking_payload(**overrides):
    data = {
        "firstName": "Thabo",
        "lastName": "Nkosi",
        "email": "thabo@example.com",
        "carModel": "VW Polo",
        "washType": {"name": "Full Valet", "price": 250},
        "additionalServices": [{"name": "Tyre Shine", "price": 30}],
        "date": DAY.isoformat(),
        "time": "10:00",
        "serviceLocation": "In-store",
        "address": None,
        "subscription": False,
        "totalPrice": 280,
    }
    data.update(overrides)
    return data
