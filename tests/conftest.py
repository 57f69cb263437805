import pytest

from app import create_app
from models import db
from services import get_booking_service
from tests.helpers import FakeGateway, FakeNotifier, FrozenClock, NOW, TestingConfig


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def app(gateway, notifier, clock):
    app = create_app(TestingConfig)
    app.extensions["payment_gateway"] = gateway
    app.extensions["booking_notifier"] = notifier
    app.extensions["booking_clock"] = clock

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return get_booking_service(app)
