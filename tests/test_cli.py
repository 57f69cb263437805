import pytest

from models.booking import Booking, BookingStatus
from services.exceptions import UpstreamError
from services.gateway import GatewayTimeout
from tests.helpers import booking_payload


def test_reconcile_orphans_command(app, service, gateway, clock):
    gateway.fail_with = GatewayTimeout("timed out")
    with pytest.raises(UpstreamError):
        service.create_booking(booking_payload())
    clock.advance(minutes=5)

    runner = app.test_cli_runner()
    result = runner.invoke(args=["reconcile-orphans"])
    assert result.exit_code == 0
    assert "0 orphan booking(s) marked Failed" in result.output

    result = runner.invoke(args=["reconcile-orphans", "--ttl-minutes", "1"])
    assert result.exit_code == 0
    assert "1 orphan booking(s) marked Failed" in result.output
    assert Booking.query.one().payment_status == BookingStatus.FAILED
