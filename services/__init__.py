from flask import current_app

from models import db
from services.availability import AvailabilityResolver
from services.lifecycle import BookingPolicy, BookingService
from services.slot_calendar import ScheduleConfig, SlotCalendar
from services.store import BookingStore
from utils.audit import log_event


def get_booking_service(app=None) -> BookingService:
    """Build a BookingService for the current app, bound to the request's db session."""
    app = app or current_app._get_current_object()
    calendar = SlotCalendar(ScheduleConfig.from_mapping(app.config))
    store = BookingStore(db.session)
    return BookingService(
        store=store,
        calendar=calendar,
        resolver=AvailabilityResolver(calendar, store, logger=app.logger),
        gateway=app.extensions["payment_gateway"],
        notifier=app.extensions["booking_notifier"],
        policy=BookingPolicy.from_mapping(app.config),
        audit=log_event,
        logger=app.logger,
        clock=app.extensions.get("booking_clock"),
    )
