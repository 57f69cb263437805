"""
Errors raised by the booking services.
Routes never catch these one by one: create_app registers a handler that maps
``status_code`` onto the JSON error response.
"""


class BookingError(Exception):
    """Base exception for all booking errors."""
    status_code = 500


class ValidationError(BookingError):
    """Missing or invalid request field (price, date, slot label...)."""
    status_code = 400


class NotFoundError(BookingError):
    """Unknown booking id or payment session id."""
    status_code = 404


class ConflictError(BookingError):
    """Requested slot is taken or within the minimum gap of another booking."""
    status_code = 409


class CutoffError(BookingError):
    """Cancellation attempted inside the lead-time cutoff."""
    status_code = 403


class UpstreamError(BookingError):
    """The booking store or the payment gateway failed."""
    status_code = 502


class NotificationError(BookingError):
    """Confirmation email could not be delivered. Never reaches a caller."""
    pass
