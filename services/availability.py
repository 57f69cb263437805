"""
Availability resolver: calendar slots minus everything within the minimum gap
of an active booking on the same date.
"""
import logging
from math import gcd

from services.exceptions import UpstreamError, ValidationError


def claimed_minutes(start_minute: int, gap_minutes: int, slot_minutes: int) -> list:
    """
    Minutes a booking at ``start_minute`` holds in the slot_claims table.

    Covers [start, start + gap] on a step of gcd(slot, gap). For two slot-aligned
    bookings t1 < t2 with t2 - t1 <= gap, t2 itself is in both sets, so the
    unique constraint rejects the second one.
    """
    step = gcd(slot_minutes, gap_minutes) or slot_minutes
    return list(range(start_minute, start_minute + gap_minutes + 1, step))


def within_gap(minute: int, booked: list, gap_minutes: int) -> bool:
    return any(abs(minute - b) <= gap_minutes for b in booked)


class AvailabilityResolver:
    def __init__(self, calendar, store, logger=None):
        self.calendar = calendar
        self.store = store
        self.gap_minutes = calendar.config.min_gap_minutes
        self.logger = logger or logging.getLogger(__name__)

    def available_slots(self, day) -> list:
        """
        Labels still bookable on ``day``; an empty list means fully booked.

        Fails open: if the store cannot be read, the whole calendar is returned.
        Booking creation re-checks strictly, so this only affects what is shown.
        """
        if day is None:
            raise ValidationError("Date is required")

        candidates = self.calendar.minutes()
        try:
            booked = self.store.booked_minutes(day)
        except UpstreamError:
            self.logger.warning("Booking store unavailable, returning unfiltered slots for %s", day)
            return [self.calendar.format_minute(m) for m in candidates]

        return [
            self.calendar.format_minute(m)
            for m in candidates
            if not within_gap(m, booked, self.gap_minutes)
        ]

    def is_available(self, day, minute: int) -> bool:
        """Strict check used before persisting; store errors propagate."""
        return not within_gap(minute, self.store.booked_minutes(day), self.gap_minutes)
