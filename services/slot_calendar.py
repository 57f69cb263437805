"""
Slot calendar: the fixed grid of bookable times for a working day.

The same object formats and parses slot labels, so every component that
produces or consumes a label agrees on one format.
"""
from dataclasses import dataclass
from datetime import date as date_type, datetime

from services.exceptions import ValidationError

LABEL_FORMATS = ("24h", "12h")


@dataclass(frozen=True)
class ScheduleConfig:
    opening_hour: int = 8
    closing_hour: int = 18
    slot_minutes: int = 30
    label_format: str = "24h"
    min_gap_minutes: int = 60

    def __post_init__(self):
        if not 0 <= self.opening_hour < self.closing_hour <= 24:
            raise ValueError("opening_hour must be before closing_hour, both within 0-24")
        if self.slot_minutes <= 0:
            raise ValueError("slot_minutes must be positive")
        if self.label_format not in LABEL_FORMATS:
            raise ValueError(f"label_format must be one of {LABEL_FORMATS}")
        if self.min_gap_minutes < 0:
            raise ValueError("min_gap_minutes cannot be negative")

    @classmethod
    def from_mapping(cls, cfg) -> "ScheduleConfig":
        return cls(
            opening_hour=int(cfg.get("OPENING_HOUR", 8)),
            closing_hour=int(cfg.get("CLOSING_HOUR", 18)),
            slot_minutes=int(cfg.get("SLOT_MINUTES", 30)),
            label_format=str(cfg.get("SLOT_LABEL_FORMAT", "24h")),
            min_gap_minutes=int(cfg.get("MIN_GAP_MINUTES", 60)),
        )


class SlotCalendar:
    def __init__(self, config: ScheduleConfig):
        self.config = config

    def minutes(self) -> list:
        """Slot start times as minutes since midnight, opening inclusive, closing exclusive."""
        start = self.config.opening_hour * 60
        end = self.config.closing_hour * 60
        return list(range(start, end, self.config.slot_minutes))

    def slots_for(self, day: date_type) -> list:
        """
        Ordered slot labels for ``day``.

        Every day shares the same working hours; the date is taken so callers
        never have to special-case it if per-day hours are introduced.
        """
        if day is None:
            raise ValidationError("Date is required")
        return [self.format_minute(m) for m in self.minutes()]

    def format_minute(self, minute: int) -> str:
        hour, mins = divmod(minute, 60)
        if self.config.label_format == "12h":
            ampm = "AM" if hour < 12 else "PM"
            return f"{hour % 12 or 12}:{mins:02d} {ampm}"
        return f"{hour:02d}:{mins:02d}"

    def parse_label(self, label) -> int:
        """
        Minutes since midnight for a label in the configured format.

        Only the exact form produced by ``format_minute`` is accepted, so a
        12-hour label sent to a 24-hour calendar (or the reverse) is rejected
        instead of being silently reinterpreted.
        """
        text = label.strip() if isinstance(label, str) else ""
        fmt = "%I:%M %p" if self.config.label_format == "12h" else "%H:%M"
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            raise ValidationError(f"Invalid time slot: {label!r}")

        minute = parsed.hour * 60 + parsed.minute
        if self.format_minute(minute) != text:
            raise ValidationError(f"Invalid time slot: {label!r}")
        return minute

    def slot_minute(self, label) -> int:
        """Like ``parse_label`` but the time must also be one of the calendar's slots."""
        minute = self.parse_label(label)
        if minute not in self.minutes():
            raise ValidationError(f"{label} is not a bookable time slot")
        return minute
