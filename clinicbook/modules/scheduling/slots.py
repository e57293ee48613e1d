"""Slot arithmetic shared by availability search and booking admission.

Times of day are plain ``datetime.time`` values; all arithmetic is done in
minutes past midnight so a slot can never wrap into the next day.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from clinicbook.core.errors import InvalidArgument

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_HHMM = re.compile(r"^\d{2}:\d{2}$")


def overlaps(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    """Half-open interval overlap: [a_start, a_end) vs [b_start, b_end).

    Intervals that only touch at a boundary do not overlap.
    """
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class Slot:
    start: time
    end: time

    def overlaps(self, start: time, end: time) -> bool:
        return overlaps(self.start, self.end, start, end)

    def as_dict(self) -> dict:
        return {"from": format_hhmm(self.start), "to": format_hhmm(self.end)}


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _time_of(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def generate_slots(work_from: time, work_to: time, duration_minutes: int) -> list[Slot]:
    start = _minutes(work_from)
    end = _minutes(work_to)
    if duration_minutes <= 0 or start >= end:
        return []

    out: list[Slot] = []
    cur = start
    while cur + duration_minutes <= end:
        out.append(Slot(_time_of(cur), _time_of(cur + duration_minutes)))
        cur += duration_minutes
    return out


def parse_hhmm(value: str, field: str = "booking_from") -> time:
    if not isinstance(value, str) or not _HHMM.match(value):
        raise InvalidArgument(f"{field} must be HH:mm")
    hours, minutes = int(value[:2]), int(value[3:])
    if hours > 23 or minutes > 59:
        raise InvalidArgument(f"{field} must be HH:mm")
    return time(hour=hours, minute=minutes)


def format_hhmm(t: time) -> str:
    return t.strftime("%H:%M")


def weekday_code(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def parse_work_days(raw: str | None) -> frozenset[str]:
    # stored as "mon,wed,fri"; unknown tokens are ignored
    if not raw:
        return frozenset()
    days = (part.strip().lower()[:3] for part in raw.split(","))
    return frozenset(d for d in days if d in WEEKDAYS)


def end_of_slot(day: date, start: time, duration_minutes: int) -> time | None:
    """End time of a slot starting at ``start``, or None if it spills past midnight."""
    begin = datetime.combine(day, start)
    finish = begin + timedelta(minutes=duration_minutes)
    if finish.date() != day:
        return None
    return finish.time()
