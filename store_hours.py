"""
Store opening status and operating-day labels.

Times are wall-clock strings ("HH:MM" or "HH:MM:SS") without a timezone and
are compared against the viewer's local clock.
"""
from datetime import datetime
from typing import Iterable, Optional

DAY_LABELS = {
    "monday": "Seg",
    "tuesday": "Ter",
    "wednesday": "Qua",
    "thursday": "Qui",
    "friday": "Sex",
    "saturday": "Sáb",
    "sunday": "Dom",
}

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")

OPEN_LABEL = "Aberta"
CLOSED_LABEL = "Fechada"


def _to_minutes(value: str) -> int:
    parts = value.split(":")
    return int(parts[0]) * 60 + int(parts[1])


def is_store_open(opening_time: Optional[str], closing_time: Optional[str],
                  now: Optional[datetime] = None) -> bool:
    """Whether `now` falls inside the daily window, both ends inclusive.

    A store without both times is always reported open. Overnight windows
    (closing before opening) are not wrapped around midnight, and operating
    days do not take part in this check.
    """
    if not opening_time or not closing_time:
        return True

    now = now or datetime.now()
    current = now.hour * 60 + now.minute
    return _to_minutes(opening_time) <= current <= _to_minutes(closing_time)


def store_status_label(opening_time: Optional[str], closing_time: Optional[str],
                       now: Optional[datetime] = None) -> str:
    return OPEN_LABEL if is_store_open(opening_time, closing_time, now) else CLOSED_LABEL


def format_operating_days(days: Optional[Iterable[str]]) -> Optional[str]:
    if not days:
        return None
    days = list(days)

    if len(days) == 7:
        return "Todos os dias"
    if len(days) == 5 and all(day in days for day in WEEKDAYS):
        return "Seg a Sex"

    return ", ".join(DAY_LABELS.get(day, day) for day in days)


def format_hours(opening_time: Optional[str], closing_time: Optional[str]) -> Optional[str]:
    """Label like 09:00 - 18:00, seconds dropped."""
    if not opening_time or not closing_time:
        return None
    return f"{opening_time[:5]} - {closing_time[:5]}"
