from datetime import date, datetime, time, timedelta

from slots.errors import ValidationError


def parse_date(value: str, field: str = "date") -> date:
    # Expect ISO format like "2026-01-20"
    try:
        return date.fromisoformat((value or "").strip())
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD")


def parse_time(value: str, field: str = "time") -> time:
    # Accepts "18:00" or "18:00:00"
    raw = (value or "").strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"Invalid {field}. Use HH:MM")


def generate_time_slots(opening_time: time, closing_time: time, slot_duration_minutes: int):
    """
    Split opening hours into back-to-back (start, end) pairs.

    A trailing remainder shorter than slot_duration_minutes is dropped.
    """
    if slot_duration_minutes <= 0:
        raise ValidationError("slot_duration must be positive")
    if closing_time <= opening_time:
        raise ValidationError("closing_time must be after opening_time")

    anchor = date.min
    cursor = datetime.combine(anchor, opening_time)
    closing = datetime.combine(anchor, closing_time)
    step = timedelta(minutes=slot_duration_minutes)

    slots = []
    while cursor + step <= closing:
        slots.append((cursor.time(), (cursor + step).time()))
        cursor += step
    return slots


def duration_hours(start_time: time, end_time: time) -> float:
    anchor = date.min
    delta = datetime.combine(anchor, end_time) - datetime.combine(anchor, start_time)
    return delta.total_seconds() / 3600
