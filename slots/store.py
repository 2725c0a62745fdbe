"""
Slot store: durable slot state and its atomic transitions.

Every transition is one conditional UPDATE whose WHERE clause carries the
current-state predicate; the affected row count decides the outcome. The slot
is only re-read after a failed update, to report why it failed.
"""
import secrets
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import and_, or_, update

from models import db
from models.slot import TimeSlot
from slots.errors import Conflict, Expired, InvalidToken, NotFound

FREE = "FREE"
HELD = "HELD"
CONFIRMED = "CONFIRMED"
BLOCKED = "BLOCKED"


def _now(now=None):
    return now or datetime.utcnow()


def default_hold_duration() -> timedelta:
    return timedelta(minutes=current_app.config.get("SLOT_HOLD_MINUTES", 10))


def new_lock_token() -> str:
    return secrets.token_urlsafe(24)


def bookable_clause(now=None):
    """SQL form of the bookable predicate."""
    now = _now(now)
    return and_(
        TimeSlot.is_available.is_(True),
        TimeSlot.is_blocked_by_owner.is_(False),
        TimeSlot.is_holiday.is_(False),
        or_(TimeSlot.locked_until.is_(None), TimeSlot.locked_until < now),
    )


def upcoming_clause(now=None):
    """SQL form of starts_at > now."""
    now = _now(now)
    return or_(
        TimeSlot.date > now.date(),
        and_(TimeSlot.date == now.date(), TimeSlot.start_time > now.time()),
    )


def is_bookable(slot: TimeSlot, now=None) -> bool:
    now = _now(now)
    return (
        slot.is_available
        and not slot.is_blocked_by_owner
        and not slot.is_holiday
        and (slot.locked_until is None or slot.locked_until < now)
    )


def slot_state(slot: TimeSlot, now=None) -> str:
    # Owner overrides win over holds; a confirmed slot stays confirmed.
    now = _now(now)
    if not slot.is_available:
        return CONFIRMED
    if slot.is_blocked_by_owner or slot.is_holiday:
        return BLOCKED
    if slot.locked_until is not None and slot.locked_until >= now:
        return HELD
    return FREE


def unavailable_reason(slot: TimeSlot, now=None):
    now = _now(now)
    if not slot.is_available:
        return "Already booked"
    if slot.is_blocked_by_owner:
        return "Blocked by owner"
    if slot.is_holiday:
        return "Holiday"
    if slot.locked_until is not None and slot.locked_until >= now:
        return "Currently held by another player"
    return None


def slot_to_dict(slot: TimeSlot, now=None) -> dict:
    return {
        "id": slot.id,
        "arena_id": slot.arena_id,
        "court_id": slot.court_id,
        "date": slot.date.isoformat(),
        "start_time": slot.start_time.strftime("%H:%M"),
        "end_time": slot.end_time.strftime("%H:%M"),
        "price_per_hour": slot.price_per_hour,
        "is_available": slot.is_available,
        "is_blocked_by_owner": slot.is_blocked_by_owner,
        "is_holiday": slot.is_holiday,
        "locked_until": slot.locked_until.isoformat() if slot.locked_until else None,
        "state": slot_state(slot, now),
    }


def _reload(slot_id: int):
    # Bypass the identity map: the row was just touched by a Core UPDATE.
    return db.session.get(TimeSlot, slot_id, populate_existing=True)


def _apply(stmt) -> int:
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount


def _finish(commit: bool):
    if commit:
        db.session.commit()


def _abort(commit: bool):
    # A failed conditional UPDATE still opened a write transaction.
    if commit:
        db.session.rollback()


# ---------- reads ----------

def get_slot(arena_id: int, court_id: int, date, start_time, end_time) -> TimeSlot:
    slot = TimeSlot.query.filter_by(
        arena_id=arena_id,
        court_id=court_id,
        date=date,
        start_time=start_time,
        end_time=end_time,
    ).first()
    if not slot:
        raise NotFound()
    return slot


def get_slot_by_id(slot_id: int) -> TimeSlot:
    slot = db.session.get(TimeSlot, slot_id)
    if not slot:
        raise NotFound()
    return slot


# ---------- hold / confirm / release ----------

def try_lock(slot_id: int, hold_duration=None, user_id=None, token=None, now=None, commit=True) -> str:
    """
    Place a hold on a bookable slot and return its lock token.

    Raises Conflict when the slot is held, booked, blocked or on holiday.
    """
    now = _now(now)
    hold_duration = hold_duration or default_hold_duration()
    token = token or new_lock_token()

    stmt = (
        update(TimeSlot)
        .where(TimeSlot.id == slot_id, bookable_clause(now))
        .values(
            locked_until=now + hold_duration,
            lock_token=token,
            locked_by_user_id=user_id,
        )
    )
    if _apply(stmt) == 1:
        _finish(commit)
        return token

    _abort(commit)
    slot = _reload(slot_id)
    if slot is None:
        raise NotFound()
    raise Conflict(
        "Time slot is not available",
        slot_id=slot_id,
        reason=unavailable_reason(slot, now),
        locked_until=slot.locked_until.isoformat() if slot.locked_until else None,
    )


def confirm(slot_id: int, lock_token: str, now=None, commit=True) -> None:
    """
    Turn a live hold into a permanent booking (is_available=False).

    Retrying with the token that already confirmed the slot succeeds.
    """
    now = _now(now)
    if not lock_token:
        raise InvalidToken()

    stmt = (
        update(TimeSlot)
        .where(
            TimeSlot.id == slot_id,
            TimeSlot.lock_token == lock_token,
            TimeSlot.is_available.is_(True),
            TimeSlot.is_blocked_by_owner.is_(False),
            TimeSlot.is_holiday.is_(False),
            TimeSlot.locked_until.isnot(None),
            TimeSlot.locked_until >= now,
        )
        .values(is_available=False, locked_until=None)
    )
    if _apply(stmt) == 1:
        _finish(commit)
        return

    _abort(commit)
    slot = _reload(slot_id)
    if slot is None:
        raise NotFound()
    if slot.lock_token != lock_token:
        raise InvalidToken()
    if not slot.is_available:
        return
    if slot.is_blocked_by_owner or slot.is_holiday:
        raise Conflict(
            "Time slot was withdrawn by the owner",
            slot_id=slot_id,
            reason=unavailable_reason(slot, now),
        )
    raise Expired(slot_id=slot_id)


def release(slot_id: int, lock_token: str, commit=True) -> None:
    """Drop a hold before it lapses; the slot is bookable again at once."""
    if not lock_token:
        raise InvalidToken()

    stmt = (
        update(TimeSlot)
        .where(
            TimeSlot.id == slot_id,
            TimeSlot.lock_token == lock_token,
            TimeSlot.is_available.is_(True),
        )
        .values(locked_until=None, lock_token=None, locked_by_user_id=None)
    )
    if _apply(stmt) == 1:
        _finish(commit)
        return

    _abort(commit)
    slot = _reload(slot_id)
    if slot is None:
        raise NotFound()
    if slot.lock_token == lock_token:
        raise InvalidToken("Hold already confirmed; cancel the booking instead", slot_id=slot_id, confirmed=True)
    raise InvalidToken()


# ---------- owner overrides / external cancellation ----------

def _set_values(slot_id: int, commit: bool, **values) -> None:
    stmt = update(TimeSlot).where(TimeSlot.id == slot_id).values(**values)
    if _apply(stmt) != 1:
        _abort(commit)
        raise NotFound()
    _finish(commit)


def set_owner_block(slot_id: int, blocked: bool, commit=True) -> None:
    # Active holds are left in place; confirm() refuses while blocked.
    _set_values(slot_id, commit, is_blocked_by_owner=bool(blocked))


def set_holiday(slot_id: int, holiday: bool, commit=True) -> None:
    _set_values(slot_id, commit, is_holiday=bool(holiday))


def set_available(slot_id: int, available: bool = True, commit=True) -> None:
    if available:
        _set_values(
            slot_id,
            commit,
            is_available=True,
            locked_until=None,
            lock_token=None,
            locked_by_user_id=None,
        )
    else:
        _set_values(slot_id, commit, is_available=False)


def clear_lapsed_hold(slot_id: int, lock_token: str, now=None, commit=True) -> bool:
    """Clear a hold that has already lapsed. Returns False if it is gone or still live."""
    now = _now(now)
    stmt = (
        update(TimeSlot)
        .where(
            TimeSlot.id == slot_id,
            TimeSlot.lock_token == lock_token,
            TimeSlot.is_available.is_(True),
            TimeSlot.locked_until < now,
        )
        .values(locked_until=None, lock_token=None, locked_by_user_id=None)
    )
    cleared = _apply(stmt) == 1
    _finish(commit)
    return cleared


def set_day_flags(arena_id: int, date, blocked=None, holiday=None, commit=True) -> int:
    """Bulk owner override for every slot of an arena on one date."""
    values = {}
    if blocked is not None:
        values["is_blocked_by_owner"] = bool(blocked)
    if holiday is not None:
        values["is_holiday"] = bool(holiday)
    if not values:
        return 0

    stmt = (
        update(TimeSlot)
        .where(TimeSlot.arena_id == arena_id, TimeSlot.date == date)
        .values(**values)
    )
    count = _apply(stmt)
    _finish(commit)
    return count


def save_slot(arena_id: int, court_id: int, date, start_time, end_time, price_per_hour,
              blocked=False, holiday=False) -> TimeSlot:
    """Create the slot, or update price and owner flags of the existing one."""
    slot = TimeSlot.query.filter_by(
        court_id=court_id, date=date, start_time=start_time, end_time=end_time
    ).first()
    if slot is None:
        slot = TimeSlot(
            arena_id=arena_id,
            court_id=court_id,
            date=date,
            start_time=start_time,
            end_time=end_time,
        )
        db.session.add(slot)

    slot.price_per_hour = price_per_hour
    slot.is_blocked_by_owner = bool(blocked)
    slot.is_holiday = bool(holiday)
    return slot
