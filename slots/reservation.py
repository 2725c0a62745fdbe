"""
Reservation protocol: FREE -> HELD -> CONFIRMED over bookings.

A hold is a PENDING booking carrying the slot's lock token. Holds lapse
lazily: nothing sweeps them, the bookable predicate simply treats an expired
locked_until as free. CONFIRMED only goes back to FREE through an explicit
cancellation (store.set_available).
"""
from datetime import datetime

from flask import current_app

from models import db
from models.arena import Arena
from models.booking import Booking
from models.slot import TimeSlot
from slots import store
from slots.errors import Conflict, Expired, InvalidToken, NotFound, ValidationError
from slots.search import nearby_slots
from utils.audit import log_event
from utils.time_slots import duration_hours


def _booking_amount(slot: TimeSlot) -> int:
    return int(round(slot.price_per_hour * duration_hours(slot.start_time, slot.end_time)))


def hold_slots(user_id: int, slot_ids, now=None):
    """
    Hold one or more slots of a single arena for user_id, all or nothing.

    Returns (bookings, lock_token). On contention raises Conflict carrying
    nearby bookable alternatives.
    """
    now = now or datetime.utcnow()
    slot_ids = list(dict.fromkeys(int(s) for s in slot_ids or []))
    if not slot_ids:
        raise ValidationError("slot_id or slot_ids[] required")

    slots = TimeSlot.query.filter(TimeSlot.id.in_(slot_ids)).all()
    if len(slots) != len(slot_ids):
        raise NotFound("One or more selected slots were not found")
    if len({s.arena_id for s in slots}) != 1:
        raise ValidationError("All slots must belong to the same arena")

    arena = db.session.get(Arena, slots[0].arena_id)
    if not arena or not arena.is_active:
        raise NotFound("Arena not found")
    if arena.is_blocked:
        raise Conflict("Arena is blocked")

    past = [s.id for s in slots if s.starts_at <= now]
    if past:
        raise ValidationError("Cannot book past time slots", slot_ids=past)

    hold = store.default_hold_duration()
    token = store.new_lock_token()
    by_id = {s.id: s for s in slots}
    try:
        # Always lock in ascending id order.
        for slot_id in sorted(slot_ids):
            store.try_lock(slot_id, hold, user_id=user_id, token=token, now=now, commit=False)
    except Conflict as exc:
        db.session.rollback()
        failed = by_id[exc.extra["slot_id"]]
        log_event("HOLD_CONFLICT", user_id=user_id, entity="slot", entity_id=failed.id)
        limit = current_app.config.get("NEARBY_SLOT_SUGGESTIONS", 3)
        exc.extra["suggestions"] = nearby_slots(failed, limit=limit, now=now)
        raise

    bookings = []
    for slot_id in slot_ids:
        slot = by_id[slot_id]
        booking = Booking(
            user_id=user_id,
            arena_id=slot.arena_id,
            slot_id=slot_id,
            status="PENDING",
            total_amount=_booking_amount(slot),
            lock_token=token,
            lock_expires_at=now + hold,
        )
        db.session.add(booking)
        bookings.append(booking)
    db.session.commit()

    for b in bookings:
        log_event("HOLD_CREATE", user_id=user_id, entity="booking", entity_id=b.id, metadata={"slot_id": b.slot_id})
    return bookings, token


def confirm_booking(booking: Booking, now=None) -> Booking:
    """
    HELD -> CONFIRMED. Idempotent for an already confirmed booking.

    A lapsed hold marks the booking EXPIRED and raises Expired. A slot the
    owner blocked meanwhile raises Conflict and leaves the booking PENDING;
    if the block is lifted before the hold lapses a retry still succeeds.
    """
    now = now or datetime.utcnow()
    if booking.status not in ("PENDING", "CONFIRMED"):
        raise Conflict(f"Booking is {booking.status.lower()} and cannot be confirmed")

    # The slot flip and the booking status commit together.
    try:
        store.confirm(booking.slot_id, booking.lock_token, now=now, commit=False)
    except (Expired, InvalidToken) as exc:
        # Another player may already hold the slot under a new token.
        lapsed = booking.lock_expires_at is not None and booking.lock_expires_at < now
        if booking.status == "PENDING" and (isinstance(exc, Expired) or lapsed):
            _expire(booking, now)
            log_event("BOOKING_HOLD_EXPIRED", user_id=booking.user_id, entity="booking", entity_id=booking.id)
            raise Expired(booking_id=booking.id)
        db.session.rollback()
        raise
    except Conflict:
        db.session.rollback()
        raise

    newly_confirmed = booking.status != "CONFIRMED"
    if newly_confirmed:
        booking.status = "CONFIRMED"
        booking.confirmed_at = now
        booking.lock_expires_at = None
    db.session.commit()

    if newly_confirmed:
        log_event("BOOKING_CONFIRM", user_id=booking.user_id, entity="booking", entity_id=booking.id,
                  metadata={"slot_id": booking.slot_id})
    return booking


def release_booking(booking: Booking, actor: str = "player", reason=None, now=None) -> Booking:
    """HELD -> FREE before the hold lapses."""
    now = now or datetime.utcnow()
    if booking.status != "PENDING":
        raise Conflict("Only pending bookings can be released")

    try:
        store.release(booking.slot_id, booking.lock_token, commit=False)
    except InvalidToken as exc:
        if exc.extra.get("confirmed"):
            # The slot was confirmed under this hold's token; give it back.
            store.set_available(booking.slot_id, True, commit=False)
        # Otherwise the hold lapsed and was taken over; nothing left to free.

    booking.status = "CANCELLED"
    booking.cancelled_at = now
    booking.cancelled_by = actor
    booking.cancel_reason = reason
    booking.lock_expires_at = None
    db.session.commit()
    log_event("HOLD_RELEASE", user_id=booking.user_id, entity="booking", entity_id=booking.id)
    return booking


def cancel_confirmed(booking: Booking, actor: str, reason=None, now=None) -> Booking:
    """CONFIRMED -> FREE: the slot goes back to the pool."""
    now = now or datetime.utcnow()
    if booking.status != "CONFIRMED":
        raise Conflict("Booking not cancellable")

    store.set_available(booking.slot_id, True, commit=False)
    booking.status = "CANCELLED"
    booking.cancelled_at = now
    booking.cancelled_by = actor
    booking.cancel_reason = reason
    db.session.commit()
    log_event("BOOKING_CANCEL", user_id=booking.user_id, entity="booking", entity_id=booking.id,
              metadata={"actor": actor, "reason": reason})
    return booking


def _expire(booking: Booking, now):
    store.clear_lapsed_hold(booking.slot_id, booking.lock_token, now=now, commit=False)
    booking.status = "EXPIRED"
    booking.cancelled_at = now
    booking.cancelled_by = "system"
    booking.lock_expires_at = None
    db.session.commit()


def expire_stale_holds(now=None) -> int:
    """Housekeeping: mark lapsed PENDING bookings EXPIRED. Not needed for correctness."""
    now = now or datetime.utcnow()
    stale = (
        Booking.query
        .filter(Booking.status == "PENDING", Booking.lock_expires_at < now)
        .all()
    )
    for booking in stale:
        _expire(booking, now)
    return len(stale)
