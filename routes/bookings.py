from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking
from models.slot import TimeSlot
from security.rbac import require_roles
from slots import reservation
from utils.auth_context import login_required
from utils.emailer import notify_booking_status

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def booking_to_dict(b: Booking) -> dict:
    s = b.slot
    return {
        "id": b.id,
        "arena_id": b.arena_id,
        "status": b.status,
        "total_amount": b.total_amount,
        "lock_expires_at": b.lock_expires_at.isoformat() if b.lock_expires_at else None,
        "created_at": b.created_at.isoformat(),
        "confirmed_at": b.confirmed_at.isoformat() if b.confirmed_at else None,
        "cancelled_at": b.cancelled_at.isoformat() if b.cancelled_at else None,
        "cancelled_by": b.cancelled_by,
        "slot": {
            "slot_id": b.slot_id,
            "court_id": s.court_id if s else None,
            "date": s.date.isoformat() if s else None,
            "start_time": s.start_time.strftime("%H:%M") if s else None,
            "end_time": s.end_time.strftime("%H:%M") if s else None,
            "price_per_hour": s.price_per_hour if s else None,
        },
    }


def _own_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if not booking or booking.user_id != g.user.id:
        return None
    return booking


# ---------- PLAYERS: hold slots (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/hold")
@require_roles("PLAYER")
def hold():
    data = request.get_json(silent=True) or {}
    slot_ids = data.get("slot_ids") or []
    if not isinstance(slot_ids, list):
        return jsonify(error="slot_ids must be a list"), 400
    if data.get("slot_id"):
        slot_ids = [data.get("slot_id")] + slot_ids
    try:
        slot_ids = [int(s) for s in slot_ids]
    except (TypeError, ValueError):
        return jsonify(error="slot ids must be integers"), 400

    bookings, token = reservation.hold_slots(g.user.id, slot_ids)
    return jsonify(
        success=True,
        lock_token=token,
        bookings=[booking_to_dict(b) for b in bookings],
    ), 201


# ---------- PLAYERS: confirm a hold ----------
@booking_bp.post("/<int:booking_id>/confirm")
@login_required
def confirm(booking_id: int):
    booking = _own_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    already = booking.status == "CONFIRMED"
    reservation.confirm_booking(booking)
    if not already:
        notify_booking_status(g.user, booking, "CONFIRMED")
    return jsonify(success=True, booking=booking_to_dict(booking)), 200


# ---------- PLAYERS: cancel (hold release or policy-window cancel) ----------
@booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    booking = _own_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    if booking.status == "PENDING":
        reservation.release_booking(booking, actor="player", reason=reason)
        return jsonify(success=True, message="Hold released"), 200

    if booking.status != "CONFIRMED":
        return jsonify(error="Booking not cancellable"), 400

    cutoff_hours = current_app.config.get("CANCEL_CUTOFF_HOURS", 12)
    slot = db.session.get(TimeSlot, booking.slot_id)
    if slot and (slot.starts_at - datetime.utcnow()).total_seconds() < cutoff_hours * 3600:
        return jsonify(error=f"Cancellation not allowed within {cutoff_hours} hours of start"), 403

    reservation.cancel_confirmed(booking, actor="player", reason=reason)
    notify_booking_status(g.user, booking, "CANCELLED")
    return jsonify(success=True, message="Cancelled"), 200


# ---------- PLAYERS: view my bookings ----------
@booking_bp.get("/me")
@login_required
def my_bookings():
    status = (request.args.get("status") or "").strip().upper()
    q = g.user.bookings
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
    return jsonify(success=True, bookings=[booking_to_dict(b) for b in rows]), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def booking_details(booking_id: int):
    booking = _own_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    return jsonify(success=True, booking=booking_to_dict(booking)), 200
