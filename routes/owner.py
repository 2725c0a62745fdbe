from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.arena import Arena
from models.booking import Booking
from models.court import Court, Sport
from models.slot import TimeSlot
from models.user import User, Role
from routes.arenas import court_to_dict
from routes.bookings import booking_to_dict
from security.rbac import require_roles
from slots import reservation, store
from slots.store import slot_to_dict
from utils.audit import log_event
from utils.payload import json_flag
from utils.time_slots import generate_time_slots, parse_date, parse_time

owner_bp = Blueprint("owner", __name__, url_prefix="/owner")


def _price(value, default=None):
    if value is None or value == "":
        return default
    try:
        price = int(value)
    except (TypeError, ValueError):
        return None
    return price if price >= 0 else None


def _managed_arena(arena_id: int):
    # 404 rather than 403 so arena ids of other owners are not confirmed
    arena = db.session.get(Arena, arena_id)
    if not arena or not arena.is_managed_by(g.user):
        return None
    return arena


def _managed_slot(slot_id: int):
    slot = db.session.get(TimeSlot, slot_id)
    if not slot:
        return None
    arena = db.session.get(Arena, slot.arena_id)
    if not arena or not arena.is_managed_by(g.user):
        return None
    return slot


def _arena_to_dict(a: Arena) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "description": a.description,
        "address": a.address,
        "city": a.city,
        "is_active": a.is_active,
        "is_blocked": a.is_blocked,
        "manager_user_id": a.manager_user_id,
        "courts": [court_to_dict(c) for c in a.courts],
    }


# ---------- OWNER: arenas & courts ----------
@owner_bp.post("/arenas")
@require_roles("OWNER")
def create_arena():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify(error="Arena name required"), 400

    arena = Arena(
        owner_user_id=g.user.id,
        name=name,
        description=(data.get("description") or "").strip() or None,
        address=(data.get("address") or "").strip() or None,
        city=(data.get("city") or "").strip() or None,
    )
    db.session.add(arena)
    db.session.commit()

    log_event("ARENA_CREATE", user_id=g.user.id, entity="arena", entity_id=arena.id)
    return jsonify(success=True, arena=_arena_to_dict(arena)), 201


@owner_bp.get("/arenas")
@require_roles("OWNER", "MANAGER")
def my_arenas():
    arenas = (
        Arena.query
        .filter((Arena.owner_user_id == g.user.id) | (Arena.manager_user_id == g.user.id))
        .order_by(Arena.id.asc())
        .all()
    )
    return jsonify(success=True, arenas=[_arena_to_dict(a) for a in arenas]), 200


@owner_bp.post("/arenas/<int:arena_id>/courts")
@require_roles("OWNER")
def create_court(arena_id: int):
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    price = _price(data.get("price_per_hour"))
    sport_names = data.get("sports") or []

    if not name or price is None:
        return jsonify(error="name and a non-negative integer price_per_hour are required"), 400
    if not isinstance(sport_names, list):
        return jsonify(error="sports must be a list of names"), 400

    arena = _managed_arena(arena_id)
    if not arena or arena.owner_user_id != g.user.id:
        return jsonify(error="Arena not found or access denied"), 404

    sports = Sport.query.filter(Sport.name.in_(sport_names)).all() if sport_names else []
    unknown = set(sport_names) - {s.name for s in sports}
    if unknown:
        return jsonify(error="Unknown sports", sports=sorted(unknown)), 400

    court = Court(arena_id=arena.id, name=name, price_per_hour=price, sports=sports)
    db.session.add(court)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Court name already exists in this arena"), 409

    log_event("COURT_CREATE", user_id=g.user.id, entity="court", entity_id=court.id)
    return jsonify(success=True, court=court_to_dict(court)), 201


@owner_bp.put("/arenas/<int:arena_id>/manager")
@require_roles("OWNER")
def assign_manager(arena_id: int):
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()

    arena = _managed_arena(arena_id)
    if not arena or arena.owner_user_id != g.user.id:
        return jsonify(error="Arena not found or access denied"), 404

    if not email:
        arena.manager_user_id = None
        db.session.commit()
        log_event("ARENA_MANAGER_REMOVE", user_id=g.user.id, entity="arena", entity_id=arena.id)
        return jsonify(success=True, manager_user_id=None), 200

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify(error="User not found"), 404

    manager_role = Role.query.filter_by(name="MANAGER").first()
    if manager_role and manager_role not in user.roles:
        user.roles.append(manager_role)
    arena.manager_user_id = user.id
    db.session.commit()

    log_event("ARENA_MANAGER_ASSIGN", user_id=g.user.id, entity="arena", entity_id=arena.id,
              metadata={"manager_user_id": user.id})
    return jsonify(success=True, manager_user_id=user.id), 200


# ---------- OWNER/MANAGER: schedule ----------
@owner_bp.post("/arenas/<int:arena_id>/courts/<int:court_id>/slots/generate")
@require_roles("OWNER", "MANAGER")
def generate_slots(arena_id: int, court_id: int):
    data = request.get_json(silent=True) or {}
    if not data.get("date") or not data.get("opening_time") or not data.get("closing_time"):
        return jsonify(error="date, opening_time, closing_time are required"), 400

    day = parse_date(data.get("date"))
    opening = parse_time(data.get("opening_time"), "opening_time")
    closing = parse_time(data.get("closing_time"), "closing_time")
    try:
        duration = int(data.get("slot_duration") or 60)
    except (TypeError, ValueError):
        return jsonify(error="slot_duration must be minutes as an integer"), 400

    arena = _managed_arena(arena_id)
    court = db.session.get(Court, court_id)
    if not arena or not court or court.arena_id != arena.id:
        return jsonify(error="Arena not found or access denied"), 404

    price = _price(data.get("price_per_hour"), default=court.price_per_hour)
    if price is None:
        return jsonify(error="price_per_hour must be a non-negative integer"), 400

    created = []
    for start, end in generate_time_slots(opening, closing, duration):
        exists = TimeSlot.query.filter_by(court_id=court.id, date=day, start_time=start, end_time=end).first()
        if exists:
            continue
        slot = TimeSlot(
            arena_id=arena.id,
            court_id=court.id,
            date=day,
            start_time=start,
            end_time=end,
            price_per_hour=price,
        )
        db.session.add(slot)
        created.append(slot)
    db.session.commit()

    log_event("SLOT_GENERATE", user_id=g.user.id, entity="court", entity_id=court.id,
              metadata={"date": day.isoformat(), "created": len(created)})
    return jsonify(success=True, slots=[slot_to_dict(s) for s in created]), 201


@owner_bp.put("/arenas/<int:arena_id>/slots")
@require_roles("OWNER", "MANAGER")
def manage_time_slots(arena_id: int):
    """
    Body: {date, court_id?, slots?: [{start_time, end_time, price}], is_blocked?, is_holiday?}

    With slots, each listed slot is created or updated (flags default false).
    Without slots, the flags are applied to every slot of the arena on that date.
    """
    data = request.get_json(silent=True) or {}
    if not data.get("date"):
        return jsonify(error="date is required"), 400
    day = parse_date(data.get("date"))
    slots = data.get("slots") or []
    is_blocked = json_flag(data, "is_blocked")
    is_holiday = json_flag(data, "is_holiday")

    arena = _managed_arena(arena_id)
    if not arena:
        return jsonify(error="Arena not found or access denied"), 404

    if slots:
        try:
            court = db.session.get(Court, int(data.get("court_id")))
        except (TypeError, ValueError):
            court = None
        if not court or court.arena_id != arena.id:
            return jsonify(error="court_id of this arena is required when listing slots"), 400

        saved = []
        for item in slots:
            start = parse_time(item.get("start_time"), "start_time")
            end = parse_time(item.get("end_time"), "end_time")
            if end <= start:
                db.session.rollback()
                return jsonify(error="end_time must be after start_time"), 400
            price = _price(item.get("price"), default=court.price_per_hour)
            if price is None:
                db.session.rollback()
                return jsonify(error="price must be a non-negative integer"), 400
            saved.append(store.save_slot(
                arena.id, court.id, day, start, end, price,
                blocked=bool(is_blocked), holiday=bool(is_holiday),
            ))
        db.session.commit()
        log_event("SLOT_SCHEDULE_SAVE", user_id=g.user.id, entity="arena", entity_id=arena.id,
                  metadata={"date": day.isoformat(), "slots": len(saved)})
        return jsonify(success=True, message="Time slots updated successfully",
                       slots=[slot_to_dict(s) for s in saved]), 200

    if is_blocked is None and is_holiday is None:
        return jsonify(error="slots or is_blocked/is_holiday required"), 400

    count = store.set_day_flags(arena.id, day, blocked=is_blocked, holiday=is_holiday)
    log_event("SLOT_DAY_FLAGS", user_id=g.user.id, entity="arena", entity_id=arena.id,
              metadata={"date": day.isoformat(), "is_blocked": is_blocked, "is_holiday": is_holiday, "updated": count})
    return jsonify(success=True, message="Time slots updated successfully", updated=count), 200


@owner_bp.post("/slots/<int:slot_id>/block")
@require_roles("OWNER", "MANAGER")
def block_slot(slot_id: int):
    data = request.get_json(silent=True) or {}
    blocked = json_flag(data, "blocked", True)

    slot = _managed_slot(slot_id)
    if not slot:
        return jsonify(error="Slot not found or access denied"), 404

    store.set_owner_block(slot.id, blocked)
    log_event("SLOT_BLOCK" if blocked else "SLOT_UNBLOCK", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(success=True, slot=slot_to_dict(store.get_slot_by_id(slot.id))), 200


@owner_bp.post("/slots/<int:slot_id>/holiday")
@require_roles("OWNER", "MANAGER")
def holiday_slot(slot_id: int):
    data = request.get_json(silent=True) or {}
    holiday = json_flag(data, "holiday", True)

    slot = _managed_slot(slot_id)
    if not slot:
        return jsonify(error="Slot not found or access denied"), 404

    store.set_holiday(slot.id, holiday)
    log_event("SLOT_HOLIDAY_SET" if holiday else "SLOT_HOLIDAY_CLEAR", user_id=g.user.id, entity="slot", entity_id=slot.id)
    return jsonify(success=True, slot=slot_to_dict(store.get_slot_by_id(slot.id))), 200


# ---------- OWNER/MANAGER: bookings ----------
@owner_bp.get("/bookings")
@require_roles("OWNER", "MANAGER")
def arena_bookings():
    arena_ids = [
        a.id for a in Arena.query
        .filter((Arena.owner_user_id == g.user.id) | (Arena.manager_user_id == g.user.id))
        .all()
    ]
    if not arena_ids:
        return jsonify(success=True, bookings=[]), 200

    q = Booking.query.filter(Booking.arena_id.in_(arena_ids))
    status = (request.args.get("status") or "").strip().upper()
    if status:
        q = q.filter(Booking.status == status)
    date_str = request.args.get("date")
    if date_str:
        q = q.join(TimeSlot, Booking.slot_id == TimeSlot.id).filter(TimeSlot.date == parse_date(date_str))

    rows = q.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(200).all()
    return jsonify(success=True, bookings=[booking_to_dict(b) for b in rows]), 200


def _managed_booking(booking_id: int):
    booking = db.session.get(Booking, booking_id)
    if not booking:
        return None
    arena = db.session.get(Arena, booking.arena_id)
    if not arena or not arena.is_managed_by(g.user):
        return None
    return booking


@owner_bp.post("/bookings/<int:booking_id>/complete")
@require_roles("OWNER", "MANAGER")
def complete_booking(booking_id: int):
    booking = _managed_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found or access denied"), 404
    if booking.status != "CONFIRMED":
        return jsonify(error="Only confirmed bookings can be completed"), 400

    booking.status = "COMPLETED"
    db.session.commit()
    log_event("BOOKING_COMPLETE", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(success=True, booking=booking_to_dict(booking)), 200


@owner_bp.post("/bookings/<int:booking_id>/cancel")
@require_roles("OWNER", "MANAGER")
def owner_cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Cancelled by arena"

    booking = _managed_booking(booking_id)
    if not booking:
        return jsonify(error="Booking not found or access denied"), 404

    if booking.status == "PENDING":
        reservation.release_booking(booking, actor="owner", reason=reason)
    else:
        reservation.cancel_confirmed(booking, actor="owner", reason=reason)
    return jsonify(success=True, booking=booking_to_dict(booking)), 200
