from flask import Blueprint, request, jsonify, g
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.arena import Arena
from models.court import Sport
from models.review import Review
from models.slot import TimeSlot
from security.rbac import require_roles
from slots.store import slot_to_dict
from utils.audit import log_event
from utils.time_slots import parse_date

arena_bp = Blueprint("arenas", __name__, url_prefix="/arenas")


def court_to_dict(court):
    return {
        "id": court.id,
        "name": court.name,
        "price_per_hour": court.price_per_hour,
        "sports": sorted(s.name for s in court.sports),
    }


def _open_arena_or_none(arena_id: int):
    arena = db.session.get(Arena, arena_id)
    if not arena or not arena.is_active or arena.is_blocked:
        return None
    return arena


@arena_bp.get("/sports")
def list_sports():
    sports = Sport.query.order_by(Sport.name.asc()).all()
    return jsonify(success=True, sports=[{"id": s.id, "name": s.name} for s in sports]), 200


@arena_bp.get("/<int:arena_id>")
def arena_details(arena_id: int):
    arena = _open_arena_or_none(arena_id)
    if not arena:
        return jsonify(error="Arena not found"), 404

    avg_rating, total_reviews = (
        db.session.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.arena_id == arena.id)
        .one()
    )
    return jsonify(
        success=True,
        arena={
            "id": arena.id,
            "name": arena.name,
            "description": arena.description,
            "address": arena.address,
            "city": arena.city,
            "avg_rating": round(float(avg_rating), 2) if avg_rating is not None else None,
            "total_reviews": total_reviews,
            "courts": [court_to_dict(c) for c in arena.courts],
        },
    ), 200


# ---------- PUBLIC: slots of a day ----------
@arena_bp.get("/<int:arena_id>/slots")
def arena_slots(arena_id: int):
    arena = _open_arena_or_none(arena_id)
    if not arena:
        return jsonify(error="Arena not found"), 404

    date_str = request.args.get("date")
    if not date_str:
        return jsonify(error="date is required"), 400
    day = parse_date(date_str)

    q = TimeSlot.query.filter_by(arena_id=arena.id, date=day)
    court_id = request.args.get("court_id", type=int)
    if court_id:
        q = q.filter_by(court_id=court_id)

    slots = q.order_by(TimeSlot.start_time.asc(), TimeSlot.court_id.asc()).all()
    return jsonify(success=True, slots=[slot_to_dict(s) for s in slots]), 200


# ---------- PLAYERS: review an arena ----------
@arena_bp.post("/<int:arena_id>/reviews")
@require_roles("PLAYER")
def add_review(arena_id: int):
    data = request.get_json(silent=True) or {}
    comment = (data.get("comment") or "").strip() or None
    try:
        rating = int(data.get("rating"))
    except (TypeError, ValueError):
        return jsonify(error="rating must be an integer between 1 and 5"), 400
    if rating < 1 or rating > 5:
        return jsonify(error="rating must be an integer between 1 and 5"), 400

    arena = _open_arena_or_none(arena_id)
    if not arena:
        return jsonify(error="Arena not found"), 404

    review = Review(arena_id=arena.id, user_id=g.user.id, rating=rating, comment=comment)
    db.session.add(review)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="You already reviewed this arena"), 409

    log_event("REVIEW_CREATE", user_id=g.user.id, entity="arena", entity_id=arena.id, metadata={"rating": rating})
    return jsonify(success=True, id=review.id), 201
