"""
Availability query engine: arena search, real-time availability check and
global filter facets. Read-only.

Text, location, sport, price and date filters narrow the joined rows before
GROUP BY; the rating filter is a HAVING over the aggregated average.
"""
import math
from datetime import datetime

from sqlalchemy import case, distinct, func, or_, select

from models import db
from models.arena import Arena
from models.court import Court, Sport, court_sports
from models.review import Review
from models.slot import TimeSlot
from slots.errors import NotFound, ValidationError
from slots.store import bookable_clause, is_bookable, slot_to_dict, upcoming_clause

SORT_KEYS = ("price_low", "price_high", "rating", "name")
DEFAULT_SORT = "rating"


def _open_arenas():
    return (Arena.is_active.is_(True), Arena.is_blocked.is_(False))


def _order_by(sort_by, avg_rating, min_price):
    no_price_last = case((min_price.is_(None), 1), else_=0)
    if sort_by == "price_low":
        return [no_price_last, min_price.asc()]
    if sort_by == "price_high":
        return [no_price_last, min_price.desc()]
    if sort_by == "name":
        return [Arena.name.asc()]
    return [func.coalesce(avg_rating, 0).desc()]


def search_arenas(query=None, sport=None, min_price=None, max_price=None, min_rating=None,
                  location=None, date=None, start_time=None, sort_by=DEFAULT_SORT,
                  page=1, limit=10, now=None):
    """
    Returns (arenas, total, facets) for one page of matching arenas.

    Unknown sort keys fall back to rating; ties are broken by arena id.
    """
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    if sort_by not in SORT_KEYS:
        sort_by = DEFAULT_SORT
    now = now or datetime.utcnow()

    avg_rating = func.avg(Review.rating)
    min_court_price = func.min(Court.price_per_hour)
    max_court_price = func.max(Court.price_per_hour)

    q = (
        db.session.query(
            Arena.id.label("arena_id"),
            avg_rating.label("avg_rating"),
            func.count(distinct(Review.id)).label("total_reviews"),
            min_court_price.label("min_price"),
            max_court_price.label("max_price"),
        )
        .outerjoin(Review, Review.arena_id == Arena.id)
        .outerjoin(Court, Court.arena_id == Arena.id)
        .outerjoin(court_sports, court_sports.c.court_id == Court.id)
        .outerjoin(Sport, Sport.id == court_sports.c.sport_id)
        .filter(*_open_arenas())
    )

    if query:
        like = f"%{query}%"
        q = q.filter(or_(
            Arena.name.ilike(like),
            Arena.description.ilike(like),
            Arena.address.ilike(like),
        ))
    if location:
        like = f"%{location}%"
        q = q.filter(or_(Arena.city.ilike(like), Arena.address.ilike(like)))
    if sport:
        q = q.filter(func.lower(Sport.name) == sport.strip().lower())
    if min_price is not None:
        q = q.filter(Court.price_per_hour >= min_price)
    if max_price is not None:
        q = q.filter(Court.price_per_hour <= max_price)
    if date is not None:
        open_slots = select(TimeSlot.arena_id).where(
            TimeSlot.date == date, bookable_clause(now), upcoming_clause(now)
        )
        if start_time is not None:
            open_slots = open_slots.where(TimeSlot.start_time == start_time)
        q = q.filter(Arena.id.in_(open_slots))

    q = q.group_by(Arena.id)
    if min_rating is not None:
        q = q.having(avg_rating >= min_rating)

    total = db.session.query(func.count()).select_from(q.subquery()).scalar() or 0

    rows = (
        q.order_by(*_order_by(sort_by, avg_rating, min_court_price), Arena.id.asc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )

    arena_ids = [r.arena_id for r in rows]
    arenas = {a.id: a for a in Arena.query.filter(Arena.id.in_(arena_ids)).all()} if arena_ids else {}
    sports = _sports_by_arena(arena_ids)
    court_counts = _courts_by_arena(arena_ids)

    results = []
    for r in rows:
        a = arenas[r.arena_id]
        results.append({
            "id": a.id,
            "name": a.name,
            "description": a.description,
            "address": a.address,
            "city": a.city,
            "avg_rating": round(float(r.avg_rating), 2) if r.avg_rating is not None else None,
            "total_reviews": r.total_reviews,
            "total_courts": court_counts.get(a.id, 0),
            "available_sports": sports.get(a.id, []),
            "min_price": r.min_price,
            "max_price": r.max_price,
        })

    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit),
    }
    return results, pagination, facets()


def _courts_by_arena(arena_ids):
    # All courts of the arena, regardless of the sport and price filters
    if not arena_ids:
        return {}
    rows = (
        db.session.query(Court.arena_id, func.count(Court.id))
        .filter(Court.arena_id.in_(arena_ids))
        .group_by(Court.arena_id)
        .all()
    )
    return dict(rows)


def _sports_by_arena(arena_ids):
    if not arena_ids:
        return {}
    rows = (
        db.session.query(Court.arena_id, Sport.name)
        .join(court_sports, court_sports.c.court_id == Court.id)
        .join(Sport, Sport.id == court_sports.c.sport_id)
        .filter(Court.arena_id.in_(arena_ids))
        .distinct()
        .order_by(Sport.name)
        .all()
    )
    out = {}
    for arena_id, name in rows:
        out.setdefault(arena_id, []).append(name)
    return out


def facets():
    """Sports and price bounds across all open arenas, ignoring search filters."""
    sport_rows = (
        db.session.query(Sport.name)
        .join(court_sports, court_sports.c.sport_id == Sport.id)
        .join(Court, Court.id == court_sports.c.court_id)
        .join(Arena, Arena.id == Court.arena_id)
        .filter(*_open_arenas())
        .distinct()
        .order_by(Sport.name)
        .all()
    )
    lo, hi = (
        db.session.query(func.min(Court.price_per_hour), func.max(Court.price_per_hour))
        .join(Arena, Arena.id == Court.arena_id)
        .filter(*_open_arenas())
        .one()
    )
    return {
        "available_sports": [name for (name,) in sport_rows],
        "price_range": {"min_price": lo or 0, "max_price": hi or 0},
    }


def check_availability(arena_id, date, start_time, end_time, court_id=None, now=None):
    """
    Availability of one exact window.

    With court_id the answer is about that court's slot. Without it, courts
    are checked in id order and the first bookable one is reported; if none
    is bookable the first matching court is reported as unavailable.
    """
    now = now or datetime.utcnow()

    arena = db.session.get(Arena, arena_id)
    if not arena:
        raise NotFound("Arena not found")
    if court_id is not None:
        court = db.session.get(Court, court_id)
        if not court or court.arena_id != arena.id:
            raise NotFound("Court not found")

    q = (
        db.session.query(TimeSlot, Court)
        .join(Court, TimeSlot.court_id == Court.id)
        .filter(
            TimeSlot.arena_id == arena.id,
            TimeSlot.date == date,
            TimeSlot.start_time == start_time,
            TimeSlot.end_time == end_time,
        )
    )
    if court_id is not None:
        q = q.filter(TimeSlot.court_id == court_id)
    rows = q.order_by(Court.id.asc()).all()

    if not rows:
        return {"is_available": False}

    open_arena = arena.is_active and not arena.is_blocked
    chosen = rows[0]
    for slot, court in rows:
        if open_arena and is_bookable(slot, now):
            chosen = (slot, court)
            break

    slot, court = chosen
    return {
        "is_available": open_arena and is_bookable(slot, now),
        "slot_id": slot.id,
        "court_id": court.id,
        "court_name": court.name,
        "price_per_hour": slot.price_per_hour,
    }


def nearby_slots(slot, limit=3, now=None):
    """Bookable, not yet started slots of the same arena and date, closest start time first."""
    now = now or datetime.utcnow()
    candidates = (
        TimeSlot.query
        .filter(
            TimeSlot.arena_id == slot.arena_id,
            TimeSlot.date == slot.date,
            TimeSlot.id != slot.id,
            bookable_clause(now),
            upcoming_clause(now),
        )
        .all()
    )

    def distance(other):
        return abs((other.starts_at - slot.starts_at).total_seconds())

    candidates.sort(key=lambda s: (distance(s), s.court_id, s.id))
    return [slot_to_dict(s, now) for s in candidates[:limit]]
