from flask import Blueprint, request, jsonify, current_app

from slots.errors import ValidationError
from slots.search import search_arenas, check_availability
from utils.time_slots import parse_date, parse_time

search_bp = Blueprint("search", __name__)


def _number(name: str):
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number")


def _int(name: str, default=None):
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


# ---------- PUBLIC: arena search ----------
@search_bp.get("/search/arenas")
def search():
    limit = _int("limit", current_app.config.get("SEARCH_DEFAULT_LIMIT", 10))
    limit = min(limit, current_app.config.get("SEARCH_MAX_LIMIT", 100))

    date_str = request.args.get("date")
    time_str = request.args.get("time")
    day = parse_date(date_str) if date_str else None
    start = parse_time(time_str) if time_str else None
    if start is not None and day is None:
        return jsonify(error="time filter requires date"), 400

    arenas, pagination, filters = search_arenas(
        query=(request.args.get("query") or "").strip() or None,
        sport=(request.args.get("sport") or "").strip() or None,
        min_price=_number("min_price"),
        max_price=_number("max_price"),
        min_rating=_number("min_rating"),
        location=(request.args.get("location") or "").strip() or None,
        date=day,
        start_time=start,
        sort_by=(request.args.get("sort_by") or "rating").strip(),
        page=_int("page", 1),
        limit=limit,
    )
    return jsonify(success=True, arenas=arenas, filters=filters, pagination=pagination), 200


# ---------- PUBLIC: real-time availability ----------
@search_bp.get("/check-availability")
def availability():
    arena_id = _int("arena_id")
    court_id = _int("court_id")
    date_str = request.args.get("date")
    start_str = request.args.get("start_time")
    end_str = request.args.get("end_time")

    if not arena_id or not date_str or not start_str or not end_str:
        return jsonify(error="arena_id, date, start_time, and end_time are required"), 400

    result = check_availability(
        arena_id,
        parse_date(date_str),
        parse_time(start_str, "start_time"),
        parse_time(end_str, "end_time"),
        court_id=court_id,
    )
    return jsonify(success=True, availability=result), 200
