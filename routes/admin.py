from flask import Blueprint, jsonify, g, request
from sqlalchemy import func

from models import db
from models.arena import Arena
from models.audit_log import AuditLog
from models.booking import Booking
from models.court import Court
from routes.bookings import booking_to_dict
from security.rbac import require_roles
from slots import reservation
from utils.audit import log_event
from utils.payload import json_flag

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/arenas")
@require_roles("ADMIN")
def list_arenas():
    blocked = request.args.get("blocked")
    q = Arena.query
    if blocked is not None:
        q = q.filter(Arena.is_blocked.is_(blocked.strip().lower() == "true"))

    arenas = q.order_by(Arena.id.asc()).limit(200).all()
    court_counts = dict(
        db.session.query(Court.arena_id, func.count(Court.id))
        .group_by(Court.arena_id)
        .all()
    )
    return jsonify(success=True, arenas=[
        {
            "id": a.id,
            "name": a.name,
            "owner_user_id": a.owner_user_id,
            "is_active": a.is_active,
            "is_blocked": a.is_blocked,
            "courts": court_counts.get(a.id, 0),
            "created_at": a.created_at.isoformat(),
        }
        for a in arenas
    ]), 200


# ---------- ADMIN: commission gate ----------
@admin_bp.put("/arenas/<int:arena_id>/block")
@require_roles("ADMIN")
def toggle_arena_block(arena_id: int):
    data = request.get_json(silent=True) or {}
    arena = db.session.get(Arena, arena_id)
    if not arena:
        return jsonify(error="Arena not found"), 404

    blocked = json_flag(data, "blocked")
    arena.is_blocked = (not arena.is_blocked) if blocked is None else blocked
    db.session.commit()

    log_event("ADMIN_ARENA_BLOCK" if arena.is_blocked else "ADMIN_ARENA_UNBLOCK",
              user_id=g.user.id, entity="arena", entity_id=arena.id,
              metadata={"reason": (data.get("reason") or "").strip() or None})
    return jsonify(success=True, id=arena.id, is_blocked=arena.is_blocked), 200


@admin_bp.put("/arenas/<int:arena_id>/active")
@require_roles("ADMIN")
def set_arena_active(arena_id: int):
    data = request.get_json(silent=True) or {}
    arena = db.session.get(Arena, arena_id)
    if not arena:
        return jsonify(error="Arena not found"), 404

    arena.is_active = json_flag(data, "is_active", True)
    db.session.commit()

    log_event("ADMIN_ARENA_ACTIVE", user_id=g.user.id, entity="arena", entity_id=arena.id,
              metadata={"is_active": arena.is_active})
    return jsonify(success=True, id=arena.id, is_active=arena.is_active), 200


# ---------- ADMIN: cancel any booking ----------
@admin_bp.post("/bookings/<int:booking_id>/cancel")
@require_roles("ADMIN")
def admin_cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Admin cancellation"

    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    if booking.status == "PENDING":
        reservation.release_booking(booking, actor="admin", reason=reason)
    else:
        reservation.cancel_confirmed(booking, actor="admin", reason=reason)
    return jsonify(success=True, booking=booking_to_dict(booking)), 200


# ---------- ADMIN: audit trail ----------
@admin_bp.get("/audit-logs")
@require_roles("ADMIN")
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query
    action = (request.args.get("action") or "").strip().upper()
    if action:
        q = q.filter(AuditLog.action == action)
    entity = (request.args.get("entity") or "").strip().lower()
    if entity:
        q = q.filter(AuditLog.entity == entity)
        entity_id = request.args.get("entity_id")
        if entity_id:
            q = q.filter(AuditLog.entity_id == entity_id.strip())
    user_id = request.args.get("user_id", type=int)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify(success=True, logs=[r.to_dict() for r in rows]), 200
