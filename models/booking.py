from datetime import datetime
from models.db import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    arena_id = db.Column(db.Integer, db.ForeignKey("arenas.id"), nullable=False, index=True)
    # RESTRICT: a slot referenced by a booking is never deleted
    slot_id = db.Column(
        db.Integer, db.ForeignKey("time_slots.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    status = db.Column(db.String(20), nullable=False, default="PENDING")
    # status values: PENDING, CONFIRMED, CANCELLED, COMPLETED, EXPIRED

    total_amount = db.Column(db.Integer, nullable=False, default=0)

    lock_token = db.Column(db.String(64), nullable=True)
    lock_expires_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.String(20), nullable=True)
    cancel_reason = db.Column(db.String(120), nullable=True)

    slot = db.relationship("TimeSlot")
    user = db.relationship("User", back_populates="bookings")
