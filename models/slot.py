from datetime import datetime
from models.db import db

class TimeSlot(db.Model):
    __tablename__ = "time_slots"

    id = db.Column(db.Integer, primary_key=True)

    arena_id = db.Column(db.Integer, db.ForeignKey("arenas.id"), nullable=False, index=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    price_per_hour = db.Column(db.Integer, nullable=False, default=0)  # smallest unit (e.g., NPR)

    # is_available goes false once a hold is confirmed
    is_available = db.Column(db.Boolean, default=True, nullable=False)
    is_blocked_by_owner = db.Column(db.Boolean, default=False, nullable=False)
    is_holiday = db.Column(db.Boolean, default=False, nullable=False)

    # hold state; an expired locked_until counts as free
    locked_until = db.Column(db.DateTime, nullable=True)
    lock_token = db.Column(db.String(64), nullable=True)
    locked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    court = db.relationship("Court", back_populates="slots")

    __table_args__ = (
        # Prevent duplicate slot times for same court
        db.UniqueConstraint("court_id", "date", "start_time", "end_time", name="uq_court_timeslot"),
    )

    @property
    def starts_at(self):
        return datetime.combine(self.date, self.start_time)
