from datetime import datetime
from models.db import db

# many-to-many Court <-> Sport
court_sports = db.Table(
    "court_sports",
    db.Column("court_id", db.Integer, db.ForeignKey("courts.id"), primary_key=True),
    db.Column("sport_id", db.Integer, db.ForeignKey("sports.id"), primary_key=True),
)

class Court(db.Model):
    __tablename__ = "courts"

    id = db.Column(db.Integer, primary_key=True)
    arena_id = db.Column(db.Integer, db.ForeignKey("arenas.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    price_per_hour = db.Column(db.Integer, nullable=False, default=0)  # smallest unit (e.g., NPR)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    arena = db.relationship("Arena", back_populates="courts")
    sports = db.relationship("Sport", secondary=court_sports, back_populates="courts")
    slots = db.relationship("TimeSlot", back_populates="court", cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("arena_id", "name", name="uq_court_name_per_arena"),
    )

class Sport(db.Model):
    __tablename__ = "sports"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(60), unique=True, nullable=False)

    courts = db.relationship("Court", secondary=court_sports, back_populates="sports")
