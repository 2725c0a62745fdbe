from datetime import datetime
from models.db import db

class Review(db.Model):
    __tablename__ = "arena_reviews"

    id = db.Column(db.Integer, primary_key=True)
    arena_id = db.Column(db.Integer, db.ForeignKey("arenas.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    rating = db.Column(db.Integer, nullable=False)  # 1..5
    comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    arena = db.relationship("Arena", back_populates="reviews")

    __table_args__ = (
        db.UniqueConstraint("arena_id", "user_id", name="uq_review_once_per_user"),
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
    )
