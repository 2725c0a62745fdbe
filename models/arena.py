from datetime import datetime
from models.db import db

class Arena(db.Model):
    __tablename__ = "arenas"

    id = db.Column(db.Integer, primary_key=True)
    owner_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    manager_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    address = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(120), nullable=True)

    # is_blocked is the commission-compliance gate set by admins
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_blocked = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    courts = db.relationship(
        "Court", back_populates="arena", cascade="all, delete-orphan", order_by="Court.id"
    )
    reviews = db.relationship("Review", back_populates="arena", cascade="all, delete-orphan")

    def is_managed_by(self, user) -> bool:
        return user is not None and user.id in (self.owner_user_id, self.manager_user_id)

    @property
    def is_bookable(self):
        return self.is_active and not self.is_blocked
