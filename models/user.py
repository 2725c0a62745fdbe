from datetime import datetime
from models.db import db

# Highest first; the first role a user holds is the one shown to clients
ROLE_PRECEDENCE = ("SUPER_ADMIN", "ADMIN", "MANAGER", "OWNER", "PLAYER")

user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")
    bookings = db.relationship("Booking", back_populates="user", lazy="dynamic")

    @property
    def role_names(self):
        return {r.name for r in self.roles}

    @property
    def primary_role(self):
        names = self.role_names
        return next((r for r in ROLE_PRECEDENCE if r in names), None)

    def has_any_role(self, *names) -> bool:
        held = self.role_names
        return "SUPER_ADMIN" in held or bool(held.intersection(names))

class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # PLAYER, OWNER, MANAGER, ADMIN, SUPER_ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
