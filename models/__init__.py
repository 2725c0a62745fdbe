from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .arena import Arena
from .court import Court, Sport, court_sports
from .slot import TimeSlot
from .booking import Booking
from .review import Review
