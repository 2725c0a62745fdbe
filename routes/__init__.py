from .health import health_bp
from .auth import auth_bp
from .search import search_bp
from .arenas import arena_bp
from .bookings import booking_bp
from .owner import owner_bp
from .admin import admin_bp
