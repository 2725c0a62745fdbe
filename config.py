import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as arenaslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "arenaslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables without migrations (tests / quick local runs)
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "false").lower() == "true"

    # Cookie fallback for the bearer token
    AUTH_COOKIE_NAME = "arenaslot_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    MIN_PASSWORD_LENGTH = 8

    # Slot holds
    SLOT_HOLD_MINUTES = int(os.getenv("SLOT_HOLD_MINUTES", "10"))
    NEARBY_SLOT_SUGGESTIONS = 3

    # Search paging
    SEARCH_DEFAULT_LIMIT = 10
    SEARCH_MAX_LIMIT = 100

    # Cancellation policy
    CANCEL_CUTOFF_HOURS = int(os.getenv("CANCEL_CUTOFF_HOURS", "12"))

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    DEBUG = False

class TestConfig(Config):
    TESTING = True
    AUTO_CREATE_TABLES = True
    BCRYPT_ROUNDS = 4
    SMTP_HOST = None
