import bcrypt
from flask import current_app

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


def password_problem(password):
    """Reason the password is unacceptable at signup, or None."""
    min_len = current_app.config.get("MIN_PASSWORD_LENGTH", 8)
    if not isinstance(password, str) or len(password) < min_len:
        return f"Password must be at least {min_len} characters"
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return f"Password must be at most {BCRYPT_MAX_BYTES} bytes"
    return None


def hash_password(plain_password: str) -> str:
    if not isinstance(plain_password, str) or not plain_password:
        raise ValueError("Password must be a non-empty string")

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # stored hash is not a bcrypt hash
        return False
