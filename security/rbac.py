from functools import wraps
from flask import g, jsonify

def require_roles(*role_names: str):
    """
    Usage: @require_roles("OWNER", "MANAGER")

    401 without a session, 403 when none of the roles match. SUPER_ADMIN
    passes every check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401
            if not user.has_any_role(*role_names):
                return jsonify(error="Forbidden", required_roles=list(role_names)), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
