from functools import wraps
from flask import g, jsonify
from models import db
from security.session import get_session_from_request
from models.user import User

def load_current_user():
    """Resolve the bearer token into g.user / g.session (both None for anonymous calls)."""
    sess = get_session_from_request()
    g.session = sess
    g.user = db.session.get(User, sess.user_id) if sess else None

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper

def identity(user) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.primary_role,
        "roles": sorted(user.role_names),
    }
