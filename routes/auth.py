from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.password import hash_password, password_problem, verify_password
from security.session import create_session, revoke_session, token_from_request
from utils.audit import log_event
from utils.auth_context import login_required, identity


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

# Roles a user may pick at signup; ADMIN/MANAGER are granted, not chosen
SELF_SERVICE_ROLES = {"PLAYER", "OWNER"}


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    full_name = (data.get("full_name") or "").strip() or None
    phone_number = (data.get("phone_number") or "").strip() or None
    role_name = (data.get("role") or "PLAYER").strip().upper()

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    problem = password_problem(password)
    if problem:
        return jsonify(error=problem), 400
    if role_name not in SELF_SERVICE_ROLES:
        return jsonify(error="role must be PLAYER or OWNER"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        phone_number=phone_number,
    )
    db.session.add(user)
    db.session.flush()

    role = Role.query.filter_by(name=role_name).first()
    if role:
        user.roles.append(role)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role_name})

    return jsonify(success=True, user=identity(user)), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    token = create_session(user.id)
    log_event("LOGIN_SUCCESS", user_id=user.id)
    return jsonify(
        success=True,
        token=token,
        token_type="Bearer",
        expires_in=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        user=identity(user),
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(token_from_request())
    log_event("LOGOUT", user_id=g.user.id)
    return jsonify(success=True, message="Logged out"), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(success=True, user=identity(g.user)), 200
