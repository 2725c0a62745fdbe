"""
Bearer-token sessions.

Clients send `Authorization: Bearer <token>`; browsers may fall back to the
session cookie. Tokens are random and only their SHA-256 digest is persisted.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _client_info():
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    user_agent = (request.headers.get("User-Agent") or "")[:255]
    return ip, user_agent


def create_session(user_id: int) -> str:
    """Persist a new session for user_id and return the raw token (shown to the client once)."""
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)
    ip, user_agent = _client_info()

    db.session.add(Session(
        user_id=user_id,
        token_hash=_digest(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=ip,
        user_agent=user_agent,
    ))
    db.session.commit()
    return raw_token


def token_from_request():
    scheme, _, value = (request.headers.get("Authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "arenaslot_session"))


def _lookup(raw_token):
    if not raw_token:
        return None
    return Session.query.filter_by(token_hash=_digest(raw_token)).first()


def get_session_from_request():
    """The live session behind the request token, touched for idle tracking; None otherwise."""
    sess = _lookup(token_from_request())
    now = datetime.utcnow()
    if not sess or not sess.is_live(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200)):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess


def revoke_session(raw_token: str) -> bool:
    sess = _lookup(raw_token)
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True
