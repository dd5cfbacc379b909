"""
Authentication utilities and dependencies.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import Optional
from app.core.database import get_db
from app.core.errors import ForbiddenError, UnauthorizedError
from app.models.user import User
from app.core.config import SESSION_SECRET, SESSION_COOKIE_NAME, SESSION_TTL_HOURS
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

# Simple session storage (in-memory cache of verified tokens)
_sessions: dict[str, dict] = {}

__all__ = ['create_session', 'verify_session', 'get_current_user_dependency', 'get_current_admin_user_dependency']


def _sign(payload: str) -> str:
    return hmac.new(
        SESSION_SECRET.encode() if SESSION_SECRET else b'default-secret-change-in-prod',
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


def create_session(user_id: int, email: str, role: str = 'user') -> str:
    """Create a session token."""
    session_data = {
        'user_id': user_id,
        'email': email,
        'role': role,
        'created_at': datetime.now(timezone.utc).isoformat(),
    }

    # Create signed session token
    session_json = json.dumps(session_data, sort_keys=True)
    session_token = f"{session_json}.{_sign(session_json)}"
    _sessions[session_token] = session_data

    return session_token


def verify_session(session_token: str) -> Optional[dict]:
    """Verify and get session data."""
    if not session_token:
        return None

    # Check in-memory cache first
    session_data = _sessions.get(session_token)

    if session_data is None:
        parts = session_token.rsplit('.', 1)
        if len(parts) != 2:
            return None

        session_json, signature = parts
        if not hmac.compare_digest(signature, _sign(session_json)):
            return None

        try:
            session_data = json.loads(session_json)
        except ValueError:
            return None

    try:
        created_at = datetime.fromisoformat(session_data['created_at'])
    except (KeyError, TypeError, ValueError):
        return None
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if datetime.now(timezone.utc) - created_at > timedelta(hours=SESSION_TTL_HOURS):
        _sessions.pop(session_token, None)
        return None

    # Cache it
    _sessions[session_token] = session_data
    return session_data


def get_current_user_dependency(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """Dependency to get current authenticated user."""
    session_token = request.cookies.get(SESSION_COOKIE_NAME)
    if not session_token:
        raise UnauthorizedError("Not authenticated")

    session_data = verify_session(session_token)
    if not session_data:
        raise UnauthorizedError("Invalid or expired session")

    user = db.query(User).filter(User.id == session_data['user_id']).first()
    if not user or not user.is_active:
        raise UnauthorizedError("User not found or inactive")

    return user


def get_current_admin_user_dependency(
    current_user: User = Depends(get_current_user_dependency)
) -> User:
    """Dependency to get current platform admin user."""
    if not current_user.is_platform_admin():
        raise ForbiddenError("Admin access required")
    return current_user
