"""
Authentication utilities and dependencies.
"""
from fastapi import HTTPException, status, Cookie
from typing import Optional
from app.core.config import SESSION_SECRET, SESSION_COOKIE_NAME, ADMIN_EMAIL, ADMIN_PASSWORD_HASH
import bcrypt
import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

SESSION_MAX_AGE = timedelta(hours=24)

# Simple session storage (in-memory, signature check covers restarts)
_sessions: dict[str, dict] = {}

__all__ = [
    'create_session',
    'verify_session',
    'delete_session',
    'verify_password',
    'hash_password',
    'authenticate_operator',
    'get_current_operator_dependency',
    'SESSION_MAX_AGE',
]


def _sign(payload: str) -> str:
    return hmac.new(
        SESSION_SECRET.encode() if SESSION_SECRET else b'default-secret-change-in-prod',
        payload.encode(),
        hashlib.sha256
    ).hexdigest()


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, hashed: Optional[str]) -> bool:
    """Verify password against hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        # Malformed hash in configuration
        return False


def authenticate_operator(email: str, password: str) -> bool:
    """Check operator credentials against the configured admin account."""
    if not ADMIN_EMAIL or not ADMIN_PASSWORD_HASH:
        return False
    if not hmac.compare_digest(email.strip().lower(), ADMIN_EMAIL.strip().lower()):
        return False
    return verify_password(password, ADMIN_PASSWORD_HASH)


def create_session(email: str) -> str:
    """Create a session token."""
    session_data = {
        'email': email,
        'created_at': datetime.now(timezone.utc).isoformat(),
    }

    session_json = json.dumps(session_data, sort_keys=True)
    session_token = f"{session_json}.{_sign(session_json)}"
    _sessions[session_token] = session_data

    return session_token


def verify_session(session_token: Optional[str]) -> Optional[dict]:
    """Verify and get session data."""
    if not session_token:
        return None

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
    if datetime.now(timezone.utc) - created_at.replace(tzinfo=timezone.utc) > SESSION_MAX_AGE:
        _sessions.pop(session_token, None)
        return None

    _sessions[session_token] = session_data
    return session_data


def delete_session(session_token: str):
    """Delete a session."""
    _sessions.pop(session_token, None)


def get_current_operator_dependency(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)
) -> dict:
    """Dependency to get the current authenticated operator session."""
    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )

    session_data = verify_session(session_token)
    if not session_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session"
        )
    return session_data
