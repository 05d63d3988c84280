"""
Authentication Module (session cookie + server-side sessions)
=============================================================

Two layers of checks:

1. Lightweight: the `session` cookie is a PyJWT HS256 token carrying
   `{"sub": username, "role": role, "sid": session_token, "exp": ...}`.
   Decoding it verifies the HMAC signature and expiry without touching the
   database. Used by the page guard and `GET /api/session`.

2. Authoritative: `require_user` / `require_admin` additionally re-fetch the
   User row (must exist and be active) and the UserSession row referenced by
   `sid` (must exist and not be expired). Logout, deactivation and admin
   password resets delete UserSession rows, which revokes outstanding cookies.

Login failures (unknown user, inactive user, wrong password) all map to the
same client-facing "Invalid credentials" response; the reason is only logged.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import User, UserSession
from .db.session import get_db
from .errors import NotAuthenticated, PermissionDenied
from .schemas import UserRole

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


# =============================================================================
# PASSWORD HASHING
# =============================================================================

# bcrypt truncates passwords at 72 bytes; enforce to avoid 500s.
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_password_too_long(password: str) -> bool:
    """Return True if password exceeds bcrypt 72-byte limit."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if is_password_too_long(plain_password):
        logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Auth failed: invalid password format ({e})")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


def normalize_username(username: Optional[str]) -> str:
    return (username or "").strip().lower()


# =============================================================================
# SESSION TOKEN CODEC
# =============================================================================

@dataclass
class SessionPayload:
    """Decoded contents of the session cookie"""
    username: str
    role: str
    sid: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value.lower()


def create_session_token(
    username: str,
    role: str,
    session_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create the signed cookie value for a logged-in user"""
    settings = get_settings()
    expire = datetime.utcnow() + (expires_delta or timedelta(days=settings.session_days))
    to_encode = {
        "sub": username,
        "role": role.lower(),
        "sid": session_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.auth_secret, algorithm=JWT_ALGORITHM)


def decode_session_token(token: Optional[str]) -> Optional[SessionPayload]:
    """Verify signature and expiry; None on any failure"""
    if not token:
        return None
    try:
        payload = jwt.decode(token, get_settings().auth_secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.debug(f"Invalid session token: {e}")
        return None

    username = payload.get("sub")
    role = payload.get("role")
    if not isinstance(username, str) or not isinstance(role, str):
        return None
    return SessionPayload(username=username, role=role, sid=payload.get("sid"))


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def set_session_cookie(response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def clear_session_cookie(response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


# =============================================================================
# AUTH CONTEXT
# =============================================================================

@dataclass
class AuthContext:
    """Authorization context for a request"""
    user_id: str
    username: str
    role: UserRole
    reputation: int
    session_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_user(cls, user: User, session_id: Optional[str] = None) -> "AuthContext":
        return cls(
            user_id=user.id,
            username=user.username,
            role=user.role,
            reputation=user.reputation or 0,
            session_id=session_id,
        )


# =============================================================================
# AUTH SERVICE (SQLAlchemy-based)
# =============================================================================

class AuthService:
    """Credential checks and server-side session records"""

    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """
        Authenticate a user by username and password.

        Returns the User on success, None otherwise. Callers must not tell the
        client which check failed.
        """
        username = normalize_username(username)
        user = self.db.query(User).filter(User.username == username).first()
        if not user:
            logger.warning(f"Auth failed: username {username!r} not found")
            return None

        if not user.is_active:
            logger.warning(f"Auth failed: user {user.id} is inactive")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Auth failed: invalid password for user {user.id}")
            return None

        return user

    def create_session(self, user: User) -> str:
        """Persist a new session record and return its opaque token"""
        now = datetime.utcnow()
        token = secrets.token_urlsafe(32)

        # Drop this user's expired records while we're here
        self.db.query(UserSession).filter(
            UserSession.user_id == user.id,
            UserSession.expires_at <= now,
        ).delete(synchronize_session=False)

        self.db.add(UserSession(
            user_id=user.id,
            token_hash=hash_session_token(token),
            expires_at=now + timedelta(days=get_settings().session_days),
        ))
        self.db.commit()
        return token

    def revoke_sessions(self, user_id: str, commit: bool = True) -> int:
        """Delete every session record of a user"""
        removed = self.db.query(UserSession).filter(
            UserSession.user_id == user_id
        ).delete(synchronize_session=False)
        if commit:
            self.db.commit()
        if removed:
            logger.info(f"Revoked {removed} session(s) for user {user_id}")
        return removed

    def resolve(self, payload: Optional[SessionPayload]) -> Optional[AuthContext]:
        """Authoritative check of a decoded cookie against the database"""
        if not payload or not payload.sid:
            return None

        user = self.db.query(User).filter(User.username == payload.username).first()
        if not user or not user.is_active:
            logger.warning(f"Auth failed: user {payload.username!r} not found or inactive")
            return None

        record = self.db.query(UserSession).filter(
            UserSession.token_hash == hash_session_token(payload.sid),
            UserSession.user_id == user.id,
        ).first()
        if not record or record.expires_at <= datetime.utcnow():
            logger.warning(f"Auth failed: session for user {user.id} revoked or expired")
            return None

        return AuthContext.from_user(user, session_id=record.id)


def get_auth_service(db: Session) -> AuthService:
    """Get AuthService instance"""
    return AuthService(db)


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================

def get_db_dependency():
    """Get database session for FastAPI dependency injection"""
    yield from get_db()


def get_session_payload(request: Request) -> Optional[SessionPayload]:
    """Cookie-only check (no database round-trip)"""
    token = request.cookies.get(get_settings().session_cookie_name)
    return decode_session_token(token)


def require_user(
    payload: Optional[SessionPayload] = Depends(get_session_payload),
    db: Session = Depends(get_db_dependency),
) -> AuthContext:
    """Require an authenticated, active user with a live session"""
    if not payload:
        raise NotAuthenticated()
    auth = get_auth_service(db).resolve(payload)
    if not auth:
        raise NotAuthenticated()
    return auth


def require_admin(auth: AuthContext = Depends(require_user)) -> AuthContext:
    """Require an authenticated admin"""
    if not auth.is_admin:
        logger.warning(f"Permission denied: {auth.user_id} is not an admin")
        raise PermissionDenied()
    return auth
