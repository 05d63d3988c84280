"""
User and role helpers (admin console, contributors leaderboard).
"""

import logging
from typing import List, Optional, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .auth import get_auth_service, get_password_hash, is_password_too_long, normalize_username, MAX_PASSWORD_BYTES
from .db.models import User, Role
from .errors import ValidationFailed, Conflict, NotFound
from .schemas import UserRole

logger = logging.getLogger(__name__)

CONTRIBUTORS_LIMIT = 10


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role.value,
        "isActive": bool(user.is_active),
        "reputation": user.reputation or 0,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def author_to_dict(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "username": user.username, "reputation": user.reputation or 0}


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


def create_user(db: Session, username: Optional[str], password: Optional[str], role: Optional[str] = None) -> User:
    username = normalize_username(username)
    if not username or not password:
        raise ValidationFailed("Username and password are required")
    if is_password_too_long(password):
        raise ValidationFailed(f"Password too long (max {MAX_PASSWORD_BYTES} bytes)")

    if db.query(User.id).filter(User.username == username).first():
        raise Conflict("Username already exists")

    user = User(
        username=username,
        password_hash=get_password_hash(password),
        role=UserRole.ADMIN if role == UserRole.ADMIN.value else UserRole.USER,
        is_active=True,
        reputation=0,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create of the same username
        db.rollback()
        raise Conflict("Username already exists")
    db.refresh(user)
    logger.info(f"Created user {user.id} ({user.username}, {user.role.value})")
    return user


def update_user(db: Session, user_id: str, is_active: Any = None, role: Any = None) -> User:
    """
    Apply admin changes to a user. Deactivation revokes all sessions.
    Users are never hard-deleted.
    """
    changes = {}
    if isinstance(is_active, bool):
        changes["is_active"] = is_active
    if role in (UserRole.ADMIN.value, UserRole.USER.value):
        changes["role"] = UserRole(role)

    if not changes:
        raise ValidationFailed("No valid fields to update")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")

    for key, value in changes.items():
        setattr(user, key, value)

    if changes.get("is_active") is False:
        get_auth_service(db).revoke_sessions(user.id, commit=False)

    db.commit()
    db.refresh(user)
    logger.info(f"Updated user {user.id}: {sorted(changes)}")
    return user


def list_roles(db: Session) -> List[Role]:
    return db.query(Role).order_by(Role.name.asc()).all()


def top_contributors(db: Session, limit: int = CONTRIBUTORS_LIMIT) -> List[User]:
    return (
        db.query(User)
        .filter(User.is_active == True)  # noqa: E712
        .order_by(User.reputation.desc(), User.username.asc())
        .limit(limit)
        .all()
    )
