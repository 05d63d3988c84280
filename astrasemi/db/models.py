"""
SQLAlchemy Models for Database
==============================

Schema for the AstraSemi assistant:
- Users, server-side sessions and organizational roles
- Per-role tasks and the append-only briefing log
- Community forum (posts, answers, votes)
- Admin-reviewed password-reset tickets

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import json
import uuid
from datetime import datetime
from typing import List

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, Enum, ForeignKey,
    UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import relationship, declarative_base

from ..schemas import UserRole, Priority, TaskStatus, PostCategory, TicketStatus

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# USERS & SESSIONS
# =============================================================================

class User(Base):
    """Application account"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(150), nullable=False, unique=True)  # trimmed + lower-cased
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    reputation = Column(Integer, default=0, nullable=False)  # may go negative
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    posts = relationship("Post", back_populates="author")
    answers = relationship("Answer", back_populates="author")


class UserSession(Base):
    """Server-side session record, deleted on logout / deactivation"""
    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True)  # sha256 of the opaque token
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_user_sessions_user", "user_id"),
    )

    user = relationship("User", back_populates="sessions")


# =============================================================================
# ROLES, TASKS, BRIEFINGS
# =============================================================================

class Role(Base):
    """Organizational role (HR, Process Engineer, ...)"""
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    tasks = relationship("Task", back_populates="role", cascade="all, delete-orphan")
    briefings = relationship("BriefingLog", back_populates="role", cascade="all, delete-orphan")


class Task(Base):
    """Work item owned by a role"""
    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(Enum(Priority), default=Priority.MEDIUM, nullable=False)
    status = Column(Enum(TaskStatus), default=TaskStatus.TODO, nullable=False)
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_tasks_role", "role_id"),
    )

    role = relationship("Role", back_populates="tasks")


class BriefingLog(Base):
    """Generated daily briefing (append-only)"""
    __tablename__ = "briefing_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    top3 = Column(Text, nullable=False)  # JSON-encoded list of strings
    alerts = Column(Text, nullable=False)
    blockers = Column(Text, nullable=False)
    due_overdue = Column(Text, nullable=False)
    source = Column(String(20), default="ai")  # ai | fallback
    raw_input_summary = Column(Text, nullable=True)
    generated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_briefing_logs_role_generated", "role_id", "generated_at"),
    )

    role = relationship("Role", back_populates="briefings")

    @staticmethod
    def _decode(value) -> List[str]:
        try:
            items = json.loads(value or "[]")
        except (TypeError, ValueError):
            return []
        return items if isinstance(items, list) else []

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "roleId": self.role_id,
            "top3": self._decode(self.top3),
            "alerts": self._decode(self.alerts),
            "blockers": self._decode(self.blockers),
            "dueOverdue": self._decode(self.due_overdue),
            "source": self.source,
            "generatedAt": self.generated_at.isoformat() if self.generated_at else None,
        }


# =============================================================================
# COMMUNITY
# =============================================================================

class Post(Base):
    """Community question"""
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(Enum(PostCategory), default=PostCategory.GENERAL, nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    # No FK: answers reference posts, a cycle would complicate cascade deletes
    accepted_answer_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_posts_created", "created_at"),
    )

    author = relationship("User", back_populates="posts")
    answers = relationship("Answer", back_populates="post", cascade="all, delete-orphan")
    votes = relationship("Vote", back_populates="post", cascade="all, delete-orphan")


class Answer(Base):
    """Reply to a post; soft-deleted via is_deleted"""
    __tablename__ = "answers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_answers_post", "post_id"),
    )

    post = relationship("Post", back_populates="answers")
    author = relationship("User", back_populates="answers")


class Vote(Base):
    """One user's +1/-1 on a post"""
    __tablename__ = "votes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    post_id = Column(String(36), ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    value = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_vote_post_user"),
        CheckConstraint("value IN (1, -1)", name="ck_vote_value"),
    )

    post = relationship("Post", back_populates="votes")


# =============================================================================
# PASSWORD RESET
# =============================================================================

class ResetTicket(Base):
    """Password-reset request awaiting admin review"""
    __tablename__ = "reset_tickets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(150), nullable=False)
    hint = Column(Text, default="", nullable=False)
    status = Column(Enum(TicketStatus), default=TicketStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)
    message = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_reset_tickets_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "hint": self.hint,
            "status": self.status.value if self.status else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "resolvedAt": self.resolved_at.isoformat() if self.resolved_at else None,
            "message": self.message,
        }
