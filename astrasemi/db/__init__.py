"""
Database Package - SQLAlchemy
=============================

Persistence layer for users, tasks, briefings, forum and reset tickets.
"""

from .models import (
    Base,
    User, UserSession,
    Role, Task, BriefingLog,
    Post, Answer, Vote,
    ResetTicket,
)
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Accounts
    "User", "UserSession",
    # Roles & Tasks
    "Role", "Task", "BriefingLog",
    # Community
    "Post", "Answer", "Vote",
    # Password reset
    "ResetTicket",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
