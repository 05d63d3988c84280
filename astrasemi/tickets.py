"""
Password-reset ticket queue.

Users who forgot their password file a ticket (no login needed); an admin
approves it by setting a new password, or denies it. Tickets move from
pending to resolved/denied exactly once. The new password is echoed back to
the approving admin but never stored in plaintext.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from .auth import get_auth_service, get_password_hash, is_password_too_long, normalize_username, MAX_PASSWORD_BYTES
from .db.models import ResetTicket, User
from .errors import NotFound, ValidationFailed
from .schemas import TicketStatus

logger = logging.getLogger(__name__)

REQUEST_ACK = "If this account exists, a reset request has been sent to admin."
APPROVED_MESSAGE = "Password set manually by admin"
DENIED_MESSAGE = "Denied by admin"
USER_GONE_MESSAGE = "User no longer exists"


def submit_request(db: Session, username: Optional[str], hint: Optional[str] = None) -> str:
    """File a reset request. Same answer whether or not the account exists."""
    username = normalize_username(username)
    if not username:
        raise ValidationFailed("Username is required")

    exists = db.query(User.id).filter(User.username == username).first() is not None
    if exists:
        db.add(ResetTicket(username=username, hint=(hint or "").strip()))
        db.commit()
        logger.info(f"Password reset requested for {username!r}")
    else:
        logger.info(f"Password reset requested for unknown username {username!r}, ignored")

    return REQUEST_ACK


def list_requests(db: Session) -> List[ResetTicket]:
    return db.query(ResetTicket).order_by(ResetTicket.created_at.desc()).all()


def _pending_ticket(db: Session, ticket_id: Optional[str]) -> ResetTicket:
    ticket = db.query(ResetTicket).filter(
        ResetTicket.id == ticket_id,
        ResetTicket.status == TicketStatus.PENDING,
    ).first()
    if not ticket:
        raise NotFound("Ticket not found or already resolved")
    return ticket


def _close_ticket(db: Session, ticket_id: str, status: TicketStatus, message: str) -> None:
    """Compare-and-set pending -> status; a ticket is only ever closed once"""
    changed = db.query(ResetTicket).filter(
        ResetTicket.id == ticket_id,
        ResetTicket.status == TicketStatus.PENDING,
    ).update(
        {
            ResetTicket.status: status,
            ResetTicket.resolved_at: datetime.utcnow(),
            ResetTicket.message: message,
        },
        synchronize_session=False,
    )
    if not changed:
        db.rollback()
        logger.warning(f"Reset ticket {ticket_id} was closed concurrently")
        raise NotFound("Ticket not found or already resolved")


def approve_request(db: Session, ticket_id: Optional[str], password: Optional[str]) -> Dict[str, str]:
    """
    Set a new password for the ticket's user and resolve the ticket.

    If the account vanished or was deactivated meanwhile, the ticket is
    denied instead and ValidationFailed is raised.
    """
    password = password or ""
    if not ticket_id or not password:
        raise ValidationFailed("Ticket id and new password are required")
    if is_password_too_long(password):
        raise ValidationFailed(f"Password too long (max {MAX_PASSWORD_BYTES} bytes)")

    ticket = _pending_ticket(db, ticket_id)
    ticket_id, username = ticket.id, ticket.username

    user = db.query(User).filter(User.username == username).first()
    if not user or not user.is_active:
        _close_ticket(db, ticket_id, TicketStatus.DENIED, USER_GONE_MESSAGE)
        db.commit()
        logger.warning(f"Reset ticket {ticket_id} denied: {username!r} no longer exists")
        raise ValidationFailed(USER_GONE_MESSAGE)

    _close_ticket(db, ticket_id, TicketStatus.RESOLVED, APPROVED_MESSAGE)
    user.password_hash = get_password_hash(password)
    get_auth_service(db).revoke_sessions(user.id, commit=False)
    db.commit()
    logger.info(f"Reset ticket {ticket_id} approved for user {user.id}")

    return {
        "id": ticket_id,
        "username": username,
        "password": password,
        "status": TicketStatus.RESOLVED.value,
    }


def deny_request(db: Session, ticket_id: Optional[str]) -> ResetTicket:
    if not ticket_id:
        raise ValidationFailed("Ticket id is required")
    ticket = _pending_ticket(db, ticket_id)
    _close_ticket(db, ticket.id, TicketStatus.DENIED, DENIED_MESSAGE)
    db.commit()
    db.refresh(ticket)
    logger.info(f"Reset ticket {ticket.id} denied")
    return ticket


def clear_resolved(db: Session) -> Dict[str, int]:
    """Purge every resolved/denied ticket; pending ones stay"""
    removed = db.query(ResetTicket).filter(
        ResetTicket.status != TicketStatus.PENDING
    ).delete(synchronize_session=False)
    db.commit()
    remaining = db.query(ResetTicket).count()
    logger.info(f"Cleared {removed} reset ticket(s), {remaining} pending")
    return {"removed": removed, "remaining": remaining}
