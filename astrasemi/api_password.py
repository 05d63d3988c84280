"""
Password Reset API
==================

- POST /api/password/request   - File a reset request (no login)
- GET  /api/password/requests  - Ticket queue (admin)
- POST /api/password/approve   - Set a new password (admin)
- POST /api/password/deny      - Deny a ticket (admin)
- POST /api/password/clear     - Purge resolved/denied tickets (admin)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import AuthContext, get_db_dependency, require_admin
from .schemas import PasswordResetRequest, TicketActionRequest
from . import tickets

router = APIRouter(prefix="/password", tags=["password"])


@router.post("/request")
async def request_reset(
    request: PasswordResetRequest,
    db: Session = Depends(get_db_dependency),
):
    message = tickets.submit_request(db, request.username, request.hint)
    return {"success": True, "message": message}


@router.get("/requests")
async def get_requests(
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    return {"requests": [t.to_dict() for t in tickets.list_requests(db)]}


@router.post("/approve")
async def approve(
    request: TicketActionRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    return tickets.approve_request(db, request.id, request.password)


@router.post("/deny")
async def deny(
    request: TicketActionRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    return tickets.deny_request(db, request.id).to_dict()


@router.post("/clear")
async def clear(
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    return tickets.clear_resolved(db)
