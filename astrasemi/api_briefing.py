"""
Daily Briefing API
==================

- POST /api/briefing          - Generate (and log) a briefing for a role
- GET  /api/briefing/history  - Last 10 briefings for a role
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import AuthContext, get_db_dependency, require_user
from .briefing import briefing_history, generate_briefing
from .schemas import BriefingOut, BriefingRequest

router = APIRouter(tags=["briefing"])


@router.post("/briefing", response_model=BriefingOut, response_model_exclude_none=True)
async def create_briefing(
    request: BriefingRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return await generate_briefing(db, request.roleId)


@router.get("/briefing/history")
async def get_briefing_history(
    roleId: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return briefing_history(db, roleId)
