"""
Admin API
=========

All endpoints require an admin session.

- GET    /api/admin/users          - List users, newest first
- POST   /api/admin/users          - Create user
- PATCH  /api/admin/users/{id}     - Activate/deactivate, change role
- PATCH  /api/admin/posts/{id}     - Pin/lock a post
- DELETE /api/admin/posts/{id}     - Delete a post with its answers and votes
- DELETE /api/admin/answers/{id}   - Soft-delete an answer
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .auth import AuthContext, get_db_dependency, require_admin
from . import forum
from .schemas import CreateUserRequest, ModeratePostRequest, UpdateUserRequest, UserOut
from .users import create_user, list_users, update_user, user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# USERS
# =============================================================================

@router.get("/users", response_model=List[UserOut])
async def get_users(
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    return [user_to_dict(u) for u in list_users(db)]


@router.post("/users", response_model=UserOut, status_code=201)
async def post_user(
    request: CreateUserRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    user = create_user(db, request.username, request.password, request.role)
    logger.info(f"Admin {auth.user_id} created user {user.id}")
    return user_to_dict(user)


@router.patch("/users/{user_id}", response_model=UserOut)
async def patch_user(
    user_id: str,
    request: UpdateUserRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    user = update_user(db, user_id, is_active=request.isActive, role=request.role)
    return user_to_dict(user)


# =============================================================================
# MODERATION
# =============================================================================

@router.patch("/posts/{post_id}")
async def patch_post(
    post_id: str,
    request: ModeratePostRequest,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    return forum.moderate_post(db, post_id, is_pinned=request.isPinned, is_locked=request.isLocked)


@router.delete("/posts/{post_id}")
async def remove_post(
    post_id: str,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    forum.delete_post(db, post_id)
    return {"success": True}


@router.delete("/answers/{answer_id}")
async def remove_answer(
    answer_id: str,
    auth: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db_dependency),
):
    forum.soft_delete_answer(db, answer_id)
    return {"success": True}
