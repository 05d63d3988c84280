"""
Community Forum API
===================

- GET   /api/community/posts                 - List (search, category, sort, date range)
- POST  /api/community/posts                 - Create post
- GET   /api/community/posts/{id}            - Post with answers and caller's vote
- POST  /api/community/posts/{id}/answers    - Answer (403 when locked)
- POST  /api/community/posts/{id}/vote       - Vote / retract / flip
- PATCH /api/community/posts/{id}/accept     - Accept or clear accepted answer (author only)
- GET   /api/community/contributors          - Top 10 by reputation
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import AuthContext, get_db_dependency, require_user
from . import forum
from .schemas import AcceptRequest, CreateAnswerRequest, CreatePostRequest, VoteRequest, VoteResult
from .users import author_to_dict, top_contributors

router = APIRouter(prefix="/community", tags=["community"])


@router.get("/posts")
async def list_posts(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return forum.list_posts(
        db,
        search=search,
        category=category,
        sort=sort,
        start_date=startDate,
        end_date=endDate,
    )


@router.post("/posts", status_code=201)
async def create_post(
    request: CreatePostRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return forum.create_post(db, auth.user_id, request.title, request.content, request.category)


@router.get("/posts/{post_id}")
async def get_post(
    post_id: str,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return forum.get_post_detail(db, post_id, auth.user_id)


@router.post("/posts/{post_id}/answers", status_code=201)
async def create_answer(
    post_id: str,
    request: CreateAnswerRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return forum.add_answer(db, post_id, auth.user_id, request.content)


@router.post("/posts/{post_id}/vote", response_model=VoteResult)
async def vote(
    post_id: str,
    request: VoteRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return forum.cast_vote(db, post_id, auth.user_id, request.value)


@router.patch("/posts/{post_id}/accept")
async def accept_answer(
    post_id: str,
    request: AcceptRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return forum.set_accepted_answer(db, post_id, auth.user_id, request.answerId)


@router.get("/contributors")
async def contributors(
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return [author_to_dict(user) for user in top_contributors(db)]
