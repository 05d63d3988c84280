"""
Community Forum Engine
======================

Posts, answers, votes, accepted answers and the reputation bookkeeping that
ties them together.

Reputation rules:
- New upvote: author +10. New downvote: author -2.
- Casting the same vote again retracts it and reverses the adjustment.
- Flipping a vote applies the combined delta in one step (+12 / -12).
- Accepting an answer: its author +15. Switching or clearing acceptance
  reverses the previous bonus first, so at most 15 is outstanding per post.

Reputation is never cached in the application: every change is a single
`UPDATE users SET reputation = reputation + :delta` in the same transaction as
the vote/acceptance change. Vote scores are always the live SUM over votes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .db.models import Answer, Post, User, Vote
from .errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from .schemas import PostCategory, PostSort
from .users import author_to_dict

logger = logging.getLogger(__name__)

VOTE_DELTAS = {1: 10, -1: -2}
ACCEPT_BONUS = 15

# A vote change that loses a race is re-evaluated against fresh state once
VOTE_ATTEMPTS = 2


class _VoteRaced(Exception):
    """Vote row changed between read and write"""


# =============================================================================
# Helpers
# =============================================================================

def adjust_reputation(db: Session, user_id: str, delta: int) -> None:
    """Atomic in-database increment; never read-modify-write in Python"""
    if not delta:
        return
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(reputation=User.reputation + delta)
        .execution_options(synchronize_session=False)
    )


def get_post(db: Session, post_id: str) -> Post:
    post = db.query(Post).filter(Post.id == post_id).first()
    if not post:
        raise NotFound("Post not found")
    return post


def vote_score(db: Session, post_id: str) -> int:
    return int(
        db.query(func.coalesce(func.sum(Vote.value), 0))
        .filter(Vote.post_id == post_id)
        .scalar()
    )


def user_vote(db: Session, post_id: str, user_id: str) -> Optional[int]:
    vote = db.query(Vote).filter(Vote.post_id == post_id, Vote.user_id == user_id).first()
    return vote.value if vote else None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def answer_to_dict(answer: Answer, accepted_answer_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": answer.id,
        "postId": answer.post_id,
        "content": answer.content,
        "author": author_to_dict(answer.author),
        "isAccepted": answer.id == accepted_answer_id,
        "createdAt": _iso(answer.created_at),
    }


def post_to_dict(
    post: Post,
    score: int,
    answers: List[Answer],
    current_user_vote: Optional[int] = None,
    include_user_vote: bool = False,
) -> Dict[str, Any]:
    data = {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "category": post.category.value,
        "author": author_to_dict(post.author),
        "isPinned": bool(post.is_pinned),
        "isLocked": bool(post.is_locked),
        "acceptedAnswerId": post.accepted_answer_id,
        "voteScore": score,
        "answerCount": len(answers),
        "answers": [answer_to_dict(a, post.accepted_answer_id) for a in answers],
        "createdAt": _iso(post.created_at),
        "updatedAt": _iso(post.updated_at),
    }
    if include_user_vote:
        data["userVote"] = current_user_vote
    return data


def _live_answers(post: Post, accepted_first: bool = False) -> List[Answer]:
    answers = [a for a in post.answers if not a.is_deleted]
    if accepted_first:
        answers.sort(key=lambda a: (a.id != post.accepted_answer_id, a.created_at or datetime.min))
    else:
        answers.sort(key=lambda a: a.created_at or datetime.min)
    return answers


def _parse_date_param(value: Optional[str], label: str, end_of_day: bool = False) -> Optional[datetime]:
    """Accept ISO datetimes or plain YYYY-MM-DD; a plain end date covers the whole day"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationFailed(f"Invalid {label}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    if end_of_day and len(value.strip()) == 10:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed


def _parse_category(value: Optional[str]) -> Optional[PostCategory]:
    if not value:
        return None
    try:
        return PostCategory(value)
    except ValueError:
        raise ValidationFailed("Invalid category")


# =============================================================================
# Posts & answers
# =============================================================================

def list_posts(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Filter (search AND category AND date range), then order pinned posts
    first and apply the chosen sort within each partition.
    """
    try:
        sort_mode = PostSort(sort) if sort else PostSort.NEWEST
    except ValueError:
        sort_mode = PostSort.NEWEST

    category_value = _parse_category(category)
    start = _parse_date_param(start_date, "startDate")
    end = _parse_date_param(end_date, "endDate", end_of_day=True)

    scores = (
        db.query(Vote.post_id.label("post_id"), func.sum(Vote.value).label("score"))
        .group_by(Vote.post_id)
        .subquery()
    )
    counts = (
        db.query(Answer.post_id.label("post_id"), func.count(Answer.id).label("answer_count"))
        .filter(Answer.is_deleted == False)  # noqa: E712
        .group_by(Answer.post_id)
        .subquery()
    )
    score_col = func.coalesce(scores.c.score, 0)
    count_col = func.coalesce(counts.c.answer_count, 0)

    query = (
        db.query(Post, score_col)
        .outerjoin(scores, scores.c.post_id == Post.id)
        .outerjoin(counts, counts.c.post_id == Post.id)
        .options(
            selectinload(Post.author),
            selectinload(Post.answers).selectinload(Answer.author),
        )
    )

    if search and search.strip():
        term = search.strip()
        query = query.filter(or_(
            Post.title.icontains(term, autoescape=True),
            Post.content.icontains(term, autoescape=True),
        ))
    if category_value is not None:
        query = query.filter(Post.category == category_value)
    if start is not None:
        query = query.filter(Post.created_at >= start)
    if end is not None:
        query = query.filter(Post.created_at <= end)

    if sort_mode == PostSort.TOP:
        ordering = score_col.desc()
    elif sort_mode == PostSort.MOST_COMMENTED:
        ordering = count_col.desc()
    else:
        ordering = Post.created_at.desc()

    rows: List[Tuple[Post, int]] = query.order_by(
        Post.is_pinned.desc(),
        ordering,
        Post.created_at.desc(),
    ).all()

    return [post_to_dict(post, int(score), _live_answers(post)) for post, score in rows]


def get_post_detail(db: Session, post_id: str, viewer_id: str) -> Dict[str, Any]:
    post = get_post(db, post_id)
    return post_to_dict(
        post,
        vote_score(db, post.id),
        _live_answers(post, accepted_first=True),
        current_user_vote=user_vote(db, post.id, viewer_id),
        include_user_vote=True,
    )


def create_post(db: Session, author_id: str, title: Optional[str], content: Optional[str], category: Optional[str]) -> Dict[str, Any]:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content or not category:
        raise ValidationFailed("Title, content, and category are required")

    post = Post(
        title=title,
        content=content,
        category=_parse_category(category),
        author_id=author_id,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info(f"Post {post.id} created by {author_id}")
    return post_to_dict(post, 0, [])


def add_answer(db: Session, post_id: str, author_id: str, content: Optional[str]) -> Dict[str, Any]:
    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Content is required")

    post = get_post(db, post_id)
    if post.is_locked:
        raise PermissionDenied("Post is locked")

    answer = Answer(post_id=post.id, author_id=author_id, content=content)
    db.add(answer)
    db.commit()
    db.refresh(answer)
    return answer_to_dict(answer, post.accepted_answer_id)


# =============================================================================
# Voting
# =============================================================================

def _apply_vote(db: Session, post: Post, voter_id: str, value: int) -> None:
    existing = db.query(Vote).filter(Vote.post_id == post.id, Vote.user_id == voter_id).first()

    if existing is None:
        db.add(Vote(post_id=post.id, user_id=voter_id, value=value))
        db.flush()  # unique (post_id, user_id) fires here
        delta = VOTE_DELTAS[value]

    elif existing.value == value:
        # Retract
        removed = db.query(Vote).filter(
            Vote.id == existing.id, Vote.value == value
        ).delete(synchronize_session=False)
        if not removed:
            raise _VoteRaced()
        delta = -VOTE_DELTAS[value]

    else:
        # Flip
        changed = db.query(Vote).filter(
            Vote.id == existing.id, Vote.value == existing.value
        ).update({Vote.value: value}, synchronize_session=False)
        if not changed:
            raise _VoteRaced()
        delta = VOTE_DELTAS[value] - VOTE_DELTAS[existing.value]

    adjust_reputation(db, post.author_id, delta)


def cast_vote(db: Session, post_id: str, voter_id: str, value: Any) -> Dict[str, Optional[int]]:
    """
    Cast, flip or retract a vote. Returns {voteScore, userVote}.
    """
    post = get_post(db, post_id)
    author_id = post.author_id

    if author_id == voter_id:
        raise Conflict("Cannot vote on your own post")

    if isinstance(value, bool) or value not in (1, -1):
        raise ValidationFailed("Vote value must be 1 or -1")
    value = int(value)

    for attempt in range(1, VOTE_ATTEMPTS + 1):
        try:
            _apply_vote(db, post, voter_id, value)
            db.commit()
            break
        except (IntegrityError, _VoteRaced):
            db.rollback()
            if attempt == VOTE_ATTEMPTS:
                logger.error(f"Vote on post {post_id} by {voter_id} kept racing, giving up")
                raise Conflict("Vote could not be recorded, please retry")
            logger.warning(f"Concurrent vote on post {post_id} by {voter_id}, re-evaluating")

    return {
        "voteScore": vote_score(db, post_id),
        "userVote": user_vote(db, post_id, voter_id),
    }


# =============================================================================
# Accepted answers
# =============================================================================

def set_accepted_answer(db: Session, post_id: str, caller_id: str, answer_id: Optional[str]) -> Dict[str, Any]:
    """
    Accept `answer_id` (or clear acceptance with None). Only the post author
    may call this. Re-accepting the current answer changes nothing.
    """
    post = get_post(db, post_id)
    if post.author_id != caller_id:
        raise PermissionDenied("Only post author can accept answers")

    previous_id = post.accepted_answer_id
    answer = None
    if answer_id:
        answer = db.query(Answer).filter(Answer.id == answer_id).first()
        if not answer or answer.post_id != post.id or answer.is_deleted:
            raise ValidationFailed("Invalid answer")

    new_id = answer.id if answer else None
    if new_id == previous_id:
        return {"success": True, "acceptedAnswerId": previous_id}

    # Compare-and-set so two concurrent accepts can't both grant the bonus
    guard = Post.accepted_answer_id == previous_id if previous_id else Post.accepted_answer_id.is_(None)
    changed = db.query(Post).filter(Post.id == post.id, guard).update(
        {Post.accepted_answer_id: new_id, Post.updated_at: datetime.utcnow()},
        synchronize_session=False,
    )
    if not changed:
        db.rollback()
        raise Conflict("Accepted answer changed, please retry")

    if previous_id:
        previous = db.query(Answer).filter(Answer.id == previous_id).first()
        if previous:
            adjust_reputation(db, previous.author_id, -ACCEPT_BONUS)
    if answer:
        adjust_reputation(db, answer.author_id, ACCEPT_BONUS)

    db.commit()
    logger.info(f"Post {post_id}: accepted answer {previous_id} -> {new_id}")
    return {"success": True, "acceptedAnswerId": new_id}


# =============================================================================
# Moderation (admin)
# =============================================================================

def moderate_post(db: Session, post_id: str, is_pinned: Any = None, is_locked: Any = None) -> Dict[str, Any]:
    changes = {}
    if isinstance(is_pinned, bool):
        changes["is_pinned"] = is_pinned
    if isinstance(is_locked, bool):
        changes["is_locked"] = is_locked
    if not changes:
        raise ValidationFailed("No valid fields to update")

    post = get_post(db, post_id)
    for key, value in changes.items():
        setattr(post, key, value)
    db.commit()
    db.refresh(post)
    return post_to_dict(post, vote_score(db, post.id), _live_answers(post))


def delete_post(db: Session, post_id: str) -> None:
    """Hard delete; answers and votes go with it"""
    post = get_post(db, post_id)
    db.delete(post)
    db.commit()
    logger.info(f"Post {post_id} deleted")


def soft_delete_answer(db: Session, answer_id: str) -> None:
    """Hide an answer; un-accept it first if needed so the bonus is reversed"""
    answer = db.query(Answer).filter(Answer.id == answer_id).first()
    if not answer or answer.is_deleted:
        raise NotFound("Answer not found")

    answer.is_deleted = True
    changed = db.query(Post).filter(
        Post.id == answer.post_id, Post.accepted_answer_id == answer.id
    ).update({Post.accepted_answer_id: None}, synchronize_session=False)
    if changed:
        adjust_reputation(db, answer.author_id, -ACCEPT_BONUS)

    db.commit()
    logger.info(f"Answer {answer_id} soft-deleted (was accepted: {bool(changed)})")
