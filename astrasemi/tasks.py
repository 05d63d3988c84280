"""
Task store: per-role work items.

Ordering everywhere is priority rank (CRITICAL first), then due date
ascending with undated tasks last, then newest first.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any

from sqlalchemy import case
from sqlalchemy.orm import Session

from .db.models import Role, Task
from .errors import ValidationFailed, NotFound
from .schemas import Priority, TaskStatus, PRIORITY_RANK

logger = logging.getLogger(__name__)

_priority_rank = case(
    dict(PRIORITY_RANK),
    value=Task.priority,
    else_=0,
)


def task_to_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "roleId": task.role_id,
        "title": task.title,
        "description": task.description,
        "priority": task.priority.value,
        "status": task.status.value,
        "dueDate": task.due_date.isoformat() if task.due_date else None,
        "createdAt": task.created_at.isoformat() if task.created_at else None,
        "updatedAt": task.updated_at.isoformat() if task.updated_at else None,
    }


def _parse_enum(enum_cls, value: Optional[str], label: str):
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationFailed(f"Invalid {label}")


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def get_role(db: Session, role_id: str) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise NotFound("Role not found")
    return role


def list_tasks(
    db: Session,
    role_id: Optional[str],
    status: Optional[str] = None,
    priority: Optional[str] = None,
) -> List[Task]:
    if not role_id:
        raise ValidationFailed("roleId is required")

    query = db.query(Task).filter(Task.role_id == role_id)

    status_value = _parse_enum(TaskStatus, status, "status")
    if status_value is not None:
        query = query.filter(Task.status == status_value)

    priority_value = _parse_enum(Priority, priority, "priority")
    if priority_value is not None:
        query = query.filter(Task.priority == priority_value)

    return query.order_by(
        _priority_rank.desc(),
        Task.due_date.is_(None),
        Task.due_date.asc(),
        Task.created_at.desc(),
    ).all()


def create_task(
    db: Session,
    role_id: Optional[str],
    title: Optional[str],
    priority: Optional[Priority],
    status: Optional[TaskStatus],
    description: Optional[str] = None,
    due_date: Optional[datetime] = None,
) -> Task:
    title = (title or "").strip()
    if not role_id or not title or priority is None or status is None:
        raise ValidationFailed("Missing required fields")

    get_role(db, role_id)

    task = Task(
        role_id=role_id,
        title=title,
        description=description or None,
        priority=priority,
        status=status,
        due_date=_naive_utc(due_date),
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info(f"Created task {task.id} for role {role_id}")
    return task


def update_task(db: Session, task_id: str, changes: Dict[str, Any]) -> Task:
    """
    Partial update. `changes` holds only the fields present in the request
    body; an explicit None clears description or dueDate.
    """
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise NotFound("Task not found")

    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            raise ValidationFailed("title cannot be empty")
        task.title = title
    if "description" in changes:
        task.description = changes["description"] or None
    if "priority" in changes:
        if changes["priority"] is None:
            raise ValidationFailed("priority cannot be null")
        task.priority = changes["priority"]
    if "status" in changes:
        if changes["status"] is None:
            raise ValidationFailed("status cannot be null")
        task.status = changes["status"]
    if "dueDate" in changes:
        task.due_date = _naive_utc(changes["dueDate"])

    db.commit()
    db.refresh(task)
    return task
