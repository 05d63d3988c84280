"""
Roles & Tasks API
=================

- GET   /api/roles        - Organizational roles
- GET   /api/tasks        - Tasks of a role (roleId required; status/priority filters)
- POST  /api/tasks        - Create task
- PATCH /api/tasks/{id}   - Partial update
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import AuthContext, get_db_dependency, require_user
from .schemas import CreateTaskRequest, RoleOut, TaskOut, UpdateTaskRequest
from . import tasks as task_service
from .users import list_roles

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])


@router.get("/roles", response_model=List[RoleOut])
async def get_roles(
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    return [{"id": role.id, "name": role.name} for role in list_roles(db)]


@router.get("/tasks", response_model=List[TaskOut])
async def get_tasks(
    roleId: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    tasks = task_service.list_tasks(db, roleId, status=status, priority=priority)
    return [task_service.task_to_dict(t) for t in tasks]


@router.post("/tasks", response_model=TaskOut, status_code=201)
async def create_task(
    request: CreateTaskRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    task = task_service.create_task(
        db,
        role_id=request.roleId,
        title=request.title,
        priority=request.priority,
        status=request.status,
        description=request.description,
        due_date=request.dueDate,
    )
    return task_service.task_to_dict(task)


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: str,
    request: UpdateTaskRequest,
    auth: AuthContext = Depends(require_user),
    db: Session = Depends(get_db_dependency),
):
    # Only fields present in the body count; explicit nulls clear
    changes = {name: getattr(request, name) for name in request.model_fields_set}
    task = task_service.update_task(db, task_id, changes)
    return task_service.task_to_dict(task)
