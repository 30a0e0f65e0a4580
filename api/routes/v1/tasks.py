"""
api/routes/v1/tasks.py -- Task CRUD endpoints.

Routes:
  GET    /api/v1/tasks?status=   -- tasks visible to the caller, newest first
  POST   /api/v1/tasks           -- create a task
  GET    /api/v1/tasks/{id}      -- task detail
  PUT    /api/v1/tasks/{id}      -- partial update
  PATCH  /api/v1/tasks/{id}      -- partial update
  DELETE /api/v1/tasks/{id}      -- delete a task

Check order for single-task routes: load the task (404), then ask
core.policy (403), then validate references that need the database (422).
Body shape errors are rejected by pydantic before any of these run.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import MessageResponse, TaskCreate, TaskResponse, TaskStatusEnum, TaskUpdate
from auth.dependencies import enforce, get_current_principal
from auth.store import UserStore
from core.policy import (
    MutateAction,
    Principal,
    can_create_task,
    can_list_tasks,
    can_mutate_task,
    can_reassign_task,
    can_view_task,
)
from tasks.models import Task
from tasks.store import TaskStore

logger = logging.getLogger("taskboard.api.tasks")

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_task_or_404(task_store: TaskStore, task_id: int) -> Task:
    task = task_store.get_task(task_id)
    if task is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Task not found."},
        )
    return task


def _require_owner(user_store: UserStore, owner_id: int) -> None:
    if user_store.get_by_id(owner_id) is None:
        raise HTTPException(
            status_code=422,
            detail={"code": "validation_error", "message": "The selected owner does not exist."},
        )


def _to_response(request: Request, task: Task) -> TaskResponse:
    owner = request.app.state.user_store.get_by_id(task.owner_id)
    return TaskResponse.from_task(task, owner)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("/tasks", response_model=list[TaskResponse])
def list_tasks(
    request: Request,
    status: Optional[TaskStatusEnum] = None,
    principal: Principal = Depends(get_current_principal),
) -> list[TaskResponse]:
    """Admins see every task; everyone else sees only tasks they own."""
    scope = can_list_tasks(principal)
    task_store: TaskStore = request.app.state.task_store
    user_store: UserStore = request.app.state.user_store

    tasks = task_store.list_tasks(
        owner_id=None if scope.allow_all else principal.id,
        status=status.value if status else None,
    )
    owners = {u.id: u for u in user_store.list_users()}
    return [TaskResponse.from_task(t, owners.get(t.owner_id)) for t in tasks]


@router.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    principal: Principal = Depends(get_current_principal),
) -> TaskResponse:
    """Create a task. Without owner_id the caller owns it."""
    enforce(can_create_task(principal, body.owner_id), principal)

    owner_id = body.owner_id if body.owner_id is not None else principal.id
    _require_owner(request.app.state.user_store, owner_id)

    task_store: TaskStore = request.app.state.task_store
    task_id = task_store.create_task(
        Task(
            title=body.title,
            description=body.description,
            status=body.status.value,
            due_date=body.due_date.isoformat() if body.due_date else None,
            owner_id=owner_id,
        )
    )
    logger.info("user_id=%s created task_id=%s for owner_id=%s", principal.id, task_id, owner_id)
    return _to_response(request, task_store.get_task(task_id))


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(
    request: Request,
    task_id: int,
    principal: Principal = Depends(get_current_principal),
) -> TaskResponse:
    task = _get_task_or_404(request.app.state.task_store, task_id)
    enforce(can_view_task(principal, task.owner_id), principal)
    return _to_response(request, task)


@router.api_route("/tasks/{task_id}", methods=["PUT", "PATCH"], response_model=TaskResponse)
def update_task(
    request: Request,
    task_id: int,
    body: TaskUpdate,
    principal: Principal = Depends(get_current_principal),
) -> TaskResponse:
    """Apply the supplied fields; omitted fields keep their values.

    Sending the current owner_id back is not a reassignment and needs no
    admin rights.
    """
    task_store: TaskStore = request.app.state.task_store
    task = _get_task_or_404(task_store, task_id)
    enforce(can_mutate_task(principal, task.owner_id, MutateAction.update), principal)

    sent = body.model_fields_set
    updates: dict = {}
    if "owner_id" in sent and body.owner_id != task.owner_id:
        enforce(can_reassign_task(principal), principal)
        _require_owner(request.app.state.user_store, body.owner_id)
        updates["owner_id"] = body.owner_id
    if "title" in sent:
        updates["title"] = body.title
    if "description" in sent:
        updates["description"] = body.description
    if "status" in sent:
        updates["status"] = body.status.value
    if "due_date" in sent:
        updates["due_date"] = body.due_date.isoformat() if body.due_date else None

    if updates:
        task_store.update_task(task_id, **updates)
    return _to_response(request, task_store.get_task(task_id))


@router.delete("/tasks/{task_id}", response_model=MessageResponse)
def delete_task(
    request: Request,
    task_id: int,
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    task_store: TaskStore = request.app.state.task_store
    task = _get_task_or_404(task_store, task_id)
    enforce(can_mutate_task(principal, task.owner_id, MutateAction.delete), principal)
    task_store.delete_task(task_id)
    logger.info("user_id=%s deleted task_id=%s", principal.id, task_id)
    return MessageResponse(message="Task deleted successfully.")
