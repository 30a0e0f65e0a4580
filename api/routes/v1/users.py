"""
api/routes/v1/users.py -- User administration endpoints.

Routes:
  GET    /api/v1/users          -- list all users
  GET    /api/v1/users/{id}     -- user detail
  PUT    /api/v1/users/{id}     -- update name/email/role
  PATCH  /api/v1/users/{id}     -- same as PUT; omitted fields are unchanged
  DELETE /api/v1/users/{id}     -- delete user and the tasks they own

Every route asks core.policy first and only then looks the target up, so a
non-admin learns nothing about which user ids exist.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError

from api.models import MessageResponse, UserResponse, UserUpdate
from auth.dependencies import enforce, get_current_principal
from auth.models import User
from auth.store import UserStore
from core.policy import (
    Principal,
    can_change_user_role,
    can_delete_user,
    can_list_users,
    can_update_user,
    can_view_user,
)
from tasks.store import TaskStore

logger = logging.getLogger("taskboard.api.users")

router = APIRouter()


def _get_user_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, principal: Principal = Depends(get_current_principal)) -> list[UserResponse]:
    enforce(can_list_users(principal), principal)
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    enforce(can_view_user(principal), principal)
    return UserResponse.from_user(_get_user_or_404(request.app.state.user_store, user_id))


@router.api_route("/users/{user_id}", methods=["PUT", "PATCH"], response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(get_current_principal),
) -> UserResponse:
    """Update a user's profile and, optionally, their role.

    A role in the body replaces the user's whole role set with exactly that
    role. The change applies to the target's next request; existing tokens
    are not reissued because roles are read from the store per request.
    """
    enforce(can_update_user(principal), principal)
    if body.role is not None:
        enforce(can_change_user_role(principal), principal)

    user_store: UserStore = request.app.state.user_store
    target = _get_user_or_404(user_store, user_id)

    updates: dict = {}
    if body.name is not None:
        updates["name"] = body.name
    if body.email is not None and body.email != target.email:
        # Uniqueness is case-insensitive; a case-only change of the own address is allowed.
        existing = user_store.get_by_email(body.email)
        if existing is not None and existing.id != target.id:
            raise HTTPException(
                status_code=422,
                detail={"code": "validation_error", "message": "The email has already been taken."},
            )
        updates["email"] = body.email

    if updates:
        try:
            user_store.update_user(user_id, **updates)
        except IntegrityError as exc:
            raise HTTPException(
                status_code=422,
                detail={"code": "validation_error", "message": "The email has already been taken."},
            ) from exc
    if body.role is not None:
        user_store.set_roles(user_id, [body.role.value])
        logger.info("user_id=%s set role of user_id=%s to %s", principal.id, user_id, body.role.value)

    return UserResponse.from_user(_get_user_or_404(user_store, user_id))


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: int,
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    """Delete a user. Tasks they own are deleted with them so no task is left ownerless."""
    enforce(can_delete_user(principal, user_id), principal)

    user_store: UserStore = request.app.state.user_store
    task_store: TaskStore = request.app.state.task_store
    _get_user_or_404(user_store, user_id)

    removed = task_store.delete_tasks_for_owner(user_id)
    user_store.delete_user(user_id)
    logger.info("user_id=%s deleted user_id=%s (%d tasks removed)", principal.id, user_id, removed)
    return MessageResponse(message="User deleted successfully.")
