"""
core/policy.py -- Role-based authorization policy for tasks and users.

Every permission rule in Taskboard lives here as a named function, one per
action family. Each function takes the acting Principal explicitly and
returns a uniform decision value:

  can_list_tasks(principal)                          -> TaskListScope
  can_create_task(principal, requested_owner_id)     -> AuthDecision
  can_view_task(principal, task_owner_id)            -> AuthDecision
  can_mutate_task(principal, task_owner_id, action)  -> AuthDecision
  can_reassign_task(principal)                       -> AuthDecision
  can_list_users / can_view_user / can_update_user   -> AuthDecision
  can_delete_user(principal, target_user_id)         -> AuthDecision
  can_change_user_role(principal)                    -> AuthDecision

Contract with route handlers:
  - The handler resolves the principal from an authenticated session and
    loads the task/user it acts on BEFORE asking, so the policy only ever sees
    concrete owner ids.
  - When a create request names no owner, the handler uses principal.id as
    the effective owner. can_create_task(principal, None) is the check for
    that case.
  - A deny is never an error to retry. The handler turns it into a 403 and
    may pass `reason` through verbatim.

Functions here are pure and total: no I/O, no exceptions, no module state.
Task status transitions are deliberately unconstrained -- anyone allowed to
update a task may set any status in any order.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tasks/.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class Role(str, Enum):
    admin = "admin"
    editor = "editor"
    viewer = "viewer"


class MutateAction(str, Enum):
    update = "update"
    delete = "delete"


@dataclass(frozen=True)
class Principal:
    """The authenticated actor. Roles are non-exclusive."""

    id: int
    roles: frozenset[Role] = frozenset()

    @classmethod
    def from_role_names(cls, user_id: int, names: Iterable[str]) -> "Principal":
        """Build a Principal from stored role names. Raises ValueError on an unknown name."""
        return cls(id=user_id, roles=frozenset(Role(n) for n in names))

    @property
    def is_admin(self) -> bool:
        return Role.admin in self.roles

    @property
    def can_write_tasks(self) -> bool:
        return bool(self.roles & {Role.admin, Role.editor})


@dataclass(frozen=True)
class AuthDecision:
    allowed: bool
    reason: Optional[str] = None
    code: str = "forbidden"


@dataclass(frozen=True)
class TaskListScope:
    """allow_all=False means the caller must filter to owner_id == principal.id."""

    allow_all: bool


# ---------------------------------------------------------------------------
# Reasons
# ---------------------------------------------------------------------------

REASON_NOT_AUTHORIZED = "not authorized"
REASON_CREATE_ROLE = "role not permitted to create tasks"
REASON_ASSIGN_OTHERS = "only admins may assign tasks to other users"
REASON_REASSIGN = "only admins may change task assignment"
REASON_SELF_DELETE = "cannot delete own account"

_ALLOW = AuthDecision(allowed=True)


def _deny(reason: str, code: str = "forbidden") -> AuthDecision:
    return AuthDecision(allowed=False, reason=reason, code=code)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def can_list_tasks(principal: Principal) -> TaskListScope:
    return TaskListScope(allow_all=principal.is_admin)


def can_create_task(principal: Principal, requested_owner_id: Optional[int] = None) -> AuthDecision:
    if not principal.can_write_tasks:
        return _deny(REASON_CREATE_ROLE)
    if requested_owner_id is not None and requested_owner_id != principal.id and not principal.is_admin:
        return _deny(REASON_ASSIGN_OTHERS)
    return _ALLOW


def can_view_task(principal: Principal, task_owner_id: int) -> AuthDecision:
    if principal.is_admin or principal.id == task_owner_id:
        return _ALLOW
    return _deny(REASON_NOT_AUTHORIZED)


def can_mutate_task(principal: Principal, task_owner_id: int, action: MutateAction) -> AuthDecision:
    """Update and delete share one rule: viewers never, admins always, editors on their own tasks.

    `action` is part of the signature so the two can diverge without touching
    callers; today both resolve identically.
    """
    if not principal.can_write_tasks:
        return _deny(REASON_NOT_AUTHORIZED)
    if principal.is_admin:
        return _ALLOW
    if task_owner_id == principal.id:
        return _ALLOW
    return _deny(REASON_NOT_AUTHORIZED)


def can_reassign_task(principal: Principal) -> AuthDecision:
    # Ownership of the task is irrelevant here.
    if principal.is_admin:
        return _ALLOW
    return _deny(REASON_REASSIGN)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def _admin_only(principal: Principal) -> AuthDecision:
    return _ALLOW if principal.is_admin else _deny(REASON_NOT_AUTHORIZED)


def can_list_users(principal: Principal) -> AuthDecision:
    return _admin_only(principal)


def can_view_user(principal: Principal) -> AuthDecision:
    return _admin_only(principal)


def can_update_user(principal: Principal) -> AuthDecision:
    return _admin_only(principal)


def can_change_user_role(principal: Principal) -> AuthDecision:
    return _admin_only(principal)


def can_delete_user(principal: Principal, target_user_id: int) -> AuthDecision:
    """Admin only, and never one's own account -- not even for admins."""
    if not principal.is_admin:
        return _deny(REASON_NOT_AUTHORIZED)
    if target_user_id == principal.id:
        return _deny(REASON_SELF_DELETE, code="self_deletion")
    return _ALLOW
