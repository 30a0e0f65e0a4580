"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and
policy enforcement.

Two credential sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login flow for browser clients.
  2. Authorization: Bearer <token> header -- the SPA and other API clients.

Both converge on a User object after successful verification. A token whose
jti was revoked by POST /auth/logout is treated as absent.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
get_current_principal() narrows the User to the core.policy.Principal that
policy functions take.
enforce() turns a policy deny into HTTP 403.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from auth.models import User
from auth.tokens import decode_access_token
from core.policy import AuthDecision, Principal

logger = logging.getLogger("taskboard.auth")


def bearer_token(request: Request) -> str | None:
    """Return the raw bearer token from the cookie or Authorization header.

    The scheme name is matched case-insensitively and surrounding whitespace
    is ignored, so "bearer  abc " yields "abc".
    """
    token = request.cookies.get("access_token")
    if token:
        return token
    auth_header = request.headers.get("Authorization", "").strip()
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def try_get_current_user(request: Request) -> User | None:
    """Attempt to authenticate the request. Never raises.

    Returns the authenticated User on success, None on any failure. On success
    the decoded token payload is kept on request.state.token_payload so
    logout can revoke it.
    """
    token = bearer_token(request)
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    user_store = request.app.state.user_store
    if user_store.is_token_revoked(payload["jti"]):
        return None
    user = user_store.get_by_id(payload["user_id"])
    if user is None:
        return None
    request.state.token_payload = payload
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_current_principal(user: User = Depends(get_current_user)) -> Principal:
    """Resolve the authenticated user into a policy Principal.

    Roles are re-read from the store on every request, so an admin's role
    change applies to the target user's very next call.
    """
    return Principal.from_role_names(user.id, user.roles)


def enforce(decision: AuthDecision, principal: Principal | None = None) -> None:
    """Raise HTTP 403 carrying the policy reason when the decision is a deny.

    The reason string is passed through verbatim as the error message; the
    error code distinguishes self-deletion from the generic "forbidden".
    """
    if decision.allowed:
        return
    logger.info(
        "Policy denied principal_id=%s: %s",
        principal.id if principal is not None else "?",
        decision.reason,
    )
    raise HTTPException(
        status_code=403,
        detail={"code": decision.code, "message": decision.reason or "not authorized"},
    )
