"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register           -- self-service sign-up (viewer role)
  POST /api/v1/auth/login              -- password login; returns token, sets JWT cookie
  POST /api/v1/auth/logout             -- revokes the presented token, clears cookie
  GET  /api/v1/auth/me                 -- current user info (requires auth)
  GET  /api/v1/auth/providers          -- list enabled OAuth providers (public)
  GET  /api/v1/auth/google/login       -- redirect to Google consent screen
  GET  /api/v1/auth/google/callback    -- finish the Google flow; returns token

Security:
  [H2] POST /login and POST /register are rate-limited per IP.
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response that carries a token.
  [H1] Google identities are accepted only with a verified email.
"""

import logging
from datetime import datetime, timezone

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import LOGIN_LIMIT, REGISTER_LIMIT, limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    OAuthProviderInfo,
    RegisterRequest,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.oauth import get_enabled_providers, get_oauth_user_info
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    create_access_token,
    hash_password,
    set_auth_cookie,
    token_lifetime,
)
from core.config import get_settings
from core.policy import Role

logger = logging.getLogger("taskboard.api.auth")

# Auth policy:
# - POST /auth/register, /auth/login:          public (rate-limited)
# - GET  /auth/providers, /auth/google/*:      public
# - POST /auth/logout, GET /auth/me:           requires auth (get_current_user)
router = APIRouter()

_GOOGLE = "google"


def _token_response(user: User, status_code: int = 200) -> JSONResponse:
    """Issue a JWT for the user and wrap it in the AuthResponse body and cookie."""
    token = create_access_token(user.id, user.email, user.roles)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=token_lifetime(),
            user=UserResponse.from_user(user),
        ).model_dump(),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"code": "validation_error", "message": "The email has already been taken."},
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(REGISTER_LIMIT)  # [H2] below @router so the route registers the limited wrapper
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a viewer account and log it in.

    Disabled with SELF_REGISTRATION_ENABLED=false, in which case accounts are
    created by an admin through the CLI.
    """
    if not get_settings().self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )

    user_store: UserStore = request.app.state.user_store
    if user_store.get_by_email(body.email) is not None:
        raise _email_taken()

    new_user = User(
        name=body.name,
        email=body.email,
        roles=[Role.viewer.value],
        hashed_password=hash_password(body.password),
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email.
        raise _email_taken() from exc

    logger.info("Registered user_id=%s", user_id)
    return _token_response(user_store.get_by_id(user_id), status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(LOGIN_LIMIT)  # [H2] brute-force mitigation
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Uses authenticate_user() which includes timing equalization [C1]. Wrong
    email and wrong password share one error so the response does not leak
    which emails are registered.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password.", "detail": None}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp
    return _token_response(user)


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured OAuth providers; empty when none are set up."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers()]


# ---------------------------------------------------------------------------
# Google OAuth
# ---------------------------------------------------------------------------


def _require_google() -> None:
    if _GOOGLE not in {p["name"] for p in get_enabled_providers()}:
        raise HTTPException(
            status_code=404,
            detail={"code": "provider_disabled", "message": "Google sign-in is not configured."},
        )


@router.get("/auth/google/login")
async def google_login(request: Request):
    """Redirect the browser to Google's authorization page.

    authlib stores the state value in the Starlette session, which the
    callback verifies.
    """
    _require_google()
    client = request.app.state.oauth.create_client(_GOOGLE)
    redirect_uri = str(request.url_for("google_callback"))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/google/callback", response_model=AuthResponse, name="google_callback")
async def google_callback(request: Request) -> JSONResponse:
    """Finish the Google flow and issue a token.

    Flow:
      1. Exchange the authorization code (authlib checks session state).
      2. Extract a verified email and stable subject [H1].
      3. Returning user: look up by (provider, subject).
      4. Known email: link the Google identity to the existing account.
      5. Unknown email: create a password-less viewer account.
    """
    _require_google()
    user_store: UserStore = request.app.state.user_store
    client = request.app.state.oauth.create_client(_GOOGLE)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError as exc:
        logger.warning("Google token exchange failed: %s", exc.error)
        raise HTTPException(
            status_code=401,
            detail={"code": "oauth_failed", "message": "Google authentication failed."},
        ) from exc

    try:
        email, subject, name = get_oauth_user_info(token)
    except ValueError as exc:
        logger.warning("Google login rejected: %s", exc)
        raise HTTPException(
            status_code=401,
            detail={"code": "oauth_failed", "message": "Google did not confirm a verified email."},
        ) from exc

    user = user_store.get_by_oauth(_GOOGLE, subject)
    if user is None:
        user = user_store.get_by_email(email)
        if user is not None:
            user_store.link_oauth(user.id, _GOOGLE, subject)
            logger.info("Linked Google identity to user_id=%s", user.id)
        else:
            try:
                user_id = user_store.create_user(
                    User(
                        name=name,
                        email=email,
                        roles=[Role.viewer.value],
                        oauth_provider=_GOOGLE,
                        oauth_subject=subject,
                    )
                )
                logger.info("Created user_id=%s from Google sign-in", user_id)
            except IntegrityError:
                # A concurrent sign-in or registration created the email first.
                user = user_store.get_by_email(email)
                if user is None:
                    raise
                user_store.link_oauth(user.id, _GOOGLE, subject)
                logger.info("Linked Google identity to user_id=%s after concurrent create", user.id)
        user = user_store.get_by_oauth(_GOOGLE, subject)

    return _token_response(user)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Revoke the presented token and clear the cookie.

    Only this token stops working; other sessions of the same user are
    unaffected.
    """
    payload = request.state.token_payload
    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).isoformat()
    request.app.state.user_store.revoke_token(payload["jti"], current_user.id, expires_at)
    logger.info("Logged out user_id=%s", current_user.id)
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.get("/auth/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)
