"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors tasks/models.py
-- dataclasses own domain shape; stores and routes do the work.

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """Represents an identity in Taskboard.

    email is the login identifier and is unique. roles holds role names
    ("admin", "editor", "viewer"); a user may hold several, though
    registration and the admin UI always assign exactly one.

    hashed_password is None for OAuth-only users (they have no local password).
    oauth_provider / oauth_subject are None until the user logs in via OAuth for
    the first time.
    """

    name: str
    email: str
    roles: list[str] = field(default_factory=list)
    id: int | None = None
    hashed_password: str | None = None  # None = OAuth-only user
    oauth_provider: str | None = None  # "google"
    oauth_subject: str | None = None  # provider's stable user ID
    created_at: str | None = None
    updated_at: str | None = None

