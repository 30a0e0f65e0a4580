"""
tasks/models.py -- Domain dataclasses for tasks.

Pure data containers with zero logic. Who may read or change a Task is decided
by core/policy.py; persistence lives in tasks/store.py.
"""

from dataclasses import dataclass
from typing import Optional

TASK_STATUSES: tuple[str, ...] = ("pending", "in_progress", "completed")


@dataclass
class Task:
    """A unit of work assigned to exactly one user.

    owner_id must reference an existing user. Route handlers check this
    before writing; the store does not.

    due_date is an ISO date (YYYY-MM-DD) or None. created_at/updated_at are
    ISO 8601 timestamps set by the store unless provided (the seeder back-dates
    them).

    id is None before the record is written to the database.
    """

    title: str
    owner_id: int
    description: Optional[str] = None
    status: str = "pending"  # "pending" | "in_progress" | "completed"
    due_date: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
