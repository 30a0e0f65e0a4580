"""
tasks/seed.py -- Sample data for demos and the dashboard chart.

seed_users() creates one account per role. seed_tasks() spreads a fixed number
of back-dated tasks over every month of a year so the completed-by-month chart
has something to show. Both are idempotent: existing demo accounts are left
alone, and a year that already holds tasks is not seeded again.

Used by the CLI in main.py; nothing in the request path imports this module.
"""

from __future__ import annotations

import calendar
import logging
import random
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password
from core.policy import Role
from tasks.models import Task
from tasks.store import TaskStore

logger = logging.getLogger("taskboard.seed")

DEMO_PASSWORD = "password"

DEMO_USERS: tuple[tuple[str, str, Role], ...] = (
    ("Admin User", "admin@example.com", Role.admin),
    ("Editor User", "editor@example.com", Role.editor),
    ("Viewer User", "viewer@example.com", Role.viewer),
)

# Tasks created per month; uneven on purpose so the chart has a shape.
TASKS_PER_MONTH: dict[int, int] = {
    1: 8,
    2: 12,
    3: 15,
    4: 10,
    5: 18,
    6: 22,
    7: 25,
    8: 20,
    9: 16,
    10: 14,
    11: 11,
    12: 9,
}

SAMPLE_TITLES: tuple[str, ...] = (
    "Review project documentation",
    "Implement new feature",
    "Fix reported bugs",
    "Optimize performance",
    "Review a teammate's code",
    "Update dependencies",
    "Write unit tests",
    "Document API endpoints",
    "Set up CI/CD",
    "Security review",
    "Refactor legacy code",
    "Integrate new services",
    "Test across browsers",
    "Optimize database",
    "Prepare client presentation",
    "Stakeholder meeting",
    "Plan next sprint",
    "Analyze usage metrics",
    "Research new technologies",
    "Onboard new team members",
)

SAMPLE_DESCRIPTIONS: tuple[str, ...] = (
    "Important task that needs careful attention",
    "New feature requested by the client",
    "Fix errors found during testing",
    "Improve overall system performance",
    "Code review against quality standards",
    "Update project libraries and dependencies",
    "Add tests to guarantee quality",
    "Technical documentation for future reference",
    "Configure the continuous integration pipeline",
    "Analyze and improve system security",
)


def seed_users(user_store: UserStore, password: str = DEMO_PASSWORD) -> list[int]:
    """Create the demo admin, editor and viewer accounts. Returns IDs of accounts created."""
    created: list[int] = []
    hashed = hash_password(password)
    for name, email, role in DEMO_USERS:
        if user_store.get_by_email(email) is not None:
            logger.info("Demo user %s already exists, skipping", email)
            continue
        created.append(user_store.create_user(User(name=name, email=email, roles=[role.value], hashed_password=hashed)))
    return created


def _pick_status(rng: random.Random) -> str:
    # 30% pending, 20% in progress, 50% completed
    roll = rng.randint(1, 100)
    if roll <= 30:
        return "pending"
    if roll <= 50:
        return "in_progress"
    return "completed"


def build_sample_tasks(year: int, owner_ids: list[int], rng: random.Random) -> list[Task]:
    """Return sample tasks for every month of `year`, owners drawn from owner_ids.

    Completed tasks get an updated_at 1-15 days after creation. About a third
    of tasks carry a due date 1-30 days after creation.
    """
    tasks: list[Task] = []
    for month, count in TASKS_PER_MONTH.items():
        days_in_month = calendar.monthrange(year, month)[1]
        for _ in range(count):
            created = datetime(
                year,
                month,
                rng.randint(1, days_in_month),
                rng.randint(8, 18),
                rng.randint(0, 59),
                tzinfo=timezone.utc,
            )
            status = _pick_status(rng)
            updated = created + timedelta(days=rng.randint(1, 15)) if status == "completed" else created
            due_date: Optional[str] = None
            if rng.randint(1, 3) == 1:
                due_date = (created + timedelta(days=rng.randint(1, 30))).date().isoformat()
            tasks.append(
                Task(
                    title=rng.choice(SAMPLE_TITLES),
                    description=rng.choice(SAMPLE_DESCRIPTIONS),
                    status=status,
                    due_date=due_date,
                    owner_id=rng.choice(owner_ids),
                    created_at=created.isoformat(),
                    updated_at=updated.isoformat(),
                )
            )
    return tasks


def seed_tasks(
    task_store: TaskStore,
    user_store: UserStore,
    year: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> int:
    """Seed sample tasks for `year` (default: current year). Returns the number created.

    Returns 0 without writing anything when the year already has tasks. When
    no users exist yet the demo accounts are created first.
    """
    year = year or date.today().year
    rng = rng or random.Random()

    existing = task_store.count_created_in_year(year)
    if existing:
        logger.info("Year %d already has %d tasks, not seeding", year, existing)
        return 0

    if not user_store.has_users():
        seed_users(user_store)
    owner_ids = [u.id for u in user_store.list_users()]

    created = task_store.bulk_create(build_sample_tasks(year, owner_ids, rng))
    logger.info("Seeded %d tasks for %d", created, year)
    return created
