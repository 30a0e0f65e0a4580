"""
tasks/store.py -- SQLAlchemy-backed persistence layer for tasks.

Uses SQLAlchemy Core (not ORM) so the dataclass in tasks/models.py remains the
authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. TaskStore is the repository; _row_to_task
is the mapper. Route handlers never touch SQL directly.

The store performs no authorization. Callers ask core/policy.py first and
pass the resulting owner filter (or None for "all tasks") into list/count
queries.

Concurrent updates to the same row are last-write-wins.

Usage:
    store = TaskStore()                                # SQLite default
    store = TaskStore("postgresql://user:pw@host/db")  # PostgreSQL
    task_id = store.create_task(Task(title="Write docs", owner_id=1))
    store.update_task(task_id, status="completed")
    store.list_tasks(owner_id=1, status="completed")
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from core.config import get_settings
from tasks.models import TASK_STATUSES, Task

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_tasks = Table(
    "tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("due_date", String(10)),  # YYYY-MM-DD
    Column("owner_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Index("ix_tasks_owner_id", "owner_id"),
    Index("ix_tasks_status", "status"),
)

# Columns a caller may change through update_task().
_MUTABLE_FIELDS = {"title", "description", "status", "due_date", "owner_id"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety (per connection)."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TaskStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_task(self, task: Task) -> int:
        """Insert a task and return its ID.

        created_at/updated_at default to now; the seeder passes explicit
        timestamps to spread sample data across a year.
        """
        created_at = task.created_at or _now_iso()
        updated_at = task.updated_at or created_at
        with self.engine.connect() as conn:
            result = conn.execute(
                _tasks.insert().values(
                    title=task.title,
                    description=task.description,
                    status=task.status,
                    due_date=task.due_date,
                    owner_id=task.owner_id,
                    created_at=created_at,
                    updated_at=updated_at,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def bulk_create(self, tasks: list[Task]) -> int:
        """Insert many tasks in one statement. Returns the number inserted."""
        if not tasks:
            return 0
        now = _now_iso()
        rows = [
            {
                "title": t.title,
                "description": t.description,
                "status": t.status,
                "due_date": t.due_date,
                "owner_id": t.owner_id,
                "created_at": t.created_at or now,
                "updated_at": t.updated_at or t.created_at or now,
            }
            for t in tasks
        ]
        with self.engine.connect() as conn:
            conn.execute(_tasks.insert(), rows)
            conn.commit()
        return len(rows)

    def get_task(self, task_id: int) -> Optional[Task]:
        """Fetch a single task by ID. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_tasks.select().where(_tasks.c.id == task_id)).fetchone()
        return _row_to_task(row) if row is not None else None

    def list_tasks(self, owner_id: Optional[int] = None, status: Optional[str] = None) -> list[Task]:
        """Return tasks newest first.

        owner_id=None means no owner filter -- only pass None when the policy
        granted allow_all.
        """
        query = _tasks.select()
        if owner_id is not None:
            query = query.where(_tasks.c.owner_id == owner_id)
        if status is not None:
            query = query.where(_tasks.c.status == status)
        query = query.order_by(_tasks.c.created_at.desc(), _tasks.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_task(r) for r in rows]

    def update_task(self, task_id: int, **fields) -> bool:
        """Update mutable fields on an existing task and stamp updated_at.

        Accepts any subset of: title, description, status, due_date, owner_id.
        Unknown field names raise ValueError rather than being ignored.

        Returns True if a row was updated, False if task_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {sorted(unknown)!r}")
        if "status" in fields and fields["status"] not in TASK_STATUSES:
            raise ValueError(f"Invalid task status: {fields['status']!r}")
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.update().where(_tasks.c.id == task_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_task(self, task_id: int) -> bool:
        """Permanently delete a task. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.id == task_id))
            conn.commit()
        return result.rowcount > 0

    def delete_tasks_for_owner(self, owner_id: int) -> int:
        """Delete every task owned by a user. Called when the user is deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.owner_id == owner_id))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Aggregates (dashboard, CLI)
    # ------------------------------------------------------------------

    def count_by_status(self, owner_id: Optional[int] = None) -> dict[str, int]:
        """Return {"pending": N, "in_progress": N, "completed": N}."""
        query = select(_tasks.c.status, func.count()).group_by(_tasks.c.status)
        if owner_id is not None:
            query = query.where(_tasks.c.owner_id == owner_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        counts = {s: 0 for s in TASK_STATUSES}
        for status, n in rows:
            if status in counts:
                counts[status] = n
        return counts

    def completed_by_month(self, year: int, owner_id: Optional[int] = None) -> dict[int, int]:
        """Return completed-task counts keyed by creation month (1-12) for one year.

        Months with no completed tasks are present with a zero count so the
        dashboard chart always has twelve bars.
        """
        query = select(_tasks.c.created_at).where(
            (_tasks.c.status == "completed") & (_tasks.c.created_at.startswith(f"{year:04d}-"))
        )
        if owner_id is not None:
            query = query.where(_tasks.c.owner_id == owner_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        counts = {m: 0 for m in range(1, 13)}
        for (created_at,) in rows:
            month = int(created_at[5:7])
            counts[month] += 1
        return counts

    def count_created_in_year(self, year: int) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_tasks).where(_tasks.c.created_at.startswith(f"{year:04d}-"))
            ).scalar()
        return result or 0

    def delete_created_in_year(self, year: int) -> int:
        """Delete every task created in the given year. Returns the number deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(_tasks.delete().where(_tasks.c.created_at.startswith(f"{year:04d}-")))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        status=row.status,
        due_date=row.due_date,
        owner_id=row.owner_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
