"""Unit tests for tasks/store.py -- TaskStore CRUD and aggregate queries.

Covers:
- create/get round trip with timestamps stamped by the store
- list_tasks() owner/status filters and newest-first ordering
- update_task() partial updates, unknown-field and bad-status rejection
- delete_task() / delete_tasks_for_owner()
- count_by_status() and completed_by_month() with and without owner scope
- year-scoped count and delete used by the seeding CLI
"""

import pytest

from tasks.models import Task
from tasks.store import TaskStore

# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    s = TaskStore("sqlite:///:memory:")
    yield s
    s.close()


def _task(title: str, owner_id: int = 1, status: str = "pending", created_at: str = "") -> Task:
    return Task(title=title, owner_id=owner_id, status=status, created_at=created_at)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def test_create_and_get(store: TaskStore) -> None:
    task_id = store.create_task(Task(title="Write docs", owner_id=7, description="all of them", due_date="2030-01-02"))
    task = store.get_task(task_id)
    assert task is not None
    assert task.id == task_id
    assert task.title == "Write docs"
    assert task.owner_id == 7
    assert task.status == "pending"
    assert task.due_date == "2030-01-02"
    assert task.created_at
    assert task.updated_at == task.created_at


def test_get_missing_returns_none(store: TaskStore) -> None:
    assert store.get_task(12345) is None


def test_list_newest_first(store: TaskStore) -> None:
    store.create_task(_task("old", created_at="2024-01-01T10:00:00+00:00"))
    store.create_task(_task("new", created_at="2024-06-01T10:00:00+00:00"))
    store.create_task(_task("middle", created_at="2024-03-01T10:00:00+00:00"))
    assert [t.title for t in store.list_tasks()] == ["new", "middle", "old"]


def test_list_filters(store: TaskStore) -> None:
    store.create_task(_task("a", owner_id=1, status="pending"))
    store.create_task(_task("b", owner_id=1, status="completed"))
    store.create_task(_task("c", owner_id=2, status="completed"))

    assert {t.title for t in store.list_tasks(owner_id=1)} == {"a", "b"}
    assert {t.title for t in store.list_tasks(status="completed")} == {"b", "c"}
    assert [t.title for t in store.list_tasks(owner_id=2, status="completed")] == ["c"]
    assert store.list_tasks(owner_id=3) == []


def test_update_partial(store: TaskStore) -> None:
    task_id = store.create_task(_task("draft", created_at="2024-01-01T00:00:00+00:00"))
    assert store.update_task(task_id, status="completed", owner_id=9) is True
    task = store.get_task(task_id)
    assert task.title == "draft"
    assert task.status == "completed"
    assert task.owner_id == 9
    assert task.updated_at > task.created_at


def test_update_can_clear_nullable_fields(store: TaskStore) -> None:
    task_id = store.create_task(Task(title="t", owner_id=1, description="d", due_date="2030-01-01"))
    store.update_task(task_id, description=None, due_date=None)
    task = store.get_task(task_id)
    assert task.description is None
    assert task.due_date is None


def test_update_missing_returns_false(store: TaskStore) -> None:
    assert store.update_task(999, title="x") is False


def test_update_rejects_unknown_field(store: TaskStore) -> None:
    task_id = store.create_task(_task("t"))
    with pytest.raises(ValueError):
        store.update_task(task_id, priority="high")


def test_update_rejects_bad_status(store: TaskStore) -> None:
    task_id = store.create_task(_task("t"))
    with pytest.raises(ValueError):
        store.update_task(task_id, status="archived")


def test_delete(store: TaskStore) -> None:
    task_id = store.create_task(_task("t"))
    assert store.delete_task(task_id) is True
    assert store.get_task(task_id) is None
    assert store.delete_task(task_id) is False


def test_delete_tasks_for_owner(store: TaskStore) -> None:
    store.create_task(_task("a", owner_id=1))
    store.create_task(_task("b", owner_id=1))
    store.create_task(_task("c", owner_id=2))
    assert store.delete_tasks_for_owner(1) == 2
    assert [t.title for t in store.list_tasks()] == ["c"]


def test_bulk_create(store: TaskStore) -> None:
    assert store.bulk_create([]) == 0
    assert store.bulk_create([_task("a"), _task("b"), _task("c")]) == 3
    assert len(store.list_tasks()) == 3


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def test_count_by_status_includes_zero_buckets(store: TaskStore) -> None:
    assert store.count_by_status() == {"pending": 0, "in_progress": 0, "completed": 0}
    store.create_task(_task("a", owner_id=1, status="completed"))
    store.create_task(_task("b", owner_id=2, status="completed"))
    store.create_task(_task("c", owner_id=2, status="in_progress"))
    assert store.count_by_status() == {"pending": 0, "in_progress": 1, "completed": 2}
    assert store.count_by_status(owner_id=2) == {"pending": 0, "in_progress": 1, "completed": 1}


def test_completed_by_month(store: TaskStore) -> None:
    store.create_task(_task("jan", owner_id=1, status="completed", created_at="2024-01-15T09:00:00+00:00"))
    store.create_task(_task("jan2", owner_id=2, status="completed", created_at="2024-01-20T09:00:00+00:00"))
    store.create_task(_task("mar-pending", owner_id=1, status="pending", created_at="2024-03-02T09:00:00+00:00"))
    store.create_task(_task("dec", owner_id=1, status="completed", created_at="2024-12-31T09:00:00+00:00"))
    store.create_task(_task("other-year", owner_id=1, status="completed", created_at="2023-01-15T09:00:00+00:00"))

    counts = store.completed_by_month(2024)
    assert sorted(counts) == list(range(1, 13))
    assert counts[1] == 2
    assert counts[3] == 0
    assert counts[12] == 1
    assert sum(counts.values()) == 3

    assert store.completed_by_month(2024, owner_id=2)[1] == 1
    assert sum(store.completed_by_month(2024, owner_id=2).values()) == 1


def test_year_count_and_delete(store: TaskStore) -> None:
    store.create_task(_task("a", created_at="2023-05-01T00:00:00+00:00"))
    store.create_task(_task("b", created_at="2024-05-01T00:00:00+00:00"))
    store.create_task(_task("c", created_at="2024-07-01T00:00:00+00:00"))

    assert store.count_created_in_year(2024) == 2
    assert store.count_created_in_year(2022) == 0
    assert store.delete_created_in_year(2024) == 2
    assert [t.title for t in store.list_tasks()] == ["a"]
