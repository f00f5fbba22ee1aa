# tests/test_task_service.py

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest

from todo_cli.errors import (
    AccessDeniedError,
    BulkOperationError,
    TaskNotFoundError,
    ValidationError,
)
from todo_cli.schemas.task import TaskCreate, TaskFilter, TaskPriority, TaskStatus, TaskUpdate
from todo_cli.schemas.user import UserResponse
from todo_cli.services.tasks import TaskService, calculate_statistics, matches_filter
from todo_cli.utils.dates import utcnow

from .fakes import FakeTaskRepository, hours_from_now, make_task


async def _seed(repo: FakeTaskRepository, user_id, **kwargs):
    return await repo.create(make_task(user_id, **kwargs))


# ── create / get ────────────────────────────────────────

async def test_create_rejects_past_due_date_and_accepts_future(
    task_service: TaskService, alice: UserResponse
) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await task_service.create_task(alice.id, TaskCreate(title="late", due_date=hours_from_now(-1)))
    assert excinfo.value.field == "due_date"

    task = await task_service.create_task(alice.id, TaskCreate(title="soon", due_date=hours_from_now(24)))
    assert task.due_date > utcnow()


async def test_create_then_get_round_trips(task_service: TaskService, alice: UserResponse) -> None:
    due = hours_from_now(72)
    request = TaskCreate(
        title="Write report",
        description="Quarterly numbers",
        priority=TaskPriority.HIGH,
        due_date=due,
    )

    created = await task_service.create_task(alice.id, request)
    fetched = await task_service.get_task(alice.id, created.id)

    assert fetched == created
    assert fetched.title == request.title
    assert fetched.description == request.description
    assert fetched.priority == request.priority
    assert fetched.status == TaskStatus.PENDING
    assert fetched.due_date == due
    assert fetched.user_id == alice.id


async def test_create_accepts_plain_mapping(task_service: TaskService, alice: UserResponse) -> None:
    task = await task_service.create_task(alice.id, {"title": "From dict", "priority": "low"})
    assert task.priority == TaskPriority.LOW

    with pytest.raises(ValidationError) as excinfo:
        await task_service.create_task(alice.id, {"title": ""})
    assert excinfo.value.field == "title"
    assert excinfo.value.reason == "Title is required"


async def test_other_owner_gets_access_denied_not_not_found(
    task_service: TaskService, alice: UserResponse, bob: UserResponse
) -> None:
    task = await task_service.create_task(alice.id, TaskCreate(title="private"))

    assert (await task_service.get_task(alice.id, task.id)).id == task.id
    with pytest.raises(AccessDeniedError):
        await task_service.get_task(bob.id, task.id)
    with pytest.raises(TaskNotFoundError):
        await task_service.get_task(alice.id, uuid4())


# ── update / delete ─────────────────────────────────────

async def test_update_is_scoped_to_owner(
    task_service: TaskService, alice: UserResponse, bob: UserResponse
) -> None:
    task = await task_service.create_task(alice.id, TaskCreate(title="mine"))

    with pytest.raises(TaskNotFoundError):
        await task_service.update_task(bob.id, task.id, TaskUpdate(title="stolen"))

    updated = await task_service.update_task(alice.id, task.id, {"title": "still mine"})
    assert updated.title == "still mine"


async def test_update_rejects_past_due_date(task_service: TaskService, alice: UserResponse) -> None:
    task = await task_service.create_task(alice.id, TaskCreate(title="t"))
    with pytest.raises(ValidationError):
        await task_service.update_task(alice.id, task.id, TaskUpdate(due_date=hours_from_now(-2)))

    # clearing the due date is always allowed
    cleared = await task_service.update_task(alice.id, task.id, {"due_date": None})
    assert cleared.due_date is None


async def test_completed_at_follows_status_through_service(
    task_service: TaskService, alice: UserResponse
) -> None:
    task = await task_service.create_task(alice.id, TaskCreate(title="t"))

    done = await task_service.complete_task(alice.id, task.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at is not None

    reopened = await task_service.uncomplete_task(alice.id, task.id)
    assert reopened.status == TaskStatus.PENDING
    assert reopened.completed_at is None

    started = await task_service.start_task(alice.id, task.id)
    assert started.status == TaskStatus.IN_PROGRESS

    # completing from in-progress goes through a plain status update
    finished = await task_service.complete_task(alice.id, task.id)
    assert finished.status == TaskStatus.COMPLETED
    assert finished.completed_at is not None


async def test_delete_does_not_leak_ownership(
    task_service: TaskService, alice: UserResponse, bob: UserResponse
) -> None:
    task = await task_service.create_task(alice.id, TaskCreate(title="t"))

    assert await task_service.delete_task(bob.id, task.id) is False
    assert await task_service.delete_task(alice.id, uuid4()) is False
    assert await task_service.delete_task(alice.id, task.id) is True
    assert await task_service.delete_task(alice.id, task.id) is False


# ── listing & filters ───────────────────────────────────

async def test_status_filter_same_result_on_both_paths(
    task_service: TaskService, task_repo: FakeTaskRepository, alice: UserResponse, bob: UserResponse
) -> None:
    await _seed(task_repo, alice.id, title="a", status=TaskStatus.COMPLETED, priority=TaskPriority.HIGH)
    await _seed(task_repo, alice.id, title="b", status=TaskStatus.COMPLETED, priority=TaskPriority.LOW)
    await _seed(task_repo, alice.id, title="c", status=TaskStatus.PENDING, priority=TaskPriority.HIGH)
    await _seed(task_repo, bob.id, title="d", status=TaskStatus.COMPLETED, priority=TaskPriority.HIGH)

    task_repo.calls.clear()
    fast = await task_service.get_tasks(alice.id, TaskFilter(status=TaskStatus.COMPLETED))
    assert task_repo.calls == ["find_by_status"]
    assert {t.title for t in fast} == {"a", "b"}

    # adding a second predicate forces the in-memory path
    task_repo.calls.clear()
    slow = await task_service.get_tasks(
        alice.id, TaskFilter(status=TaskStatus.COMPLETED, priority=TaskPriority.HIGH)
    )
    assert task_repo.calls == ["find_by_user"]
    assert [t.title for t in slow] == ["a"]

    everything = await task_service.get_tasks(alice.id)
    expected = {t.id for t in everything if t.status == TaskStatus.COMPLETED}
    assert {t.id for t in fast} == expected


async def test_overdue_and_search_fast_paths(
    task_service: TaskService, task_repo: FakeTaskRepository, alice: UserResponse
) -> None:
    late = await _seed(task_repo, alice.id, title="late", due_date=hours_from_now(-5))
    await _seed(task_repo, alice.id, title="late but done", due_date=hours_from_now(-5),
                status=TaskStatus.COMPLETED)
    await _seed(task_repo, alice.id, title="Buy MILK", description="semi-skimmed")
    await _seed(task_repo, alice.id, title="walk", description="with the milkman")

    task_repo.calls.clear()
    overdue = await task_service.get_tasks(alice.id, TaskFilter(overdue_only=True))
    assert task_repo.calls == ["find_overdue_by_user"]
    assert [t.id for t in overdue] == [late.id]

    task_repo.calls.clear()
    found = await task_service.get_tasks(alice.id, TaskFilter(search_term="milk"))
    assert task_repo.calls == ["search"]
    assert {t.title for t in found} == {"Buy MILK", "walk"}

    task_repo.calls.clear()
    combined = await task_service.get_tasks(alice.id, TaskFilter(overdue_only=True, search_term="LATE"))
    assert task_repo.calls == ["find_by_user"]
    assert [t.id for t in combined] == [late.id]


def test_matches_filter_is_conjunctive() -> None:
    owner = uuid4()
    now = utcnow()
    task = make_task(owner, title="Pay rent", priority=TaskPriority.HIGH, due_date=now - timedelta(days=1))

    assert matches_filter(task, TaskFilter(), now)
    assert matches_filter(task, TaskFilter(priority=TaskPriority.HIGH, overdue_only=True), now)
    assert matches_filter(task, TaskFilter(search_term="RENT"), now)
    assert not matches_filter(task, TaskFilter(priority=TaskPriority.HIGH, search_term="milk"), now)
    assert not matches_filter(task, TaskFilter(status=TaskStatus.COMPLETED), now)


async def test_search_tasks_trims_and_limits(
    task_service: TaskService, task_repo: FakeTaskRepository, alice: UserResponse
) -> None:
    for i in range(5):
        await _seed(task_repo, alice.id, title=f"report {i}")

    assert await task_service.search_tasks(alice.id, "   ") == []
    assert len(await task_service.search_tasks(alice.id, "  report ")) == 5
    assert len(await task_service.search_tasks(alice.id, "report", limit=2)) == 2


async def test_statistics_exclude_completed_from_overdue(
    task_service: TaskService, task_repo: FakeTaskRepository, alice: UserResponse
) -> None:
    await _seed(task_repo, alice.id, status=TaskStatus.PENDING, due_date=hours_from_now(-1))
    await _seed(task_repo, alice.id, status=TaskStatus.IN_PROGRESS, due_date=hours_from_now(-1))
    await _seed(task_repo, alice.id, status=TaskStatus.COMPLETED, due_date=hours_from_now(-1))
    await _seed(task_repo, alice.id, status=TaskStatus.PENDING)

    stats = await task_service.get_task_statistics(alice.id)

    assert stats.total_tasks == 4
    assert stats.pending_tasks == 2
    assert stats.in_progress_tasks == 1
    assert stats.completed_tasks == 1
    assert stats.overdue_tasks == 2


def test_statistics_of_nothing() -> None:
    stats = calculate_statistics([])
    assert stats.total_tasks == 0
    assert stats.overdue_tasks == 0


# ── bulk ────────────────────────────────────────────────

async def test_bulk_update_all_valid(task_service: TaskService, alice: UserResponse) -> None:
    ids = [(await task_service.create_task(alice.id, TaskCreate(title=f"t{i}"))).id for i in range(3)]

    updated = await task_service.bulk_update_status(alice.id, ids, TaskStatus.COMPLETED)

    assert len(updated) == 3
    assert all(t.status == TaskStatus.COMPLETED for t in updated)
    assert all(t.completed_at is not None for t in updated)


async def test_bulk_update_partial_failure_returns_successes(
    task_service: TaskService, alice: UserResponse, bob: UserResponse
) -> None:
    mine = await task_service.create_task(alice.id, TaskCreate(title="mine"))
    theirs = [(await task_service.create_task(bob.id, TaskCreate(title=f"b{i}"))).id for i in range(2)]

    updated = await task_service.bulk_update_status(
        alice.id, [mine.id, *theirs], TaskStatus.COMPLETED
    )

    assert [t.id for t in updated] == [mine.id]
    # bob's tasks are untouched
    for task_id in theirs:
        assert (await task_service.get_task(bob.id, task_id)).status == TaskStatus.PENDING


async def test_bulk_update_total_failure_raises(
    task_service: TaskService, alice: UserResponse
) -> None:
    with pytest.raises(BulkOperationError) as excinfo:
        await task_service.bulk_update_status(alice.id, [uuid4(), uuid4()], TaskStatus.COMPLETED)
    assert excinfo.value.failed_count == 2
    assert excinfo.value.total_count == 2


async def test_bulk_delete(task_service: TaskService, alice: UserResponse, bob: UserResponse) -> None:
    a = await task_service.create_task(alice.id, TaskCreate(title="a"))
    b = await task_service.create_task(alice.id, TaskCreate(title="b"))
    foreign = await task_service.create_task(bob.id, TaskCreate(title="c"))

    assert await task_service.bulk_delete_tasks(alice.id, [a.id, foreign.id]) == 1

    with pytest.raises(BulkOperationError) as excinfo:
        await task_service.bulk_delete_tasks(alice.id, [foreign.id, uuid4()])
    assert (excinfo.value.failed_count, excinfo.value.total_count) == (2, 2)

    assert await task_service.bulk_delete_tasks(alice.id, [b.id]) == 1
    assert await task_service.bulk_delete_tasks(alice.id, []) == 0
