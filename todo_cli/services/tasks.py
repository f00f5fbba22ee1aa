import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from todo_cli.errors import (
    AccessDeniedError,
    BulkOperationError,
    TaskNotFoundError,
    TodoError,
    ValidationError,
)
from todo_cli.repositories.base import TaskRepository
from todo_cli.schemas.task import (
    Task,
    TaskCreate,
    TaskFilter,
    TaskStatistics,
    TaskStatus,
    TaskUpdate,
)
from todo_cli.utils.dates import utcnow
from todo_cli.utils.validation import parse_request

logger = logging.getLogger(__name__)


def _check_due_date(due_date: datetime | None) -> None:
    if due_date is not None and due_date <= utcnow():
        raise ValidationError("due_date", "Due date must be in the future")


def matches_filter(task: Task, task_filter: TaskFilter, now: datetime | None = None) -> bool:
    """Conjunctive in-memory version of the repository queries."""
    now = now or utcnow()
    if task_filter.status is not None and task.status != task_filter.status:
        return False
    if task_filter.priority is not None and task.priority != task_filter.priority:
        return False
    if task_filter.overdue_only and (task.is_completed() or not task.is_overdue(now)):
        return False
    if task_filter.search_term:
        term = task_filter.search_term.lower()
        in_title = term in task.title.lower()
        in_description = task.description is not None and term in task.description.lower()
        if not (in_title or in_description):
            return False
    return True


def calculate_statistics(tasks: Sequence[Task], now: datetime | None = None) -> TaskStatistics:
    now = now or utcnow()
    stats = TaskStatistics(total_tasks=len(tasks))
    for task in tasks:
        if task.status == TaskStatus.PENDING:
            stats.pending_tasks += 1
        elif task.status == TaskStatus.IN_PROGRESS:
            stats.in_progress_tasks += 1
        else:
            stats.completed_tasks += 1
        if not task.is_completed() and task.is_overdue(now):
            stats.overdue_tasks += 1
    return stats


class TaskService:
    """Ownership and business rules on top of a ``TaskRepository``."""

    def __init__(self, task_repository: TaskRepository):
        self.task_repository = task_repository

    async def create_task(self, user_id: UUID, request: TaskCreate | Mapping[str, Any]) -> Task:
        request = parse_request(TaskCreate, request)
        _check_due_date(request.due_date)

        task = await self.task_repository.create(Task.from_request(request, user_id))
        logger.info("Created task %s for user %s", task.id, user_id)
        return task

    async def get_tasks(self, user_id: UUID, task_filter: TaskFilter | None = None) -> list[Task]:
        task_filter = task_filter or TaskFilter()
        only_status = task_filter.model_copy(update={"status": None}).is_empty()
        only_overdue = task_filter.model_copy(update={"overdue_only": False}).is_empty()
        only_search = task_filter.model_copy(update={"search_term": None}).is_empty()

        if task_filter.is_empty():
            return await self.task_repository.find_by_user(user_id)
        if only_status:
            return await self.task_repository.find_by_status(user_id, task_filter.status)
        if only_overdue:
            return await self.task_repository.find_overdue_by_user(user_id)
        if only_search:
            return await self.task_repository.search(user_id, task_filter.search_term)

        logger.debug("Filtering tasks for user %s in memory: %s", user_id, task_filter)
        now = utcnow()
        tasks = await self.task_repository.find_by_user(user_id)
        return [task for task in tasks if matches_filter(task, task_filter, now)]

    async def get_task(self, user_id: UUID, task_id: UUID) -> Task:
        task = await self.task_repository.find_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.user_id != user_id:
            logger.warning("User %s tried to access task %s owned by someone else", user_id, task_id)
            raise AccessDeniedError(task_id)
        return task

    async def update_task(
        self, user_id: UUID, task_id: UUID, updates: TaskUpdate | Mapping[str, Any]
    ) -> Task:
        updates = parse_request(TaskUpdate, updates)
        _check_due_date(updates.due_date)

        task = await self.task_repository.update(task_id, user_id, updates)
        logger.info("Updated task %s", task_id)
        return task

    async def delete_task(self, user_id: UUID, task_id: UUID) -> bool:
        deleted = await self.task_repository.delete(task_id, user_id)
        if deleted:
            logger.info("Deleted task %s", task_id)
        else:
            logger.warning("Task %s not found or not owned by user %s", task_id, user_id)
        return deleted

    async def _set_status(self, user_id: UUID, task_id: UUID, status: TaskStatus) -> Task:
        return await self.task_repository.update(task_id, user_id, TaskUpdate(status=status))

    async def complete_task(self, user_id: UUID, task_id: UUID) -> Task:
        return await self._set_status(user_id, task_id, TaskStatus.COMPLETED)

    async def uncomplete_task(self, user_id: UUID, task_id: UUID) -> Task:
        return await self._set_status(user_id, task_id, TaskStatus.PENDING)

    async def start_task(self, user_id: UUID, task_id: UUID) -> Task:
        return await self._set_status(user_id, task_id, TaskStatus.IN_PROGRESS)

    async def get_overdue_tasks(self, user_id: UUID) -> list[Task]:
        return await self.task_repository.find_overdue_by_user(user_id)

    async def search_tasks(self, user_id: UUID, term: str, limit: int | None = None) -> list[Task]:
        term = term.strip()
        if not term:
            return []
        tasks = await self.task_repository.search(user_id, term)
        if limit is not None:
            tasks = tasks[:limit]
        return tasks

    async def get_task_statistics(self, user_id: UUID) -> TaskStatistics:
        tasks = await self.task_repository.find_by_user(user_id)
        return calculate_statistics(tasks)

    # ── Bulk ────────────────────────────────────────────

    async def bulk_update_status(
        self, user_id: UUID, task_ids: Sequence[UUID], status: TaskStatus
    ) -> list[Task]:
        """Update each task in turn; fails only when every item failed."""
        updated: list[Task] = []
        failed = 0
        for task_id in task_ids:
            try:
                updated.append(await self._set_status(user_id, task_id, status))
            except TodoError as exc:
                logger.warning("Failed to update task %s: %s", task_id, exc)
                failed += 1

        if failed:
            if failed == len(task_ids):
                raise BulkOperationError(failed, len(task_ids))
            logger.warning("Bulk update partially failed: %d/%d operations failed", failed, len(task_ids))
        logger.info("Bulk update completed: %d/%d tasks updated", len(updated), len(task_ids))
        return updated

    async def bulk_delete_tasks(self, user_id: UUID, task_ids: Sequence[UUID]) -> int:
        deleted = 0
        failed = 0
        for task_id in task_ids:
            try:
                if await self.task_repository.delete(task_id, user_id):
                    deleted += 1
                else:
                    logger.warning("Task %s not found or not owned by user %s", task_id, user_id)
                    failed += 1
            except TodoError as exc:
                logger.error("Failed to delete task %s: %s", task_id, exc)
                failed += 1

        if failed and not deleted:
            raise BulkOperationError(failed, len(task_ids))
        logger.info("Bulk delete completed: %d/%d tasks deleted", deleted, len(task_ids))
        return deleted
