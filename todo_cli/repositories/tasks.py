from uuid import UUID

from sqlalchemy import func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from todo_cli.errors import TaskNotFoundError
from todo_cli.models.tasks import Task as TaskModel
from todo_cli.repositories.base import TaskRepository, storage_errors
from todo_cli.schemas.task import Task, TaskStatus, TaskUpdate
from todo_cli.utils.dates import utcnow


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _copy_to_model(task: Task, row: TaskModel) -> None:
    row.title = task.title
    row.description = task.description
    row.status = int(task.status)
    row.priority = int(task.priority)
    row.due_date = task.due_date
    row.completed_at = task.completed_at
    row.updated_at = task.updated_at


class SqlAlchemyTaskRepository(TaskRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _all(self, stmt) -> list[Task]:
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [Task.model_validate(row) for row in result.scalars().all()]

    async def create(self, task: Task) -> Task:
        async with storage_errors("create task"):
            async with self._session_factory() as db:
                row = TaskModel(
                    id=task.id,
                    user_id=task.user_id,
                    created_at=task.created_at,
                )
                _copy_to_model(task, row)
                db.add(row)
                await db.commit()
                return Task.model_validate(row)

    async def find_by_id(self, task_id: UUID) -> Task | None:
        async with storage_errors("load task"):
            async with self._session_factory() as db:
                result = await db.execute(select(TaskModel).filter(TaskModel.id == task_id))
                row = result.scalars().first()
                return Task.model_validate(row) if row else None

    async def find_by_user(self, user_id: UUID) -> list[Task]:
        async with storage_errors("list tasks"):
            return await self._all(
                select(TaskModel)
                .filter(TaskModel.user_id == user_id)
                .order_by(TaskModel.updated_at.desc())
            )

    async def find_overdue_by_user(self, user_id: UUID) -> list[Task]:
        async with storage_errors("list overdue tasks"):
            return await self._all(
                select(TaskModel)
                .filter(
                    TaskModel.user_id == user_id,
                    TaskModel.due_date.is_not(None),
                    TaskModel.due_date < utcnow(),
                    TaskModel.status != int(TaskStatus.COMPLETED),
                )
                .order_by(TaskModel.due_date.asc())
            )

    async def find_by_status(self, user_id: UUID, status: TaskStatus) -> list[Task]:
        async with storage_errors("list tasks by status"):
            return await self._all(
                select(TaskModel)
                .filter(TaskModel.user_id == user_id, TaskModel.status == int(status))
                .order_by(TaskModel.updated_at.desc())
            )

    async def search(self, user_id: UUID, term: str) -> list[Task]:
        pattern = f"%{_escape_like(term)}%"
        async with storage_errors("search tasks"):
            return await self._all(
                select(TaskModel)
                .filter(
                    TaskModel.user_id == user_id,
                    or_(
                        TaskModel.title.ilike(pattern, escape="\\"),
                        TaskModel.description.ilike(pattern, escape="\\"),
                    ),
                )
                .order_by(TaskModel.updated_at.desc())
            )

    async def update(self, task_id: UUID, user_id: UUID, updates: TaskUpdate) -> Task:
        async with storage_errors("update task"):
            async with self._session_factory() as db:
                result = await db.execute(
                    select(TaskModel).filter(TaskModel.id == task_id, TaskModel.user_id == user_id)
                )
                row = result.scalars().first()
                if row is None:
                    raise TaskNotFoundError(task_id)

                task = Task.model_validate(row)
                if task.apply_update(updates):
                    _copy_to_model(task, row)
                    await db.commit()
                return task

    async def delete(self, task_id: UUID, user_id: UUID) -> bool:
        async with storage_errors("delete task"):
            async with self._session_factory() as db:
                result = await db.execute(
                    delete(TaskModel).where(TaskModel.id == task_id, TaskModel.user_id == user_id)
                )
                await db.commit()
                return result.rowcount > 0

    async def count_by_user(self, user_id: UUID) -> int:
        async with storage_errors("count tasks"):
            async with self._session_factory() as db:
                result = await db.execute(
                    select(func.count()).select_from(TaskModel).filter(TaskModel.user_id == user_id)
                )
                return result.scalar_one()
