"""Storage contracts the services are written against.

``SqlAlchemyTaskRepository`` and ``SqlAlchemyUserRepository`` are the
production implementations; the test-suite drives the services through
in-memory fakes honouring the same ownership and uniqueness rules.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from todo_cli.errors import RepositoryError
from todo_cli.schemas.task import Task, TaskStatus, TaskUpdate
from todo_cli.schemas.user import User

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_errors(action: str):
    """Re-raise driver/ORM failures as ``RepositoryError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Failed to %s: %s", action, exc)
        raise RepositoryError(f"Failed to {action}") from exc


class TaskRepository(ABC):

    @abstractmethod
    async def create(self, task: Task) -> Task:
        ...

    @abstractmethod
    async def find_by_id(self, task_id: UUID) -> Task | None:
        ...

    @abstractmethod
    async def find_by_user(self, user_id: UUID) -> list[Task]:
        """All of the user's tasks, most recently updated first."""

    @abstractmethod
    async def find_overdue_by_user(self, user_id: UUID) -> list[Task]:
        """Unfinished tasks whose due date has passed, earliest due first."""

    @abstractmethod
    async def find_by_status(self, user_id: UUID, status: TaskStatus) -> list[Task]:
        ...

    @abstractmethod
    async def search(self, user_id: UUID, term: str) -> list[Task]:
        """Case-insensitive substring match on title or description."""

    @abstractmethod
    async def update(self, task_id: UUID, user_id: UUID, updates: TaskUpdate) -> Task:
        """Apply ``updates`` to the (id, owner) row.

        Raises ``TaskNotFoundError`` when no task with that id belongs to the user.
        """

    @abstractmethod
    async def delete(self, task_id: UUID, user_id: UUID) -> bool:
        ...

    @abstractmethod
    async def count_by_user(self, user_id: UUID) -> int:
        ...


class UserRepository(ABC):

    @abstractmethod
    async def create(self, user: User) -> User:
        """Store a new account.

        Raises ``UsernameExistsError`` or ``EmailExistsError`` on a duplicate.
        """

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> User | None:
        ...

    @abstractmethod
    async def find_by_username(self, username: str) -> User | None:
        ...

    @abstractmethod
    async def find_by_email(self, email: str) -> User | None:
        ...

    @abstractmethod
    async def update(self, user: User) -> User:
        ...

    @abstractmethod
    async def delete(self, user_id: UUID) -> bool:
        ...

    @abstractmethod
    async def username_exists(self, username: str) -> bool:
        ...

    @abstractmethod
    async def email_exists(self, email: str) -> bool:
        ...
