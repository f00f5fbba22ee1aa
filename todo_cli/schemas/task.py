from datetime import datetime
from enum import IntEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, field_validator, ValidationInfo

from todo_cli.utils.dates import as_utc, utcnow
from todo_cli.utils.sanitization import sanitize_optional, sanitize_string

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000


# ── Enums (stored as SMALLINT, values must stay stable) ─

class TaskStatus(IntEnum):
    PENDING = 0
    IN_PROGRESS = 1
    COMPLETED = 2

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @classmethod
    def parse(cls, raw: str) -> "TaskStatus":
        key = raw.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return _STATUS_ALIASES[key]
        except KeyError:
            raise ValueError(
                f"Invalid status '{raw}' (expected pending, in_progress or completed)"
            ) from None


class TaskPriority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, raw: str) -> "TaskPriority":
        try:
            return cls[raw.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Invalid priority '{raw}' (expected low, medium or high)"
            ) from None


_STATUS_LABELS = {
    TaskStatus.PENDING: "Pending",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.COMPLETED: "Completed",
}

_STATUS_ALIASES = {
    "pending": TaskStatus.PENDING,
    "in_progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "completed": TaskStatus.COMPLETED,
    "done": TaskStatus.COMPLETED,
}


# ── Requests ────────────────────────────────────────────

class TaskBase(BaseModel):
    """Validation shared by the create and update requests."""

    @field_validator("title", mode="before", check_fields=False)
    @classmethod
    def sanitize_title(cls, v):
        return sanitize_string(v)

    @field_validator("description", mode="before", check_fields=False)
    @classmethod
    def sanitize_description(cls, v):
        return sanitize_optional(v)

    @field_validator("status", "priority", mode="before", check_fields=False)
    @classmethod
    def parse_enum(cls, v, info: ValidationInfo):
        if isinstance(v, str) and not v.strip().isdigit():
            enum = TaskStatus if info.field_name == "status" else TaskPriority
            return enum.parse(v)
        return v

    @field_validator("title", check_fields=False)
    @classmethod
    def check_title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not v:
            raise ValueError("Title is required")
        if len(v) > TITLE_MAX_LENGTH:
            raise ValueError("Title must be 1-255 characters")
        return v

    @field_validator("description", check_fields=False)
    @classmethod
    def check_description(cls, v: str | None) -> str | None:
        if v is not None and len(v) > DESCRIPTION_MAX_LENGTH:
            raise ValueError("Description must be less than 1000 characters")
        return v

    @field_validator("due_date", check_fields=False)
    @classmethod
    def normalize_due_date(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class TaskCreate(TaskBase):
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None


class TaskUpdate(TaskBase):
    """Partial update; only fields explicitly set are applied.

    ``description`` and ``due_date`` may be set to ``None`` to clear them,
    a ``None`` title, status or priority means "leave unchanged".
    """

    title: str | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None


# ── Entity ──────────────────────────────────────────────

class Task(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None
    completed_at: datetime | None = None
    user_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("due_date", "completed_at", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    @classmethod
    def from_request(cls, request: TaskCreate, user_id: UUID) -> "Task":
        now = utcnow()
        return cls(
            id=uuid4(),
            title=request.title.strip(),
            description=sanitize_optional(request.description),
            status=request.status,
            priority=request.priority,
            due_date=request.due_date,
            completed_at=now if request.status == TaskStatus.COMPLETED else None,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )

    def apply_update(self, updates: TaskUpdate) -> bool:
        """Apply a partial update in place; returns whether anything changed."""
        provided = updates.model_fields_set
        now = utcnow()
        updated = False

        if updates.title is not None and updates.title != self.title:
            self.title = updates.title
            updated = True

        if "description" in provided and updates.description != self.description:
            self.description = updates.description
            updated = True

        if updates.status is not None and updates.status != self.status:
            self._move_to(updates.status, now)
            updated = True

        if updates.priority is not None and updates.priority != self.priority:
            self.priority = updates.priority
            updated = True

        if "due_date" in provided and updates.due_date != self.due_date:
            self.due_date = updates.due_date
            updated = True

        if updated:
            self.updated_at = now
        return updated

    def _move_to(self, status: TaskStatus, now: datetime) -> None:
        was_completed = self.status == TaskStatus.COMPLETED
        self.status = status
        if status == TaskStatus.COMPLETED:
            if not was_completed:
                self.completed_at = now
        else:
            self.completed_at = None

    # Guarded transitions: from any other state these do nothing.

    def complete(self) -> None:
        if self.status == TaskStatus.PENDING:
            now = utcnow()
            self.status = TaskStatus.COMPLETED
            self.completed_at = now
            self.updated_at = now

    def uncomplete(self) -> None:
        if self.status == TaskStatus.COMPLETED:
            self.status = TaskStatus.PENDING
            self.completed_at = None
            self.updated_at = utcnow()

    def set_in_process(self) -> None:
        if self.status == TaskStatus.PENDING:
            self.status = TaskStatus.IN_PROGRESS
            self.updated_at = utcnow()

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.due_date is None:
            return False
        return self.due_date < (now or utcnow())

    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_in_process(self) -> bool:
        return self.status == TaskStatus.IN_PROGRESS

    def days_until_due(self, now: datetime | None = None) -> int | None:
        if self.due_date is None:
            return None
        delta = self.due_date - (now or utcnow())
        return int(delta.total_seconds() / 86400)


# ── Queries ─────────────────────────────────────────────

class TaskFilter(BaseModel):
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    overdue_only: bool = False
    search_term: str | None = None

    @field_validator("search_term", mode="before")
    @classmethod
    def sanitize_search(cls, v):
        return sanitize_optional(v)

    def with_status(self, status: TaskStatus) -> "TaskFilter":
        return self.model_copy(update={"status": status})

    def with_priority(self, priority: TaskPriority) -> "TaskFilter":
        return self.model_copy(update={"priority": priority})

    def overdue(self) -> "TaskFilter":
        return self.model_copy(update={"overdue_only": True})

    def with_search(self, term: str) -> "TaskFilter":
        return self.model_copy(update={"search_term": sanitize_optional(term)})

    def is_empty(self) -> bool:
        return (
            self.status is None
            and self.priority is None
            and not self.overdue_only
            and self.search_term is None
        )


class TaskStatistics(BaseModel):
    total_tasks: int = 0
    pending_tasks: int = 0
    in_progress_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
