"""Exception hierarchy shared by the services, repositories and the CLI.

Every expected failure raised by the core derives from ``TodoError`` so the
presentation layer can turn it into a short message without crashing.
"""

from uuid import UUID

import pydantic


class TodoError(Exception):
    message = "Unexpected error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigError(TodoError):
    message = "Invalid configuration"


class ValidationError(TodoError):
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)
        self.reason = message

    @classmethod
    def from_pydantic(cls, exc: pydantic.ValidationError) -> "ValidationError":
        errors = exc.errors()
        if not errors:
            return cls("", "Invalid input")
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid value")
        # pydantic prefixes custom ValueError messages
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        return cls(field, message)


# ── Lookups ─────────────────────────────────────────────

class NotFoundError(TodoError):
    message = "Not found"


class TaskNotFoundError(NotFoundError):
    def __init__(self, task_id: UUID | None = None):
        self.task_id = task_id
        super().__init__("Task not found")


class UserNotFoundError(NotFoundError):
    message = "User not found"


class AccessDeniedError(TodoError):
    def __init__(self, task_id: UUID | None = None):
        self.task_id = task_id
        super().__init__("Task access denied for user")


# ── Uniqueness ──────────────────────────────────────────

class ConflictError(TodoError):
    message = "Already exists"


class UsernameExistsError(ConflictError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username already exists: {username}")


class EmailExistsError(ConflictError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email already exists: {email}")


# ── Authentication ──────────────────────────────────────

class AuthError(TodoError):
    message = "Authentication error"


class AuthenticationFailedError(AuthError):
    message = "Authentication failed: invalid credentials"


class InvalidTokenError(AuthError):
    message = "Invalid or expired token"


class SessionNotFoundError(AuthError):
    message = "Session not found"


class SessionExpiredError(AuthError):
    message = "Session expired"


class TokenCreationError(AuthError):
    message = "Token creation failed"


# ── Bulk operations ─────────────────────────────────────

class BulkOperationError(TodoError):
    def __init__(self, failed_count: int, total_count: int):
        self.failed_count = failed_count
        self.total_count = total_count
        super().__init__(
            f"Bulk operation failed: {failed_count} out of {total_count} operations failed"
        )


# ── Storage ─────────────────────────────────────────────

class RepositoryError(TodoError):
    message = "Storage error"
