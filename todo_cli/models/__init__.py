from todo_cli.models.user import User
from todo_cli.models.tasks import Task

__all__ = ["User", "Task"]
