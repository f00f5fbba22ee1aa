"""Command handlers: parse CLI input, call the services, print the results."""

import argparse
import getpass
import logging
import sys
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TextIO
from uuid import UUID

from todo_cli.database import Database
from todo_cli.errors import (
    AccessDeniedError,
    AuthenticationFailedError,
    InvalidTokenError,
    RepositoryError,
    SessionExpiredError,
    SessionNotFoundError,
    TaskNotFoundError,
    TodoError,
    ValidationError,
)
from todo_cli.schemas.task import TaskFilter, TaskPriority, TaskStatus
from todo_cli.schemas.user import UserResponse
from todo_cli.services.auth import AuthService
from todo_cli.services.tasks import TaskService
from todo_cli.services.users import UserService
from todo_cli.utils.dates import parse_due_date
from todo_cli.utils.formatting import (
    format_date,
    format_statistics,
    format_task_detail,
    format_task_table,
    short_id,
)

logger = logging.getLogger(__name__)


def describe_error(exc: TodoError) -> str:
    """One line for the terminal; auth failures never reveal which part was wrong."""
    if isinstance(exc, AuthenticationFailedError):
        return "Invalid username/email or password"
    if isinstance(exc, SessionNotFoundError):
        return "Not logged in. Run 'todo-cli auth login' first."
    if isinstance(exc, (SessionExpiredError, InvalidTokenError)):
        return "Session expired. Please log in again."
    if isinstance(exc, (TaskNotFoundError, AccessDeniedError)):
        return "Task not found"
    if isinstance(exc, RepositoryError):
        return f"Database error: {exc.message}"
    return exc.message


def _parse_due(raw: str) -> datetime:
    try:
        return parse_due_date(raw)
    except ValueError as exc:
        raise ValidationError("due_date", str(exc)) from None


class CliApp:
    def __init__(
        self,
        task_service: TaskService,
        user_service: UserService,
        auth_service: AuthService,
        database: Database | None = None,
        *,
        out: TextIO | None = None,
        err: TextIO | None = None,
        prompt: Callable[[str], str] = input,
        prompt_password: Callable[[str], str] = getpass.getpass,
    ):
        self.tasks = task_service
        self.users = user_service
        self.auth = auth_service
        self.database = database
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.prompt = prompt
        self.prompt_password = prompt_password

    def echo(self, text: str = "") -> None:
        print(text, file=self.out)

    async def run(self, args: argparse.Namespace) -> int:
        handler = getattr(self, f"cmd_{args.handler}")
        try:
            await handler(args)
        except TodoError as exc:
            logger.debug("Command %s failed", args.handler, exc_info=True)
            print(f"Error: {describe_error(exc)}", file=self.err)
            return 1
        return 0

    # ── helpers ─────────────────────────────────────────

    def _confirm(self, question: str) -> bool:
        return self.prompt(f"{question} [y/N]: ").strip().lower() in ("y", "yes")

    def _ask_new_password(self) -> str:
        password = self.prompt_password("Password: ")
        if self.prompt_password("Confirm password: ") != password:
            raise ValidationError("password", "Passwords do not match")
        return password

    async def _resolve_task_ids(self, user: UserResponse, raw_ids: Sequence[str]) -> list[UUID]:
        """Full UUIDs pass through; anything else is matched as an id prefix."""
        resolved = []
        known = None
        for raw in raw_ids:
            try:
                resolved.append(UUID(raw))
                continue
            except ValueError:
                pass
            if known is None:
                known = [task.id for task in await self.tasks.get_tasks(user.id)]
            prefix = raw.strip().lower()
            matches = [task_id for task_id in known if str(task_id).startswith(prefix)] if prefix else []
            if not matches:
                raise TaskNotFoundError()
            if len(matches) > 1:
                raise ValidationError("id", f"Ambiguous task id prefix '{raw}'")
            resolved.append(matches[0])
        return resolved

    async def _resolve_task_id(self, user: UserResponse, raw: str) -> UUID:
        return (await self._resolve_task_ids(user, [raw]))[0]

    # ── db ──────────────────────────────────────────────

    async def cmd_db_init(self, args: argparse.Namespace) -> None:
        await self.database.init_models()
        self.echo("Database initialized.")

    async def cmd_db_check(self, args: argparse.Namespace) -> None:
        if not await self.database.health_check():
            raise RepositoryError("connection check failed")
        self.echo("Database connection OK.")

    # ── auth ────────────────────────────────────────────

    async def cmd_auth_register(self, args: argparse.Namespace) -> None:
        username = args.username or self.prompt("Username: ")
        email = args.email or self.prompt("Email: ")
        password = self._ask_new_password()
        user = await self.users.register({"username": username, "email": email, "password": password})
        self.echo(f"Registered {user.username} <{user.email}>.")
        self.echo("Run 'todo-cli auth login' to start a session.")

    async def cmd_auth_login(self, args: argparse.Namespace) -> None:
        identifier = args.identifier or self.prompt("Username or email: ")
        password = self.prompt_password("Password: ")
        response = await self.auth.login(identifier, password)
        self.echo(f"Logged in as {response.user.username}.")
        self.echo(f"Session valid until {format_date(response.expires_at)}.")

    async def cmd_auth_logout(self, args: argparse.Namespace) -> None:
        await self.auth.logout()
        self.echo("Logged out.")

    async def cmd_auth_status(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_session()
        if user is None:
            self.echo("Not logged in.")
        else:
            self.echo(f"Logged in as {user.username} <{user.email}>.")

    async def cmd_auth_refresh(self, args: argparse.Namespace) -> None:
        response = await self.auth.refresh_current_session()
        self.echo(f"Session refreshed, valid until {format_date(response.expires_at)}.")

    # ── account ─────────────────────────────────────────

    async def cmd_account_show(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        self.echo(f"ID: {user.id}")
        self.echo(f"Username: {user.username}")
        self.echo(f"Email: {user.email}")
        self.echo(f"Created: {format_date(user.created_at)}")
        self.echo(f"Updated: {format_date(user.updated_at)}")

    async def cmd_account_update(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        updates = {}
        if args.email:
            updates["email"] = args.email
        if args.password:
            updates["password"] = self._ask_new_password()
        if not updates:
            raise ValidationError("", "Nothing to update (use --email and/or --password)")
        await self.users.update_profile(user.id, updates)
        self.echo("Profile updated.")

    async def cmd_account_delete(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        if not args.force and not self._confirm(f"Delete account '{user.username}' and all its tasks?"):
            self.echo("Cancelled.")
            return
        await self.users.delete_account(user.id)
        await self.auth.logout()
        self.echo(f"Account {user.username} deleted.")

    # ── tasks ───────────────────────────────────────────

    async def cmd_task_add(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        request = {
            "title": args.title,
            "description": args.description,
            "priority": args.priority,
            "status": args.status,
            "due_date": _parse_due(args.due) if args.due else None,
        }
        task = await self.tasks.create_task(user.id, request)
        self.echo(f"Created task {short_id(task)}: {task.title}")

    async def cmd_task_list(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        status = TaskStatus.parse(args.status) if args.status else None
        if args.completed:
            status = TaskStatus.COMPLETED
        elif args.pending:
            status = TaskStatus.PENDING
        task_filter = TaskFilter(
            status=status,
            priority=TaskPriority.parse(args.priority) if args.priority else None,
            overdue_only=args.overdue,
            search_term=args.search,
        )

        tasks = await self.tasks.get_tasks(user.id, task_filter)
        if not tasks:
            self.echo("No tasks found.")
            return
        self.echo(format_task_table(tasks))
        self.echo(f"\n{len(tasks)} task(s)")

    async def cmd_task_show(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        task = await self.tasks.get_task(user.id, await self._resolve_task_id(user, args.id))
        self.echo(format_task_detail(task))

    async def cmd_task_update(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        updates = {}
        if args.title is not None:
            updates["title"] = args.title
        if args.clear_description:
            updates["description"] = None
        elif args.description is not None:
            updates["description"] = args.description
        if args.priority:
            updates["priority"] = args.priority
        if args.status:
            updates["status"] = args.status
        if args.clear_due:
            updates["due_date"] = None
        elif args.due:
            updates["due_date"] = _parse_due(args.due)
        if not updates:
            raise ValidationError("", "Nothing to update")

        task_id = await self._resolve_task_id(user, args.id)
        task = await self.tasks.update_task(user.id, task_id, updates)
        self.echo("Task updated.")
        self.echo(format_task_detail(task))

    async def cmd_task_complete(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        task_ids = await self._resolve_task_ids(user, args.ids)
        if len(task_ids) == 1:
            task = await self.tasks.complete_task(user.id, task_ids[0])
            self.echo(f"Completed: {task.title}")
            return
        tasks = await self.tasks.bulk_update_status(user.id, task_ids, TaskStatus.COMPLETED)
        self.echo(f"Completed {len(tasks)} of {len(task_ids)} tasks.")

    async def cmd_task_uncomplete(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        task = await self.tasks.uncomplete_task(user.id, await self._resolve_task_id(user, args.id))
        self.echo(f"Marked as pending: {task.title}")

    async def cmd_task_start(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        task = await self.tasks.start_task(user.id, await self._resolve_task_id(user, args.id))
        self.echo(f"In progress: {task.title}")

    async def cmd_task_delete(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        task_ids = await self._resolve_task_ids(user, args.ids)
        if not args.force and not self._confirm(f"Delete {len(task_ids)} task(s)?"):
            self.echo("Cancelled.")
            return
        if len(task_ids) == 1:
            if not await self.tasks.delete_task(user.id, task_ids[0]):
                raise TaskNotFoundError(task_ids[0])
            self.echo("Task deleted.")
            return
        deleted = await self.tasks.bulk_delete_tasks(user.id, task_ids)
        self.echo(f"Deleted {deleted} of {len(task_ids)} tasks.")

    # ── search / stats ──────────────────────────────────

    async def cmd_search(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        tasks = await self.tasks.search_tasks(user.id, args.query, limit=args.limit)
        if not tasks:
            self.echo(f"No tasks match '{args.query}'.")
            return
        self.echo(format_task_table(tasks))

    async def cmd_stats(self, args: argparse.Namespace) -> None:
        user = await self.auth.get_current_user()
        stats = await self.tasks.get_task_statistics(user.id)
        self.echo(format_statistics(stats))
