import asyncio
import logging
import sys

from todo_cli.cli.args import build_parser
from todo_cli.cli.commands import CliApp
from todo_cli.config import Settings, get_settings
from todo_cli.database import Database
from todo_cli.errors import ConfigError
from todo_cli.logging_setup import setup_logging
from todo_cli.repositories.tasks import SqlAlchemyTaskRepository
from todo_cli.repositories.users import SqlAlchemyUserRepository
from todo_cli.services.auth import AuthService
from todo_cli.services.tasks import TaskService
from todo_cli.services.users import UserService

logger = logging.getLogger(__name__)


def build_app(database: Database, settings: Settings) -> CliApp:
    user_service = UserService(SqlAlchemyUserRepository(database.session_factory))
    task_service = TaskService(SqlAlchemyTaskRepository(database.session_factory))
    auth_service = AuthService.from_settings(user_service, settings)
    return CliApp(task_service, user_service, auth_service, database=database)


async def run(args, settings: Settings) -> int:
    try:
        database = Database.from_settings(settings)
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 1

    try:
        return await build_app(database, settings).run(args)
    finally:
        await database.dispose()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(
        log_dir=settings.SESSION_DIR,
        console_level=logging.DEBUG if args.verbose else settings.LOG_LEVEL.upper(),
    )

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130
    except Exception:
        logger.exception("Unexpected error running %s", args.handler)
        print(f"Unexpected error, see {settings.SESSION_DIR}/todo-cli.log for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
