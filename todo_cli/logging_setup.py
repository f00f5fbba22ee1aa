import logging
import sys
from pathlib import Path

LOG_FILE_NAME = "todo-cli.log"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the terminal readable:
    - todo_cli logs pass (subject to the handler level)
    - SQLAlchemy, asyncpg and other third-party loggers only at ERROR+
    - captured Python warnings only at ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "todo_cli" or record.name.startswith("todo_cli."):
            return True
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".todo-cli",
    console_level: int | str = logging.WARNING,
    file_level: int | str = logging.DEBUG,
    log_to_file: bool = True,
) -> None:
    """
    Configure the root logger once per process:
    - stderr handler, filtered, at ``console_level``
    - file handler writing ``<log_dir>/todo-cli.log`` at ``file_level``
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    if log_to_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_dir / LOG_FILE_NAME), encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    logging.captureWarnings(True)

    # SQL echo is only useful when asked for explicitly
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
