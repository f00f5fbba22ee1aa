from collections.abc import Sequence
from datetime import datetime

from todo_cli.schemas.task import Task, TaskStatistics

TITLE_COLUMN_WIDTH = 30
TABLE_HEADERS = ("ID", "Title", "Status", "Priority", "Due Date", "Created")


def format_date(dt: datetime) -> str:
    """Full timestamp in the machine's local time zone."""
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_date_short(dt: datetime) -> str:
    return dt.astimezone().strftime("%m/%d")


def short_id(task: Task) -> str:
    return str(task.id)[:8]


def _truncate(text: str, width: int = TITLE_COLUMN_WIDTH) -> str:
    if len(text) > width:
        return text[:width - 3] + "..."
    return text


def format_task_table(tasks: Sequence[Task]) -> str:
    if not tasks:
        return ""

    rows = [
        (
            short_id(task),
            _truncate(task.title),
            task.status.label,
            task.priority.label,
            format_date_short(task.due_date) if task.due_date else "-",
            format_date_short(task.created_at),
        )
        for task in tasks
    ]
    widths = [
        max(len(header), *(len(row[i]) for row in rows))
        for i, header in enumerate(TABLE_HEADERS)
    ]

    def render(cells) -> str:
        return " | ".join(cell.ljust(width) for cell, width in zip(cells, widths)).rstrip()

    lines = [render(TABLE_HEADERS), "-+-".join("-" * width for width in widths)]
    lines.extend(render(row) for row in rows)
    return "\n".join(lines)


def _describe_due(task: Task) -> str:
    text = format_date(task.due_date)
    if task.is_completed():
        return text
    if task.is_overdue():
        return f"{text} (overdue)"
    days = task.days_until_due()
    if days == 0:
        return f"{text} (due today)"
    return f"{text} (in {days} day{'s' if days != 1 else ''})"


def format_task_detail(task: Task) -> str:
    lines = [
        f"ID: {task.id}",
        f"Title: {task.title}",
    ]
    if task.description:
        lines.append(f"Description: {task.description}")
    lines.append(f"Status: {task.status.label}")
    lines.append(f"Priority: {task.priority.label}")
    if task.due_date:
        lines.append(f"Due Date: {_describe_due(task)}")
    if task.completed_at:
        lines.append(f"Completed At: {format_date(task.completed_at)}")
    lines.append(f"Created: {format_date(task.created_at)}")
    lines.append(f"Updated: {format_date(task.updated_at)}")
    return "\n".join(lines)


def format_statistics(stats: TaskStatistics) -> str:
    if stats.total_tasks:
        rate = stats.completed_tasks / stats.total_tasks * 100
    else:
        rate = 0.0
    return "\n".join([
        f"Total tasks:  {stats.total_tasks}",
        f"Pending:      {stats.pending_tasks}",
        f"In progress:  {stats.in_progress_tasks}",
        f"Completed:    {stats.completed_tasks}",
        f"Overdue:      {stats.overdue_tasks}",
        f"Completion:   {rate:.1f}%",
    ])
