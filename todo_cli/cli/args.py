import argparse

from todo_cli import __version__

STATUS_CHOICES = ["pending", "in_progress", "in-progress", "completed"]
PRIORITY_CHOICES = ["low", "medium", "high"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="todo-cli",
        description="Personal TODO manager with user accounts",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # db
    db_parser = subparsers.add_parser("db", help="Database maintenance")
    db_sub = db_parser.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("init", help="Create the tables").set_defaults(handler="db_init")
    db_sub.add_parser("check", help="Check the database connection").set_defaults(handler="db_check")

    # auth
    auth_parser = subparsers.add_parser("auth", help="Authentication")
    auth_sub = auth_parser.add_subparsers(dest="auth_command", required=True)

    register_parser = auth_sub.add_parser("register", help="Create a new account")
    register_parser.add_argument("--username")
    register_parser.add_argument("--email")
    register_parser.set_defaults(handler="auth_register")

    login_parser = auth_sub.add_parser("login", help="Log in with username or email")
    login_parser.add_argument("identifier", nargs="?", help="Username or email")
    login_parser.set_defaults(handler="auth_login")

    auth_sub.add_parser("logout", help="End the current session").set_defaults(handler="auth_logout")
    auth_sub.add_parser("status", help="Show who is logged in").set_defaults(handler="auth_status")
    auth_sub.add_parser("refresh", help="Renew the session tokens").set_defaults(handler="auth_refresh")

    # account
    account_parser = subparsers.add_parser("account", help="Manage your account")
    account_sub = account_parser.add_subparsers(dest="account_command", required=True)
    account_sub.add_parser("show", help="Show your profile").set_defaults(handler="account_show")

    account_update = account_sub.add_parser("update", help="Change email and/or password")
    account_update.add_argument("--email")
    account_update.add_argument("--password", action="store_true", help="Prompt for a new password")
    account_update.set_defaults(handler="account_update")

    account_delete = account_sub.add_parser("delete", help="Delete your account and all its tasks")
    account_delete.add_argument("-f", "--force", action="store_true", help="Skip confirmation prompt")
    account_delete.set_defaults(handler="account_delete")

    # task
    task_parser = subparsers.add_parser("task", help="Task management")
    task_sub = task_parser.add_subparsers(dest="task_command", required=True)

    add_parser = task_sub.add_parser("add", help="Add a new task")
    add_parser.add_argument("title")
    add_parser.add_argument("-d", "--description")
    add_parser.add_argument("-p", "--priority", choices=PRIORITY_CHOICES, default="medium")
    add_parser.add_argument("--status", choices=STATUS_CHOICES, default="pending")
    add_parser.add_argument("--due", help="Due date (YYYY-MM-DD)")
    add_parser.set_defaults(handler="task_add")

    list_parser = task_sub.add_parser("list", help="List tasks with optional filtering")
    list_parser.add_argument("-s", "--status", choices=STATUS_CHOICES)
    list_parser.add_argument("-p", "--priority", choices=PRIORITY_CHOICES)
    list_parser.add_argument("--search", help="Search keyword")
    list_parser.add_argument("--overdue", action="store_true", help="Only overdue tasks")
    shortcut = list_parser.add_mutually_exclusive_group()
    shortcut.add_argument("-c", "--completed", action="store_true", help="Completed tasks only")
    shortcut.add_argument("--pending", action="store_true", help="Pending tasks only")
    list_parser.set_defaults(handler="task_list")

    show_parser = task_sub.add_parser("show", help="Show task details")
    show_parser.add_argument("id", help="Task id or unique id prefix")
    show_parser.set_defaults(handler="task_show")

    update_parser = task_sub.add_parser("update", help="Update an existing task")
    update_parser.add_argument("id", help="Task id or unique id prefix")
    update_parser.add_argument("-t", "--title")
    update_parser.add_argument("-d", "--description")
    update_parser.add_argument("-p", "--priority", choices=PRIORITY_CHOICES)
    update_parser.add_argument("-s", "--status", choices=STATUS_CHOICES)
    due = update_parser.add_mutually_exclusive_group()
    due.add_argument("--due", help="New due date (YYYY-MM-DD)")
    due.add_argument("--clear-due", action="store_true", help="Remove the due date")
    update_parser.add_argument("--clear-description", action="store_true")
    update_parser.set_defaults(handler="task_update")

    complete_parser = task_sub.add_parser("complete", help="Mark task(s) as completed")
    complete_parser.add_argument("ids", nargs="+", metavar="id")
    complete_parser.set_defaults(handler="task_complete")

    uncomplete_parser = task_sub.add_parser("uncomplete", help="Mark a task as pending again")
    uncomplete_parser.add_argument("id")
    uncomplete_parser.set_defaults(handler="task_uncomplete")

    start_parser = task_sub.add_parser("start", help="Mark a task as in progress")
    start_parser.add_argument("id")
    start_parser.set_defaults(handler="task_start")

    delete_parser = task_sub.add_parser("delete", help="Delete task(s)")
    delete_parser.add_argument("ids", nargs="+", metavar="id")
    delete_parser.add_argument("-f", "--force", action="store_true", help="Skip confirmation prompt")
    delete_parser.set_defaults(handler="task_delete")

    # search / stats
    search_parser = subparsers.add_parser("search", help="Search task titles and descriptions")
    search_parser.add_argument("query")
    search_parser.add_argument("-n", "--limit", type=int)
    search_parser.set_defaults(handler="search")

    subparsers.add_parser("stats", help="Show task statistics").set_defaults(handler="stats")

    return parser
