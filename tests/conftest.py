# tests/conftest.py

from __future__ import annotations

import os

# Settings are read at import time; keep hashing cheap and the config local.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("APP_ENV", "test")

from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from todo_cli.schemas.user import UserCreate, UserResponse  # noqa: E402
from todo_cli.services.auth import AuthService  # noqa: E402
from todo_cli.services.tasks import TaskService  # noqa: E402
from todo_cli.services.users import UserService  # noqa: E402

from .fakes import (  # noqa: E402
    ALICE_PASSWORD,
    BOB_PASSWORD,
    JWT_SECRET,
    FakeTaskRepository,
    FakeUserRepository,
)


@pytest.fixture()
def user_repo() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture()
def task_repo() -> FakeTaskRepository:
    return FakeTaskRepository()


@pytest.fixture()
def user_service(user_repo: FakeUserRepository) -> UserService:
    return UserService(user_repo)


@pytest.fixture()
def task_service(task_repo: FakeTaskRepository) -> TaskService:
    return TaskService(task_repo)


@pytest.fixture()
def session_dir(tmp_path: Path) -> Path:
    return tmp_path / ".todo-cli"


@pytest.fixture()
def auth_service(user_service: UserService, session_dir: Path) -> AuthService:
    return AuthService(user_service, JWT_SECRET, session_dir=session_dir)


@pytest_asyncio.fixture()
async def alice(user_service: UserService) -> UserResponse:
    return await user_service.register(
        UserCreate(username="alice", email="alice@example.com", password=ALICE_PASSWORD)
    )


@pytest_asyncio.fixture()
async def bob(user_service: UserService) -> UserResponse:
    return await user_service.register(
        UserCreate(username="bob", email="bob@example.com", password=BOB_PASSWORD)
    )
