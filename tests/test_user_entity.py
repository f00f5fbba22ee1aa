# tests/test_user_entity.py

from __future__ import annotations

import pydantic
import pytest

from todo_cli.schemas.user import User, UserCreate, UserUpdate
from todo_cli.utils.security import get_password_hash, verify_password


def _request(**overrides) -> UserCreate:
    data = {"username": "alice", "email": "alice@example.com", "password": "password1"}
    data.update(overrides)
    return UserCreate(**data)


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"username": "al"}, "username"),
        ({"username": "a" * 51}, "username"),
        ({"username": "alice smith"}, "username"),
        ({"username": "alice-1"}, "username"),
        ({"email": "not-an-email"}, "email"),
        ({"password": "short1"}, "password"),
        ({"password": "p" * 127 + "1" * 2}, "password"),
        ({"password": "onlyletters"}, "password"),
        ({"password": "12345678"}, "password"),
    ],
)
def test_registration_request_validation(overrides: dict, field: str) -> None:
    with pytest.raises(pydantic.ValidationError) as excinfo:
        _request(**overrides)
    assert excinfo.value.errors()[0]["loc"] == (field,)


def test_registration_accepts_valid_shapes() -> None:
    request = _request(username=" alice_01 ", password="a" * 127 + "1")
    assert request.username == "alice_01"


def test_password_never_appears_in_repr() -> None:
    request = _request()
    assert "password1" not in repr(request)
    assert "password1" not in str(request.model_dump())


def test_from_registration_hashes_password() -> None:
    user = User.from_registration(_request())

    assert user.password_hash != "password1"
    assert user.password_hash.startswith("$2")
    assert user.verify_password("password1")
    assert not user.verify_password("password2")
    assert user.created_at == user.updated_at


def test_verify_password_tolerates_garbage_hash() -> None:
    assert verify_password("password1", "not-a-bcrypt-hash") is False


def test_long_passwords_are_hashed_consistently() -> None:
    # only the first 72 bytes take part in bcrypt
    hashed = get_password_hash("x" * 100, rounds=4)
    assert verify_password("x" * 100, hashed)


def test_public_view_strips_password_hash() -> None:
    user = User.from_registration(_request())
    public = user.to_response()

    assert "password_hash" not in public.model_dump()
    assert public.id == user.id
    assert public.username == "alice"
    assert public.email == "alice@example.com"


def test_apply_update_rehashes_password_and_changes_email() -> None:
    user = User.from_registration(_request())
    old_hash = user.password_hash

    assert user.apply_update(UserUpdate(email="alice@new.example.com", password="newpass99"))
    assert user.email == "alice@new.example.com"
    assert user.password_hash != old_hash
    assert user.verify_password("newpass99")
    assert not user.apply_update(UserUpdate())


def test_user_update_validates_password_policy() -> None:
    with pytest.raises(pydantic.ValidationError):
        UserUpdate(password="short")
