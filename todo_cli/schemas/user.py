import re
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, SecretStr, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from todo_cli.utils.dates import as_utc, utcnow
from todo_cli.utils.sanitization import sanitize_string
from todo_cli.utils import security

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

_email_adapter = TypeAdapter(EmailStr)


def check_password_policy(password: SecretStr | None) -> SecretStr | None:
    if password is None:
        return None
    raw = password.get_secret_value()
    if not PASSWORD_MIN_LENGTH <= len(raw) <= PASSWORD_MAX_LENGTH:
        raise ValueError("Password must be 8-128 characters")
    if not any(c.isalpha() for c in raw) or not any(c.isdigit() for c in raw):
        raise ValueError("Password must contain at least one letter and one number")
    return password


def normalize_email(value: str) -> str | None:
    """The form registration stores for ``value``, or ``None`` if it is not an email."""
    try:
        return _email_adapter.validate_python(sanitize_string(value))
    except PydanticValidationError:
        return None


class UserBase(BaseModel):
    username: str
    email: EmailStr

    @field_validator("username", "email", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not 3 <= len(v) <= 50:
            raise ValueError("Username must be 3-50 characters")
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class UserCreate(UserBase):
    password: SecretStr

    @field_validator("password")
    @classmethod
    def check_password(cls, v: SecretStr) -> SecretStr:
        return check_password_policy(v)


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    password: SecretStr | None = None

    @field_validator("email", mode="before")
    @classmethod
    def sanitize(cls, v):
        return sanitize_string(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: SecretStr | None) -> SecretStr | None:
        return check_password_policy(v)


class UserResponse(UserBase):
    """Public view of an account; never carries the password hash."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class User(UserBase):
    id: UUID
    password_hash: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)

    def __repr__(self) -> str:
        return f"User(id={self.id!s}, username={self.username!r})"

    @classmethod
    def from_registration(cls, request: UserCreate) -> "User":
        now = utcnow()
        return cls(
            id=uuid4(),
            username=request.username,
            email=request.email,
            password_hash=security.get_password_hash(request.password.get_secret_value()),
            created_at=now,
            updated_at=now,
        )

    def verify_password(self, password: str) -> bool:
        return security.verify_password(password, self.password_hash)

    def apply_update(self, updates: UserUpdate) -> bool:
        updated = False
        if updates.email is not None and updates.email != self.email:
            self.email = updates.email
            updated = True
        if updates.password is not None:
            self.password_hash = security.get_password_hash(updates.password.get_secret_value())
            updated = True
        if updated:
            self.updated_at = utcnow()
        return updated

    def to_response(self) -> UserResponse:
        return UserResponse(
            id=self.id,
            username=self.username,
            email=self.email,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


# ── Tokens & sessions ───────────────────────────────────

class TokenClaims(BaseModel):
    sub: str
    username: str
    email: str
    iat: int
    exp: int
    jti: str


class Session(BaseModel):
    """The single on-disk login record."""

    user_id: UUID
    username: str
    email: str
    token: str
    refresh_token: str
    created_at: datetime
    expires_at: datetime
    last_accessed: datetime

    @field_validator("created_at", "expires_at", "last_accessed")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or utcnow())


class LoginResponse(BaseModel):
    user: UserResponse
    token: str
    refresh_token: str
    expires_at: datetime


class TokenRefreshResponse(BaseModel):
    token: str
    refresh_token: str
    expires_at: datetime
