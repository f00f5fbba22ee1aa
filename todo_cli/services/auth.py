"""Login state for the CLI.

A single session file (``<session_dir>/session.json``, mode 0600) holds the
current access and refresh tokens. It is created on login, rewritten on
refresh and on every validated access, and removed on logout or as soon as
it is found to be expired, invalid or unreadable.
"""

import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pydantic
from jose import JWTError

from todo_cli.config import Settings
from todo_cli.errors import (
    AuthenticationFailedError,
    InvalidTokenError,
    SessionExpiredError,
    SessionNotFoundError,
    TodoError,
    TokenCreationError,
    UserNotFoundError,
)
from todo_cli.schemas.user import (
    LoginResponse,
    Session,
    TokenClaims,
    TokenRefreshResponse,
    UserResponse,
)
from todo_cli.services.users import UserService
from todo_cli.utils import security
from todo_cli.utils.dates import utcnow

logger = logging.getLogger(__name__)

SESSION_FILE_NAME = "session.json"
DEFAULT_SESSION_DIR = ".todo-cli"


class AuthService:
    def __init__(
        self,
        user_service: UserService,
        jwt_secret: str,
        session_dir: str | Path | None = None,
        token_expiry: timedelta = timedelta(hours=24),
        refresh_token_expiry: timedelta = timedelta(days=30),
        algorithm: str = "HS256",
    ):
        self.user_service = user_service
        self._jwt_secret = jwt_secret
        self._algorithm = algorithm
        self._session_dir = Path(session_dir) if session_dir else Path.cwd() / DEFAULT_SESSION_DIR
        self.token_expiry = token_expiry
        self.refresh_token_expiry = refresh_token_expiry

    @classmethod
    def from_settings(cls, user_service: UserService, settings: Settings) -> "AuthService":
        return cls(
            user_service,
            settings.JWT_SECRET,
            session_dir=settings.SESSION_DIR,
            token_expiry=timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
            refresh_token_expiry=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            algorithm=settings.ALGORITHM,
        )

    @property
    def session_file(self) -> Path:
        return self._session_dir / SESSION_FILE_NAME

    # ── Public operations ───────────────────────────────

    async def login(self, identifier: str, password: str) -> LoginResponse:
        logger.info("Login attempt for %s", identifier)
        try:
            user = await self.user_service.authenticate(identifier, password)
        except (AuthenticationFailedError, UserNotFoundError):
            # unknown user and wrong password look the same to the caller
            raise AuthenticationFailedError() from None

        token, refresh_token, expires_at = self._generate_tokens(user.id, user.username, user.email)
        now = utcnow()
        self._save_session(Session(
            user_id=user.id,
            username=user.username,
            email=user.email,
            token=token,
            refresh_token=refresh_token,
            created_at=now,
            expires_at=expires_at,
            last_accessed=now,
        ))

        logger.info("User %s logged in", user.username)
        return LoginResponse(user=user, token=token, refresh_token=refresh_token, expires_at=expires_at)

    async def logout(self) -> None:
        self.session_file.unlink(missing_ok=True)
        logger.info("Session cleared")

    async def validate_token(self, token: str) -> UserResponse:
        claims = self._decode_token(token)
        try:
            user_id = UUID(claims.sub)
        except ValueError:
            raise InvalidTokenError() from None

        # display fields come from the store, not from the claims
        try:
            return await self.user_service.get_profile(user_id)
        except UserNotFoundError:
            logger.warning("Token subject %s no longer exists", user_id)
            raise InvalidTokenError() from None

    async def refresh_token(self, refresh_token: str) -> TokenRefreshResponse:
        session = self._load_session()

        if session.refresh_token != refresh_token:
            logger.warning("Refresh token does not match the stored session")
            raise InvalidTokenError()

        if session.is_expired():
            logger.warning("Refresh token expired for %s", session.username)
            await self.logout()
            raise SessionExpiredError()

        token, new_refresh_token, expires_at = self._generate_tokens(
            session.user_id, session.username, session.email
        )
        session.token = token
        session.refresh_token = new_refresh_token
        session.expires_at = expires_at
        session.last_accessed = utcnow()
        self._save_session(session)

        logger.info("Tokens refreshed for %s", session.username)
        return TokenRefreshResponse(token=token, refresh_token=new_refresh_token, expires_at=expires_at)

    async def refresh_current_session(self) -> TokenRefreshResponse:
        """Refresh using the token stored in the session file."""
        session = self._load_session()
        return await self.refresh_token(session.refresh_token)

    async def get_current_session(self) -> UserResponse | None:
        """The logged-in user, or ``None``; a stale session is removed on the way."""
        try:
            session = self._load_session()
        except SessionNotFoundError:
            return None

        if session.is_expired():
            logger.debug("Session expired, clearing it")
            await self.logout()
            return None

        try:
            user = await self.validate_token(session.token)
        except TodoError as exc:
            logger.warning("Session could not be revalidated (%s), clearing session", exc)
            await self.logout()
            return None

        session.last_accessed = utcnow()
        self._save_session(session)
        return user

    async def is_authenticated(self) -> bool:
        return await self.get_current_session() is not None

    async def get_current_user(self) -> UserResponse:
        user = await self.get_current_session()
        if user is None:
            raise SessionNotFoundError()
        return user

    # ── Tokens ──────────────────────────────────────────

    def _mint(self, user_id: UUID, username: str, email: str, now: datetime, lifetime: timedelta) -> str:
        claims = TokenClaims(
            sub=str(user_id),
            username=username,
            email=email,
            iat=int(now.timestamp()),
            exp=int((now + lifetime).timestamp()),
            jti=str(uuid4()),
        )
        try:
            return security.encode_token(claims.model_dump(), self._jwt_secret, self._algorithm)
        except JWTError as exc:
            raise TokenCreationError(f"Token creation failed: {exc}") from exc

    def _generate_tokens(self, user_id: UUID, username: str, email: str) -> tuple[str, str, datetime]:
        """Access token, refresh token and the refresh token's expiry."""
        now = utcnow()
        token = self._mint(user_id, username, email, now, self.token_expiry)
        refresh_token = self._mint(user_id, username, email, now, self.refresh_token_expiry)
        return token, refresh_token, now + self.refresh_token_expiry

    def _decode_token(self, token: str) -> TokenClaims:
        try:
            payload = security.decode_token(token, self._jwt_secret, self._algorithm)
            return TokenClaims.model_validate(payload)
        except (JWTError, pydantic.ValidationError) as exc:
            logger.debug("Token decode failed: %s", exc)
            raise InvalidTokenError() from None

    # ── Session file ────────────────────────────────────

    def _save_session(self, session: Session) -> None:
        self._session_dir.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.session_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # O_CREAT's mode does not apply to a file that already existed
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(session.model_dump_json(indent=2))
        logger.debug("Session saved to %s", self.session_file)

    def _load_session(self) -> Session:
        if not self.session_file.exists():
            raise SessionNotFoundError()
        try:
            session = Session.model_validate_json(self.session_file.read_text(encoding="utf-8"))
        except (OSError, pydantic.ValidationError) as exc:
            logger.warning("Discarding unreadable session file %s: %s", self.session_file, exc)
            self.session_file.unlink(missing_ok=True)
            raise SessionNotFoundError() from exc
        logger.debug("Session loaded for %s", session.username)
        return session
