import logging
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from todo_cli.errors import (
    AuthenticationFailedError,
    EmailExistsError,
    UserNotFoundError,
    UsernameExistsError,
)
from todo_cli.repositories.base import UserRepository
from todo_cli.schemas.user import User, UserCreate, UserResponse, UserUpdate, normalize_email
from todo_cli.utils.validation import parse_request

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository

    async def register(self, request: UserCreate | Mapping[str, Any]) -> UserResponse:
        request = parse_request(UserCreate, request)
        logger.info("Registering user %s", request.username)

        if await self.user_repository.username_exists(request.username):
            raise UsernameExistsError(request.username)
        if await self.user_repository.email_exists(request.email):
            raise EmailExistsError(request.email)

        user = await self.user_repository.create(User.from_registration(request))
        logger.info("Registered user %s with id %s", user.username, user.id)
        return user.to_response()

    async def authenticate(self, identifier: str, password: str) -> UserResponse:
        """Resolve ``identifier`` as a username, then as an email, and check the password."""
        identifier = identifier.strip()
        if not identifier or not password:
            logger.warning("Authentication failed: empty credentials")
            raise AuthenticationFailedError()

        user = await self._find_by_identifier(identifier)
        if not user.verify_password(password):
            logger.warning("Authentication failed: bad password for %s", identifier)
            raise AuthenticationFailedError()

        logger.info("Authenticated user %s", user.username)
        return user.to_response()

    async def _find_by_identifier(self, identifier: str) -> User:
        user = await self.user_repository.find_by_username(identifier)
        if user is None:
            # stored emails went through EmailStr, which lowercases the domain
            email = normalize_email(identifier)
            if email is not None:
                user = await self.user_repository.find_by_email(email)
        if user is None:
            raise UserNotFoundError()
        return user

    async def get_profile(self, user_id: UUID) -> UserResponse:
        user = await self.user_repository.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user.to_response()

    async def update_profile(self, user_id: UUID, updates: UserUpdate | Mapping[str, Any]) -> UserResponse:
        updates = parse_request(UserUpdate, updates)
        user = await self.user_repository.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()

        if updates.email is not None and updates.email != user.email:
            if await self.user_repository.email_exists(updates.email):
                raise EmailExistsError(updates.email)

        if user.apply_update(updates):
            user = await self.user_repository.update(user)
            logger.info("Updated profile for user %s", user.username)
        return user.to_response()

    async def delete_account(self, user_id: UUID) -> bool:
        deleted = await self.user_repository.delete(user_id)
        if deleted:
            logger.info("Deleted user account %s", user_id)
        else:
            logger.warning("User account %s not found for deletion", user_id)
        return deleted

    async def username_exists(self, username: str) -> bool:
        return await self.user_repository.username_exists(username)

    async def email_exists(self, email: str) -> bool:
        return await self.user_repository.email_exists(email)
