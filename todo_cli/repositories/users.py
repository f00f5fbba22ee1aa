import logging
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from todo_cli.errors import EmailExistsError, UserNotFoundError, UsernameExistsError
from todo_cli.models.user import User as UserModel
from todo_cli.repositories.base import UserRepository, storage_errors
from todo_cli.schemas.user import User

logger = logging.getLogger(__name__)


class SqlAlchemyUserRepository(UserRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _first(self, *criteria) -> User | None:
        async with self._session_factory() as db:
            result = await db.execute(select(UserModel).filter(*criteria))
            row = result.scalars().first()
            return User.model_validate(row) if row else None

    async def create(self, user: User) -> User:
        # the unique constraints decide; the conflicting column is looked up afterwards
        async with storage_errors("create user"):
            async with self._session_factory() as db:
                db.add(UserModel(**user.model_dump()))
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    conflict = await self._conflict_for(user)
                    raise conflict from None
        logger.info("Created user %s", user.username)
        return user

    async def _conflict_for(self, user: User):
        if await self.username_exists(user.username):
            return UsernameExistsError(user.username)
        return EmailExistsError(user.email)

    async def find_by_id(self, user_id: UUID) -> User | None:
        async with storage_errors("load user"):
            return await self._first(UserModel.id == user_id)

    async def find_by_username(self, username: str) -> User | None:
        async with storage_errors("load user"):
            return await self._first(UserModel.username == username)

    async def find_by_email(self, email: str) -> User | None:
        async with storage_errors("load user"):
            return await self._first(UserModel.email == email)

    async def update(self, user: User) -> User:
        async with storage_errors("update user"):
            async with self._session_factory() as db:
                result = await db.execute(select(UserModel).filter(UserModel.id == user.id))
                row = result.scalars().first()
                if row is None:
                    raise UserNotFoundError()

                row.email = user.email
                row.password_hash = user.password_hash
                row.updated_at = user.updated_at
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    raise EmailExistsError(user.email) from None
        return user

    async def delete(self, user_id: UUID) -> bool:
        # tasks go with the user through ON DELETE CASCADE
        async with storage_errors("delete user"):
            async with self._session_factory() as db:
                result = await db.execute(delete(UserModel).where(UserModel.id == user_id))
                await db.commit()
                return result.rowcount > 0

    async def username_exists(self, username: str) -> bool:
        async with storage_errors("check username"):
            return await self._first(UserModel.username == username) is not None

    async def email_exists(self, email: str) -> bool:
        async with storage_errors("check email"):
            return await self._first(UserModel.email == email) is not None
