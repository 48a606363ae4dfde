"""User store: lookups for login and creation for registration."""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import hash_password
from app.core.errors import EmailAlreadyRegistered, StoreUnavailable
from app.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_email(self, email: str) -> User | None:
        try:
            r = await self._session.execute(select(User).where(User.email == normalize_email(email)))
        except SQLAlchemyError as e:
            logger.error("User lookup by email failed: %s", type(e).__name__)
            raise StoreUnavailable() from e
        return r.scalar_one_or_none()

    async def get_by_id(self, user_id: int | str) -> User | None:
        try:
            uid = int(user_id)
        except (TypeError, ValueError):
            return None
        try:
            r = await self._session.execute(select(User).where(User.id == uid))
        except SQLAlchemyError as e:
            logger.error("User lookup by id failed: %s", type(e).__name__)
            raise StoreUnavailable() from e
        return r.scalar_one_or_none()

    async def create(self, email: str, password: str, name: str | None = None) -> User:
        email = normalize_email(email)
        if await self.get_by_email(email) is not None:
            raise EmailAlreadyRegistered()
        password_hash = await asyncio.to_thread(hash_password, password)
        user = User(email=email, password_hash=password_hash, name=name)
        try:
            self._session.add(user)
            await self._session.flush()
            await self._session.refresh(user)
        except IntegrityError as e:
            logger.warning("Register IntegrityError for duplicate email")
            await self._session.rollback()
            raise EmailAlreadyRegistered() from e
        except SQLAlchemyError as e:
            logger.exception("Register failed: %s", e)
            raise StoreUnavailable() from e
        return user
