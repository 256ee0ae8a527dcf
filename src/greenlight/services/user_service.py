"""User service — account persistence.

Updates follow the same optimistic protocol as movies: the UPDATE is
conditioned on the version the caller read, bumps it by one and returns the
new value. No returned row means someone else got there first.
"""

from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from greenlight.db.engine import bounded
from greenlight.db.models import User
from greenlight.errors import EditConflictError

_UPDATABLE = {"name", "password_hash", "activated"}


class DuplicateEmailError(Exception):
    """Raised when the email is already taken (case-insensitively)."""
    pass


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(
        self, name: str, email: str, password_hash: bytes, activated: bool = False
    ) -> User:
        user = User(
            name=name,
            email=email,
            password_hash=password_hash,
            activated=activated,
        )
        self.db.add(user)
        try:
            await bounded(self.db.commit())
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateEmailError(email) from e
        await bounded(self.db.refresh(user))
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await bounded(
            self.db.execute(
                select(User).where(func.lower(User.email) == email.lower())
            )
        )
        return result.scalars().first()

    async def update(self, user: User, **fields: Any) -> User:
        """Apply fields to user if its row is still at user.version.

        Raises EditConflictError when the row changed or vanished since it
        was read. Email is fixed at registration and is not updatable.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise TypeError(f"cannot update user fields: {sorted(unknown)}")

        stmt = (
            update(User)
            .where(User.id == user.id, User.version == user.version)
            .values(**fields, version=User.version + 1)
            .returning(User.version)
            .execution_options(synchronize_session=False)
        )
        result = await bounded(self.db.execute(stmt))
        new_version = result.scalar_one_or_none()
        await bounded(self.db.commit())

        if new_version is None:
            raise EditConflictError()

        # Reflect the write without marking the instance dirty; a later flush
        # must not re-issue an unconditional UPDATE.
        for key, value in fields.items():
            set_committed_value(user, key, value)
        set_committed_value(user, "version", new_version)
        return user
