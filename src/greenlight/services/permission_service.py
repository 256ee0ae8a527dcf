"""Permission registry — which capability codes a user holds.

Permissions are loaded fresh on every gated request (one join query) and
checked in memory. Nothing is cached across requests.
"""

from sqlalchemy import insert, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.db.engine import bounded
from greenlight.db.models import Permission, User, users_permissions

MOVIES_READ = "movies:read"
MOVIES_WRITE = "movies:write"


class Permissions(frozenset):
    """The set of permission codes held by one user."""

    def include(self, code: str) -> bool:
        return code in self


class PermissionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all_for_user(self, user_id: int) -> Permissions:
        result = await bounded(
            self.db.execute(
                select(Permission.code)
                .join(
                    users_permissions,
                    users_permissions.c.permission_id == Permission.id,
                )
                .join(User, users_permissions.c.user_id == User.id)
                .where(User.id == user_id)
            )
        )
        return Permissions(result.scalars().all())

    async def add_for_user(self, user_id: int, *codes: str) -> None:
        """Grant codes to user_id. Unknown codes are ignored."""
        if not codes:
            return
        held = await self.get_all_for_user(user_id)
        missing = [code for code in codes if not held.include(code)]
        if not missing:
            return

        stmt = insert(users_permissions).from_select(
            ["user_id", "permission_id"],
            select(literal(user_id), Permission.id).where(Permission.code.in_(missing)),
        )
        await bounded(self.db.execute(stmt))
        await bounded(self.db.commit())
