"""Token service — persistence for scoped bearer tokens.

Tokens are only ever inserted and deleted. Superseding or consuming tokens
of a kind is one DELETE over (user_id, scope), which leaves every other
user's tokens and every other scope untouched.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.auth.tokens import Token as IssuedToken
from greenlight.auth.tokens import generate_token, hash_plaintext
from greenlight.db.engine import bounded
from greenlight.db.models import Token, User

logger = structlog.get_logger()


class TokenService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def new_token(self, user_id: int, ttl: timedelta, scope: str) -> IssuedToken:
        """Generate a token and persist its hash. Returns the plaintext carrier."""
        token = generate_token(user_id, ttl, scope)
        await self.insert(token)
        return token

    async def insert(self, token: IssuedToken) -> None:
        self.db.add(
            Token(
                hash=token.hash,
                user_id=token.user_id,
                expiry=token.expiry,
                scope=token.scope,
            )
        )
        await bounded(self.db.commit())

    async def delete_all_for_user(self, scope: str, user_id: int) -> int:
        """Delete every token of scope belonging to user_id."""
        result = await bounded(
            self.db.execute(
                delete(Token)
                .where(Token.scope == scope, Token.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
        )
        await bounded(self.db.commit())
        return result.rowcount

    async def get_user_for_token(self, scope: str, plaintext: str) -> Optional[User]:
        """Resolve a plaintext token to its owner if it is live.

        Only (hash, scope, expiry > now) counts as a match. When there is no
        match we look once more without the expiry bound, purely to log
        whether the token had expired or never existed; callers cannot tell
        the two apart.
        """
        token_hash = hash_plaintext(plaintext)
        now = datetime.now(timezone.utc)

        result = await bounded(
            self.db.execute(
                select(User)
                .join(Token, Token.user_id == User.id)
                .where(
                    Token.hash == token_hash,
                    Token.scope == scope,
                    Token.expiry > now,
                )
            )
        )
        user = result.scalars().first()
        if user is not None:
            return user

        stale = await bounded(
            self.db.execute(
                select(Token.user_id).where(
                    Token.hash == token_hash, Token.scope == scope
                )
            )
        )
        owner = stale.scalar_one_or_none()
        if owner is not None:
            logger.info("auth.token_expired", scope=scope, user_id=owner)
        else:
            logger.info("auth.token_unknown", scope=scope)
        return None
