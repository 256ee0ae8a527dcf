"""Test fixtures — a fresh SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Settings are read from GREENLIGHT_* env vars at import time, so they are
   set here before anything from greenlight is imported. bcrypt runs at its
   minimum cost and the rate limiter is off.
2. Each test gets its own SQLite file under tmp_path, created from the ORM
   metadata and seeded with the permission codes the migration would add.
3. get_db is overridden to hand out sessions on that database and get_mailer
   to hand out a FakeMailer that records instead of sending.

Tests never share rows, and services commit for real.
"""

import os
import tempfile

_DEFAULT_DB_DIR = tempfile.mkdtemp(prefix="greenlight-tests-")
os.environ["GREENLIGHT_DATABASE_URL"] = f"sqlite+aiosqlite:///{_DEFAULT_DB_DIR}/default.db"
os.environ["GREENLIGHT_PASSWORD_HASH_ROUNDS"] = "4"
os.environ["GREENLIGHT_LIMITER_ENABLED"] = "false"
os.environ["GREENLIGHT_LOG_JSON"] = "false"

from datetime import timedelta  # noqa: E402
from typing import Optional  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from greenlight.auth.password import Password  # noqa: E402
from greenlight.auth.tokens import SCOPE_AUTHENTICATION  # noqa: E402
from greenlight.db.engine import get_db  # noqa: E402
from greenlight.db.models import Base, Permission  # noqa: E402
from greenlight.mailer import get_mailer  # noqa: E402
from greenlight.main import app  # noqa: E402
from greenlight.services.permission_service import MOVIES_READ, MOVIES_WRITE, PermissionService  # noqa: E402
from greenlight.services.token_service import TokenService  # noqa: E402
from greenlight.services.user_service import UserService  # noqa: E402


class FakeMailer:
    """Records messages instead of talking to an SMTP server."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    async def send_in_background(self, recipient: str, template: str, data: dict) -> None:
        self.sent.append((recipient, template, dict(data)))

    def last(self, template: str) -> dict:
        for recipient, name, data in reversed(self.sent):
            if name == template:
                return data
        raise AssertionError(f"no {template} email was sent")


@pytest_asyncio.fixture()
async def db_engine(tmp_path):
    """Per-test SQLite database with the schema and permission seeds."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'greenlight.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 5},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(
            insert(Permission), [{"code": MOVIES_READ}, {"code": MOVIES_WRITE}]
        )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def mailer():
    return FakeMailer()


@pytest_asyncio.fixture()
async def client(session_factory, mailer):
    """HTTP client with get_db and get_mailer overridden.

    Learn: Auth is NOT overridden. Requests run through the real
    authenticator, so tests that need a user create one with the
    make_user fixture and pass its bearer token.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def make_user(session_factory):
    """Factory: create a user directly in the store, optionally with permissions.

    Returns (user, bearer_token). The token is None unless with_token is set.
    """
    counter = 0

    async def _make(
        *,
        activated: bool = True,
        permissions: tuple[str, ...] = (),
        password: str = "pa55word-123",
        email: Optional[str] = None,
        with_token: bool = True,
    ):
        nonlocal counter
        counter += 1
        pw = Password()
        pw.set(password)
        async with session_factory() as db:
            user = await UserService(db).insert(
                name=f"User {counter}",
                email=email or f"user{counter}@example.com",
                password_hash=pw.hash,
                activated=activated,
            )
            if permissions:
                await PermissionService(db).add_for_user(user.id, *permissions)
            token = None
            if with_token:
                issued = await TokenService(db).new_token(
                    user.id, timedelta(hours=1), SCOPE_AUTHENTICATION
                )
                token = issued.plaintext
        return user, token

    return _make
