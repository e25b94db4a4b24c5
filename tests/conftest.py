from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.models import Base
from app.db.repo.users_repo import UsersRepo
from tests.referral_fixtures import NOW_UTC


@pytest_asyncio.fixture
async def session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest.fixture
def create_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    async def _create(
        username: str | None,
        *,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        created_at: datetime | None = None,
    ) -> int:
        async with session_factory.begin() as session:
            user = await UsersRepo.create(
                session,
                username=username,
                email=email,
                first_name=first_name,
                last_name=last_name,
                created_at=created_at or NOW_UTC,
            )
            return user.id

    return _create
