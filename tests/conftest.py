"""Shared fixtures: in-memory SQLite database for async service tests."""
import asyncio

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import publisher_royalties.models  # noqa: F401  registers tables and listeners
from publisher_royalties.core.database import Base


@pytest.fixture
def run_db():
    """
    Run an async function against a fresh database.

    Usage:
        async def scenario(db): ...
        result = run_db(scenario)
    """

    def runner(fn):
        async def main():
            engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            session_maker = async_sessionmaker(engine, expire_on_commit=False)
            try:
                async with session_maker() as session:
                    return await fn(session)
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return runner
