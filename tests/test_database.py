"""Tests for the session dependency and engine factory."""
import asyncio
import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from publisher_royalties.core import database
from publisher_royalties.core.database import Base, get_engine
from publisher_royalties.models import ContractFormat, Sale


def make_sale():
    return Sale(
        tenant_id=uuid.uuid4(),
        title_id=uuid.uuid4(),
        format=ContractFormat.EBOOK,
        quantity=1,
        unit_price=Decimal("9.99"),
        total_amount=Decimal("9.99"),
        sale_date=date(2024, 1, 5),
    )


@pytest.fixture
def run_get_db(monkeypatch):
    """Drive get_db against in-memory SQLite; returns the sale count afterwards."""

    def runner(use_session):
        async def main():
            engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            maker = async_sessionmaker(engine, expire_on_commit=False)
            monkeypatch.setattr(database, "get_session_maker", lambda engine=None: maker)
            try:
                await use_session(database.get_db())
                async with maker() as session:
                    return (await session.execute(select(func.count(Sale.id)))).scalar()
            finally:
                await engine.dispose()

        return asyncio.run(main())

    return runner


class TestGetDb:

    def test_commits_on_success(self, run_get_db):
        async def use_session(sessions):
            session = await sessions.__anext__()
            session.add(make_sale())
            with pytest.raises(StopAsyncIteration):
                await sessions.__anext__()

        assert run_get_db(use_session) == 1

    def test_rolls_back_on_error(self, run_get_db):
        async def use_session(sessions):
            session = await sessions.__anext__()
            session.add(make_sale())
            await session.flush()
            with pytest.raises(RuntimeError, match="request failed"):
                await sessions.athrow(RuntimeError("request failed"))

        assert run_get_db(use_session) == 0


class TestGetEngine:

    def test_cached_per_url(self):
        assert get_engine("sqlite+aiosqlite://") is get_engine("sqlite+aiosqlite://")
