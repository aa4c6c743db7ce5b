"""Tests for append-only statements and advance ledger entries."""
import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from publisher_royalties.core.exceptions import DataIntegrityError
from publisher_royalties.models import AdvanceLedgerEntry, LedgerEntryType, Statement, StatementStatus

TENANT = uuid.uuid4()


def make_statement():
    return Statement(
        tenant_id=TENANT,
        author_id=uuid.uuid4(),
        title_id=uuid.uuid4(),
        contract_id=uuid.uuid4(),
        period_start=date(2024, 1, 1),
        period_end=date(2024, 3, 31),
        total_royalty_earned=Decimal("100.00"),
        net_payable=Decimal("100.00"),
        calculations={"net_payable": "100.00"},
    )


def make_entry():
    return AdvanceLedgerEntry(
        tenant_id=TENANT,
        contract_id=uuid.uuid4(),
        entry_type=LedgerEntryType.RECOUPMENT,
        amount=Decimal("50.00"),
        effective_date=date(2024, 3, 31),
    )


class TestStatementImmutability:

    def test_status_lifecycle_may_change(self, run_db):
        async def scenario(db):
            statement = make_statement()
            db.add(statement)
            await db.commit()

            statement.status = StatementStatus.SENT
            statement.sent_at = datetime(2024, 4, 5)
            await db.commit()
            statement.status = StatementStatus.PAID
            statement.paid_at = datetime(2024, 4, 20)
            await db.commit()
            return statement

        assert run_db(scenario).status == StatementStatus.PAID

    def test_amounts_cannot_change(self, run_db):
        async def scenario(db):
            statement = make_statement()
            db.add(statement)
            await db.commit()

            statement.net_payable = Decimal("1.00")
            await db.flush()

        with pytest.raises(DataIntegrityError, match="immutable"):
            run_db(scenario)

    def test_calculations_cannot_change(self, run_db):
        async def scenario(db):
            statement = make_statement()
            db.add(statement)
            await db.commit()

            statement.status = StatementStatus.SENT
            statement.calculations = {"net_payable": "0.00"}
            await db.flush()

        with pytest.raises(DataIntegrityError) as exc_info:
            run_db(scenario)

        assert exc_info.value.details["columns"] == ["calculations"]

    def test_cannot_delete(self, run_db):
        async def scenario(db):
            statement = make_statement()
            db.add(statement)
            await db.commit()

            await db.delete(statement)
            await db.flush()

        with pytest.raises(DataIntegrityError, match="cannot be deleted"):
            run_db(scenario)


class TestLedgerImmutability:

    def test_entries_append(self, run_db):
        async def scenario(db):
            db.add(make_entry())
            db.add(make_entry())
            await db.commit()
            result = await db.execute(select(func.count(AdvanceLedgerEntry.id)))
            return result.scalar()

        assert run_db(scenario) == 2

    def test_cannot_update(self, run_db):
        async def scenario(db):
            entry = make_entry()
            db.add(entry)
            await db.commit()

            entry.amount = Decimal("10.00")
            await db.flush()

        with pytest.raises(DataIntegrityError, match="append-only"):
            run_db(scenario)

    def test_cannot_delete(self, run_db):
        async def scenario(db):
            entry = make_entry()
            db.add(entry)
            await db.commit()

            await db.delete(entry)
            await db.flush()

        with pytest.raises(DataIntegrityError, match="cannot be deleted"):
            run_db(scenario)
