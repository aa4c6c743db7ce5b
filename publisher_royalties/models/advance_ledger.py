"""
Advance Ledger model for tracking recoupments against a contract advance.

LEDGER CONVENTION:
- The advance itself lives on the contract (advance_amount) and never changes
- RECOUPMENT entries: positive amount recovered from an author's royalties,
  one per statement
- OPENING_BALANCE entries: recoupment carried over from before the system
  took over the contract (no statement reference)

BALANCE CALCULATION:
  recouped_to_date = sum(entries)
  remaining_advance = contract.advance_amount - recouped_to_date

  - remaining > 0: advance not yet earned out
  - remaining = 0: fully recouped
  - remaining < 0: data integrity violation

Entries are append-only. A correction is a new entry, never an edit.
"""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, Date, Numeric, ForeignKey, Text, CheckConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from publisher_royalties.core.database import Base

if TYPE_CHECKING:
    from publisher_royalties.models.contract import Contract
    from publisher_royalties.models.statement import Statement


class LedgerEntryType(str, Enum):
    """Type of ledger entry."""
    RECOUPMENT = "recoupment"            # Recovered by a statement
    OPENING_BALANCE = "opening_balance"  # Recovered before migration


class AdvanceLedgerEntry(Base):
    """Append-only recoupment fact for one contract."""

    __tablename__ = "advance_ledger"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    entry_type: Mapped[LedgerEntryType] = mapped_column(
        SAEnum(LedgerEntryType, values_callable=lambda x: [e.value for e in x]),
        default=LedgerEntryType.RECOUPMENT,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # Statement that produced the recoupment (NULL for opening balances)
    statement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("statements.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=True)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    contract: Mapped["Contract"] = relationship(
        "Contract",
        back_populates="ledger_entries",
    )
    statement: Mapped["Statement"] = relationship("Statement")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_ledger_amount_nonnegative"),
    )

    def __repr__(self) -> str:
        return f"<AdvanceLedgerEntry {self.id} type={self.entry_type} amount={self.amount}>"
