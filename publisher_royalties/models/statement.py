"""Statement model for author royalty statements."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from sqlalchemy import String, DateTime, Date, Numeric, ForeignKey, Boolean, JSON, Index, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from publisher_royalties.core.database import Base


class StatementStatus(str, Enum):
    """Status of a statement."""
    DRAFT = "draft"   # Generated, not yet sent to the author
    SENT = "sent"     # Delivered to the author
    PAID = "paid"     # Payment has been processed


class Statement(Base):
    """
    Author royalty statement for one title and period.

    The calculations column holds the full StatementCalculations document.
    Rows are append-only: only the status lifecycle columns may change after
    insert.
    """

    __tablename__ = "statements"

    # Columns that may change after insert
    MUTABLE_COLUMNS = frozenset({"status", "sent_at", "paid_at"})

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Period info (denormalized from calculations for quick access)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    status: Mapped[StatementStatus] = mapped_column(
        SAEnum(StatementStatus, values_callable=lambda x: [e.value for e in x]),
        default=StatementStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Amounts
    total_royalty_earned: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    recoupment: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    net_payable: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )

    is_split_calculation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    calculations: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    paid_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_statements_author_period", "author_id", "period_end"),
    )

    def __repr__(self) -> str:
        return f"<Statement {self.id} author={self.author_id} net_payable={self.net_payable}>"
