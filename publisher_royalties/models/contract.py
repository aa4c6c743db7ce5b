"""Contract and contract tier models for royalty terms."""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import String, DateTime, Integer, Numeric, ForeignKey, CheckConstraint, UniqueConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from publisher_royalties.core.database import Base

if TYPE_CHECKING:
    from publisher_royalties.models.advance_ledger import AdvanceLedgerEntry


class ContractFormat(str, Enum):
    """Formats a title is sold in. Rates may differ per format."""
    PHYSICAL = "physical"
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"


class RateMode(str, Enum):
    """
    How units are positioned in the tier table.

    FLAT: single rate for all units
    PERIOD: tiers reset every royalty period
    LIFETIME: tiers follow cumulative units ever sold
    """
    FLAT = "flat"
    PERIOD = "period"
    LIFETIME = "lifetime"


class ContractStatus(str, Enum):
    ACTIVE = "active"
    TERMINATED = "terminated"
    SUSPENDED = "suspended"


class Contract(Base):
    """
    Royalty contract between the publisher (tenant) and one author for one title.

    The advance amount is fixed once the contract is signed. Recoupment is
    not stored here: it is the sum of the contract's advance ledger entries,
    each appended by a statement run.
    """

    __tablename__ = "contracts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Author contact and title covered by the contract
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    status: Mapped[ContractStatus] = mapped_column(
        SAEnum(ContractStatus, values_callable=lambda x: [e.value for e in x]),
        default=ContractStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    tier_calculation_mode: Mapped[RateMode] = mapped_column(
        SAEnum(RateMode, values_callable=lambda x: [e.value for e in x]),
        default=RateMode.PERIOD,
        nullable=False,
    )

    # Advance
    advance_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    advance_paid: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=2),
        default=Decimal("0"),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    # Relationships
    tiers: Mapped[list["ContractTier"]] = relationship(
        "ContractTier",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractTier.min_quantity",
    )
    ledger_entries: Mapped[list["AdvanceLedgerEntry"]] = relationship(
        "AdvanceLedgerEntry",
        back_populates="contract",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "author_id", "title_id", name="contracts_tenant_author_title_unique"),
        CheckConstraint("advance_amount >= 0", name="check_advance_amount_nonnegative"),
        CheckConstraint("advance_paid >= 0", name="check_advance_paid_nonnegative"),
    )

    def __repr__(self) -> str:
        return f"<Contract {self.id} author={self.author_id} title={self.title_id} mode={self.tier_calculation_mode}>"


class ContractTier(Base):
    """
    One band of a contract's rate table for a format.

    Bands are half-open: [min_quantity, max_quantity). A NULL max_quantity
    marks the open-ended final tier.
    """

    __tablename__ = "contract_tiers"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    contract_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    format: Mapped[ContractFormat] = mapped_column(
        SAEnum(ContractFormat, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )

    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    max_quantity: Mapped[int] = mapped_column(Integer, nullable=True)

    # 0.1000 = 10%
    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=4),
        nullable=False,
    )

    contract: Mapped["Contract"] = relationship(
        "Contract",
        back_populates="tiers",
    )

    __table_args__ = (
        CheckConstraint("rate >= 0 AND rate <= 1", name="check_tier_rate_range"),
        CheckConstraint("min_quantity >= 0", name="check_tier_min_nonnegative"),
        CheckConstraint(
            "max_quantity IS NULL OR max_quantity > min_quantity",
            name="check_tier_bounds_increasing",
        ),
    )

    def __repr__(self) -> str:
        return f"<ContractTier {self.format} [{self.min_quantity}, {self.max_quantity}) rate={self.rate}>"
