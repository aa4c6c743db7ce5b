"""Sales and returns transaction models."""
import uuid
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from sqlalchemy import String, DateTime, Date, Integer, Numeric, Text, CheckConstraint, Index, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from publisher_royalties.core.database import Base
from publisher_royalties.models.contract import ContractFormat


class ReturnStatus(str, Enum):
    """Approval state of a return. Only approved returns reduce royalties."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Sale(Base):
    """A sales transaction for a title in one format."""

    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    format: Mapped[ContractFormat] = mapped_column(
        SAEnum(ContractFormat, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)

    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    # e.g. "direct", "ingram", "amazon"
    channel: Mapped[str] = mapped_column(String(50), default="direct", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_sale_quantity_positive"),
        Index("idx_sales_title_format_date", "title_id", "format", "sale_date"),
    )

    def __repr__(self) -> str:
        return f"<Sale {self.id} title={self.title_id} format={self.format} qty={self.quantity}>"


class SalesReturn(Base):
    """A return of copies previously sold. Requires approval before netting."""

    __tablename__ = "returns"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    format: Mapped[ContractFormat] = mapped_column(
        SAEnum(ContractFormat, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(precision=12, scale=2), nullable=False)

    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=True)

    status: Mapped[ReturnStatus] = mapped_column(
        SAEnum(ReturnStatus, values_callable=lambda x: [e.value for e in x]),
        default=ReturnStatus.PENDING,
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_return_quantity_positive"),
        Index("idx_returns_title_format_date", "title_id", "format", "return_date"),
    )

    def __repr__(self) -> str:
        return f"<SalesReturn {self.id} title={self.title_id} status={self.status} qty={self.quantity}>"
