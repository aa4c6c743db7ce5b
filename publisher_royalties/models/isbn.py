"""ISBN prefix and pool models."""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import String, DateTime, Integer, Text, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from publisher_royalties.core.database import Base


class GenerationStatus(str, Enum):
    """Progress of generating a prefix's ISBN block."""
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class IsbnStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"


class IsbnPrefix(Base):
    """
    A registrant prefix purchased from the ISBN agency, with its block size.

    generated_count doubles as the resume offset: a failed generation is
    retried from that sequence number.
    """

    __tablename__ = "isbn_prefixes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Digits only, e.g. "9781234567"
    prefix: Mapped[str] = mapped_column(String(12), nullable=False)
    block_size: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)

    generation_status: Mapped[GenerationStatus] = mapped_column(
        SAEnum(GenerationStatus, values_callable=lambda x: [e.value for e in x]),
        default=GenerationStatus.PENDING,
        nullable=False,
    )
    generated_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    generation_error: Mapped[str] = mapped_column(Text, nullable=True)

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

    isbns: Mapped[list["Isbn"]] = relationship(
        "Isbn",
        back_populates="prefix_record",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "prefix", name="isbn_prefixes_tenant_prefix_unique"),
    )

    def __repr__(self) -> str:
        return f"<IsbnPrefix {self.prefix} block={self.block_size} status={self.generation_status}>"


class Isbn(Base):
    """One ISBN-13 in a tenant's pool."""

    __tablename__ = "isbns"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    prefix_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("isbn_prefixes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    isbn_13: Mapped[str] = mapped_column(String(13), nullable=False)

    status: Mapped[IsbnStatus] = mapped_column(
        SAEnum(IsbnStatus, values_callable=lambda x: [e.value for e in x]),
        default=IsbnStatus.AVAILABLE,
        nullable=False,
        index=True,
    )
    assigned_title_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    prefix_record: Mapped["IsbnPrefix"] = relationship(
        "IsbnPrefix",
        back_populates="isbns",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "isbn_13", name="isbns_tenant_isbn_unique"),
    )

    def __repr__(self) -> str:
        return f"<Isbn {self.isbn_13} status={self.status}>"
