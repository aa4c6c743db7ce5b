"""Title author model for co-authored titles and ownership splits."""
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Numeric, CheckConstraint, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from publisher_royalties.core.database import Base


class TitleAuthor(Base):
    """
    Links an author contact to a title with an ownership percentage.

    A title can have several authors:
    - Author A: 60% (primary)
    - Author B: 40%
    Total: 100%

    Each co-author still has their own contract (rates are taken from the
    primary author's contract, advances from each author's own).
    """

    __tablename__ = "title_authors"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    contact_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # 0.01 to 100.00
    ownership_percentage: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),
        nullable=False,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("title_id", "contact_id", name="title_authors_title_contact_unique"),
        CheckConstraint(
            "ownership_percentage > 0 AND ownership_percentage <= 100",
            name="check_ownership_percentage_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<TitleAuthor title={self.title_id} contact={self.contact_id} share={self.ownership_percentage}%>"
