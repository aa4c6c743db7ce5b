"""
Ownership split calculation for co-authored titles.

A title's total royalty is apportioned by each co-author's ownership
percentage:

    author_share = round_cents(title_total * percentage / 100)

Per-author rounding can leave the shares a cent or two off the total. The
reconciliation policy decides where that residual goes.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from publisher_royalties.core.exceptions import DataIntegrityError, ValidationError
from publisher_royalties.core.money import HUNDRED, ZERO, Numeric, require_non_negative, round_currency, to_decimal

logger = logging.getLogger(__name__)


class ReconciliationPolicy(str, Enum):
    PRIMARY_AUTHOR = "primary_author"  # residual goes to the primary (or first listed) author
    NONE = "none"                      # residual is reported, not assigned


@dataclass(frozen=True)
class SplitCalculation:
    title_total_royalty: Decimal
    ownership_percentage: Decimal
    author_share: Decimal
    is_split_calculation: bool = True


@dataclass(frozen=True)
class Owner:
    """A co-author's stake in a title."""
    author_id: Any
    ownership_percentage: Decimal
    is_primary: bool = False


@dataclass(frozen=True)
class SplitResult:
    shares: Dict[Any, SplitCalculation]
    residual: Decimal
    residual_assigned_to: Optional[Any] = None


def _validate_percentage(value: Numeric) -> Decimal:
    pct = to_decimal(value, "ownership_percentage")
    if pct <= 0 or pct > HUNDRED:
        raise ValidationError(
            f"Ownership percentage must be in (0, 100], got {pct}",
            ownership_percentage=str(pct),
        )
    return pct


def split_by_ownership(title_total_royalty: Numeric, ownership_percentage: Numeric) -> SplitCalculation:
    """Compute one co-author's share of the title's total royalty."""
    total = require_non_negative(title_total_royalty, "title_total_royalty")
    pct = _validate_percentage(ownership_percentage)
    return SplitCalculation(
        title_total_royalty=total,
        ownership_percentage=pct,
        author_share=round_currency(total * pct / HUNDRED),
    )


def split_among_authors(
    title_total_royalty: Numeric,
    owners: Iterable[Owner],
    policy: ReconciliationPolicy = ReconciliationPolicy.PRIMARY_AUTHOR,
) -> SplitResult:
    """
    Apportion a title's royalty among all of its co-authors.

    Raises:
        ValidationError: no owners, duplicate authors or bad percentages
        DataIntegrityError: percentages do not sum to 100
    """
    owners = list(owners)
    if not owners:
        raise ValidationError("Split needs at least one owner")

    seen = set()
    for owner in owners:
        if owner.author_id in seen:
            raise ValidationError(f"Author {owner.author_id} listed twice", author_id=str(owner.author_id))
        seen.add(owner.author_id)

    total_pct = sum((_validate_percentage(o.ownership_percentage) for o in owners), ZERO)
    if total_pct != HUNDRED:
        raise DataIntegrityError(
            f"Ownership percentages sum to {total_pct}, expected 100",
            total_percentage=str(total_pct),
        )

    shares: Dict[Any, SplitCalculation] = {
        o.author_id: split_by_ownership(title_total_royalty, o.ownership_percentage) for o in owners
    }
    total = next(iter(shares.values())).title_total_royalty
    residual = total - sum((s.author_share for s in shares.values()), ZERO)

    if residual == ZERO or policy == ReconciliationPolicy.NONE:
        if residual != ZERO:
            logger.info(f"Unassigned split rounding residual of {residual}")
        return SplitResult(shares=shares, residual=residual)

    primary = next((o for o in owners if o.is_primary), owners[0])
    share = shares[primary.author_id]
    shares[primary.author_id] = SplitCalculation(
        title_total_royalty=share.title_total_royalty,
        ownership_percentage=share.ownership_percentage,
        author_share=share.author_share + residual,
    )
    logger.info(f"Assigned split rounding residual of {residual} to author {primary.author_id}")
    return SplitResult(shares=shares, residual=residual, residual_assigned_to=primary.author_id)


def owners_from_records(records: Iterable[Any]) -> List[Owner]:
    """Build owners from TitleAuthor rows (or anything with the same attributes)."""
    return [
        Owner(
            author_id=r.contact_id,
            ownership_percentage=to_decimal(r.ownership_percentage, "ownership_percentage"),
            is_primary=bool(r.is_primary),
        )
        for r in records
    ]
