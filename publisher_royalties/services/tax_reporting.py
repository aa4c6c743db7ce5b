"""
Annual royalty earnings for tax reporting.

Form 1099-MISC box 2 (royalties) is required when an author's royalties for
the calendar year reach the filing threshold ($10 by default). A statement
counts toward a year when its whole period falls inside that year.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from publisher_royalties.core.config import settings
from publisher_royalties.core.money import ZERO, round_currency, to_decimal
from publisher_royalties.models.statement import Statement
from publisher_royalties.services.lifetime_sales import QueryScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnnualEarnings:
    author_id: Any
    year: int
    total_earnings: Decimal
    statement_count: int
    meets_threshold: bool


def _in_year(period_start: date, period_end: date, year: int) -> bool:
    return period_start >= date(year, 1, 1) and period_end <= date(year, 12, 31)


def aggregate_annual_earnings(
    statements: Iterable[Any],
    year: int,
    threshold: Optional[Decimal] = None,
) -> List[AnnualEarnings]:
    """Sum net payable per author over statements (or rows with the same attributes)."""
    limit = settings.ROYALTY_FILING_THRESHOLD if threshold is None else to_decimal(threshold, "threshold")

    totals: Dict[Any, Decimal] = {}
    counts: Dict[Any, int] = {}
    for statement in statements:
        if not _in_year(statement.period_start, statement.period_end, year):
            continue
        totals[statement.author_id] = totals.get(statement.author_id, ZERO) + to_decimal(
            statement.net_payable, "net_payable"
        )
        counts[statement.author_id] = counts.get(statement.author_id, 0) + 1

    return [
        AnnualEarnings(
            author_id=author_id,
            year=year,
            total_earnings=round_currency(total),
            statement_count=counts[author_id],
            meets_threshold=total >= limit,
        )
        for author_id, total in sorted(totals.items(), key=lambda item: str(item[0]))
    ]


async def get_annual_earnings(
    db: AsyncSession,
    scope: QueryScope,
    year: int,
    threshold: Optional[Decimal] = None,
) -> List[AnnualEarnings]:
    """Same aggregation as aggregate_annual_earnings, done in SQL."""
    limit = settings.ROYALTY_FILING_THRESHOLD if threshold is None else to_decimal(threshold, "threshold")

    stmt = (
        select(
            Statement.author_id,
            func.coalesce(func.sum(Statement.net_payable), 0),
            func.count(Statement.id),
        )
        .where(
            Statement.period_start >= date(year, 1, 1),
            Statement.period_end <= date(year, 12, 31),
        )
        .group_by(Statement.author_id)
    )
    result = await db.execute(scope.apply(stmt, Statement))

    earnings = []
    for author_id, total, count in result.all():
        total = Decimal(str(total))
        earnings.append(AnnualEarnings(
            author_id=author_id,
            year=year,
            total_earnings=round_currency(total),
            statement_count=int(count),
            meets_threshold=total >= limit,
        ))

    earnings.sort(key=lambda e: str(e.author_id))
    logger.info(
        f"Tax year {year}: {len(earnings)} authors with statements, "
        f"{sum(1 for e in earnings if e.meets_threshold)} at or above the {limit} threshold"
    )
    return earnings
