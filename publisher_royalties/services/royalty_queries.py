"""Database reads feeding the statement assembler."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from publisher_royalties.models.advance_ledger import AdvanceLedgerEntry
from publisher_royalties.models.contract import Contract, ContractFormat, ContractStatus
from publisher_royalties.models.sales import ReturnStatus, Sale, SalesReturn
from publisher_royalties.models.title_author import TitleAuthor
from publisher_royalties.services.lifetime_sales import QueryScope
from publisher_royalties.services.returns import ReturnsAggregate, SalesAggregate
from publisher_royalties.services.royalty_periods import RoyaltyPeriod

logger = logging.getLogger(__name__)


async def get_period_sales_by_format(
    db: AsyncSession,
    scope: QueryScope,
    title_id: UUID,
    period: RoyaltyPeriod,
) -> Dict[ContractFormat, SalesAggregate]:
    stmt = (
        select(Sale.format, func.sum(Sale.quantity), func.sum(Sale.total_amount))
        .where(
            Sale.title_id == title_id,
            Sale.sale_date >= period.start_date,
            Sale.sale_date <= period.end_date,
        )
        .group_by(Sale.format)
    )
    result = await db.execute(scope.apply(stmt, Sale))
    return {
        ContractFormat(fmt): SalesAggregate(units=int(units), revenue=Decimal(str(revenue)))
        for fmt, units, revenue in result.all()
    }


async def get_period_returns_by_format(
    db: AsyncSession,
    scope: QueryScope,
    title_id: UUID,
    period: RoyaltyPeriod,
) -> Dict[ContractFormat, ReturnsAggregate]:
    """Approved returns only; pending and rejected returns never reduce royalties."""
    stmt = (
        select(SalesReturn.format, func.sum(SalesReturn.quantity), func.sum(SalesReturn.total_amount))
        .where(
            SalesReturn.title_id == title_id,
            SalesReturn.status == ReturnStatus.APPROVED,
            SalesReturn.return_date >= period.start_date,
            SalesReturn.return_date <= period.end_date,
        )
        .group_by(SalesReturn.format)
    )
    result = await db.execute(scope.apply(stmt, SalesReturn))
    return {
        ContractFormat(fmt): ReturnsAggregate(units=int(units), revenue=Decimal(str(revenue)))
        for fmt, units, revenue in result.all()
    }


async def get_contract(
    db: AsyncSession,
    scope: QueryScope,
    author_id: UUID,
    title_id: UUID,
) -> Optional[Contract]:
    """Active contract for an author on a title, with its tiers loaded."""
    stmt = (
        select(Contract)
        .options(selectinload(Contract.tiers))
        .where(
            Contract.author_id == author_id,
            Contract.title_id == title_id,
            Contract.status == ContractStatus.ACTIVE,
        )
    )
    result = await db.execute(scope.apply(stmt, Contract))
    return result.scalar_one_or_none()


async def get_recouped_to_date(
    db: AsyncSession,
    scope: QueryScope,
    contract_id: UUID,
) -> Decimal:
    """recouped_to_date = sum of the contract's ledger entries"""
    stmt = select(func.coalesce(func.sum(AdvanceLedgerEntry.amount), 0)).where(
        AdvanceLedgerEntry.contract_id == contract_id,
    )
    result = await db.execute(scope.apply(stmt, AdvanceLedgerEntry))
    return Decimal(str(result.scalar()))


async def get_title_authors(
    db: AsyncSession,
    scope: QueryScope,
    title_id: UUID,
) -> List[TitleAuthor]:
    # Primary first, then oldest link, so "first listed" is stable
    stmt = (
        select(TitleAuthor)
        .where(TitleAuthor.title_id == title_id)
        .order_by(TitleAuthor.is_primary.desc(), TitleAuthor.created_at, TitleAuthor.contact_id)
    )
    result = await db.execute(scope.apply(stmt, TitleAuthor))
    return list(result.scalars().all())
