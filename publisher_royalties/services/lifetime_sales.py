"""
Lifetime sales accumulation.

Lifetime-mode rate tables are keyed by every unit a title/format has ever
sold, so the statement run needs the cumulative figures as of the period
start. They are always recomputed from sales history, never stored.

Queries run in one of two contexts:
- tenant: filtered to the calling tenant
- admin: cross-tenant system jobs (optionally narrowed to one tenant)
The aggregation is the same in both.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from publisher_royalties.core.exceptions import ValidationError
from publisher_royalties.core.money import ZERO
from publisher_royalties.models.contract import ContractFormat
from publisher_royalties.models.sales import Sale

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryScope:
    """Which rows a query may see."""
    tenant_id: Optional[UUID] = None
    is_admin: bool = False

    @classmethod
    def tenant(cls, tenant_id: UUID) -> "QueryScope":
        if tenant_id is None:
            raise ValidationError("Tenant scope requires a tenant_id")
        return cls(tenant_id=tenant_id, is_admin=False)

    @classmethod
    def admin(cls, tenant_id: Optional[UUID] = None) -> "QueryScope":
        return cls(tenant_id=tenant_id, is_admin=True)

    def apply(self, stmt: Select, model: Any) -> Select:
        """Add the tenant filter for model to a select, if any."""
        if self.tenant_id is None:
            return stmt
        return stmt.where(model.tenant_id == self.tenant_id)


@dataclass(frozen=True)
class LifetimeSales:
    lifetime_quantity: int = 0
    lifetime_revenue: Decimal = ZERO


def accumulate_lifetime_sales(
    sales: Iterable[Any],
    title_id: Any,
    format: ContractFormat | str,
    cutoff_date: date,
) -> LifetimeSales:
    """Sum sale records for the title/format strictly before cutoff_date."""
    fmt = ContractFormat(format)
    quantity = 0
    revenue = ZERO
    for sale in sales:
        if sale.title_id != title_id or ContractFormat(sale.format) != fmt:
            continue
        if sale.sale_date >= cutoff_date:
            continue
        quantity += sale.quantity
        revenue += Decimal(str(sale.total_amount))
    return LifetimeSales(lifetime_quantity=quantity, lifetime_revenue=revenue)


async def get_lifetime_sales_before_date(
    db: AsyncSession,
    scope: QueryScope,
    title_id: UUID,
    format: ContractFormat | str,
    cutoff_date: date,
) -> LifetimeSales:
    """
    Cumulative units and revenue for a title/format before cutoff_date.

    Returns a zero record when the title has no earlier sales.
    """
    stmt = select(
        func.coalesce(func.sum(Sale.quantity), 0),
        func.coalesce(func.sum(Sale.total_amount), 0),
    ).where(
        Sale.title_id == title_id,
        Sale.format == ContractFormat(format),
        Sale.sale_date < cutoff_date,
    )
    result = await db.execute(scope.apply(stmt, Sale))
    quantity, revenue = result.one()

    return LifetimeSales(
        lifetime_quantity=int(quantity),
        lifetime_revenue=Decimal(str(revenue)),
    )


async def get_lifetime_sales_by_format_before_date(
    db: AsyncSession,
    scope: QueryScope,
    title_id: UUID,
    cutoff_date: date,
) -> Dict[ContractFormat, LifetimeSales]:
    """Lifetime figures for every format of a title in one grouped query."""
    stmt = (
        select(
            Sale.format,
            func.sum(Sale.quantity),
            func.sum(Sale.total_amount),
        )
        .where(
            Sale.title_id == title_id,
            Sale.sale_date < cutoff_date,
        )
        .group_by(Sale.format)
    )
    result = await db.execute(scope.apply(stmt, Sale))

    lifetime = {
        ContractFormat(fmt): LifetimeSales(
            lifetime_quantity=int(quantity),
            lifetime_revenue=Decimal(str(revenue)),
        )
        for fmt, quantity, revenue in result.all()
    }
    logger.debug(f"Lifetime sales for title {title_id} before {cutoff_date}: {lifetime}")
    return lifetime
