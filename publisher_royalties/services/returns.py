"""
Returns netting.

Approved returns in the period are deducted from the period's sales before
any rate is applied. Returned units are valued at the same unit price basis
as the period's sales (gross revenue / gross units), so a return reverses
exactly what the sale earned.

Two sets of figures come out:
- net_units / net_revenue: raw, may go negative when returns exceed sales
  (kept for audit)
- royalty_units / royalty_revenue: floored at zero, the input to the rate
  tier resolver
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from publisher_royalties.core.money import ZERO, Numeric, require_non_negative, require_units, round_currency

logger = logging.getLogger(__name__)

# Unit price basis keeps six places so per-tier rounding stays at cents
PRICE_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class SalesAggregate:
    """Units and gross revenue sold for one title/format in a period."""
    units: int = 0
    revenue: Decimal = ZERO

    def __post_init__(self):
        require_units(self.units, "sales units")
        object.__setattr__(self, "revenue", require_non_negative(self.revenue, "sales revenue"))


@dataclass(frozen=True)
class ReturnsAggregate:
    """Approved returns for one title/format in a period."""
    units: int = 0
    revenue: Decimal = ZERO

    def __post_init__(self):
        require_units(self.units, "returned units")
        object.__setattr__(self, "revenue", require_non_negative(self.revenue, "returned revenue"))


@dataclass(frozen=True)
class NetSales:
    gross_units: int
    gross_revenue: Decimal
    gross_returned_units: int
    gross_returned_revenue: Decimal
    unit_price: Decimal
    net_units: int
    net_revenue: Decimal
    royalty_units: int
    royalty_revenue: Decimal

    @property
    def returns_exceed_sales(self) -> bool:
        return self.net_units < 0

    @property
    def returns_deduction(self) -> Decimal:
        """Revenue removed from the royalty base by returns."""
        return self.gross_revenue - self.royalty_revenue


def unit_price_basis(units: int, revenue: Numeric) -> Decimal:
    """Average price per unit, zero when nothing was sold."""
    if units == 0:
        return ZERO
    return (Decimal(revenue) / Decimal(units)).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def net_returns(sales: SalesAggregate, returns: ReturnsAggregate) -> NetSales:
    """
    Net a period's approved returns against its sales.

    Args:
        sales: Period sales aggregate
        returns: Approved returns aggregate (pending/rejected returns must
            already be excluded)

    Returns:
        NetSales with raw and royalty-input figures
    """
    price = unit_price_basis(sales.units, sales.revenue)

    net_units = sales.units - returns.units
    if sales.units:
        net_revenue = round_currency(sales.revenue - Decimal(returns.units) * price)
    else:
        # No sales to take a price from; the return's own value is the deduction
        net_revenue = -returns.revenue

    royalty_units = max(net_units, 0)
    royalty_revenue = max(net_revenue, ZERO)

    if net_units < 0 or net_revenue < 0:
        logger.warning(
            f"Returns exceed sales: {returns.units} returned vs {sales.units} sold "
            f"(net revenue {net_revenue}); clamping royalty base to zero"
        )

    return NetSales(
        gross_units=sales.units,
        gross_revenue=sales.revenue,
        gross_returned_units=returns.units,
        gross_returned_revenue=returns.revenue,
        unit_price=price,
        net_units=net_units,
        net_revenue=net_revenue,
        royalty_units=royalty_units,
        royalty_revenue=royalty_revenue,
    )
