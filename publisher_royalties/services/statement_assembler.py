"""
Statement assembly.

Given one author, one title and one royalty period, combine:

1. Returns netting per format (approved returns only)
2. Rate tier resolution per format (period or lifetime offset)
3. Title total royalty = sum of format royalties
4. Ownership split when the title has more than one author
5. Advance recoupment, once, on the author's aggregate royalty

into an immutable StatementCalculations document. Nothing here touches the
database; the statement generation workflow loads the inputs and persists
the result. Identical inputs always give an identical document.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from publisher_royalties.core.exceptions import CalculationError, DataIntegrityError, ValidationError
from publisher_royalties.core.money import ZERO, Numeric, round_currency, to_decimal
from publisher_royalties.models.contract import ContractFormat, RateMode
from publisher_royalties.schemas.statements import (
    AdvanceRecoupment,
    FormatBreakdown,
    PeriodBounds,
    SplitCalculationRecord,
    StatementCalculations,
    TierBreakdown,
)
from publisher_royalties.services.rate_tiers import RateSchedule, RateTier, compute_royalty
from publisher_royalties.services.recoupment import apply_recoupment
from publisher_royalties.services.returns import ReturnsAggregate, SalesAggregate, net_returns
from publisher_royalties.services.royalty_periods import RoyaltyPeriod
from publisher_royalties.services.splits import Owner, ReconciliationPolicy, split_among_authors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorContext:
    author_id: Any
    name: Optional[str] = None


@dataclass(frozen=True)
class TitleContext:
    """A title and, for co-authored titles, every owner's stake."""
    title_id: Any
    name: Optional[str] = None
    co_authors: Tuple[Owner, ...] = ()

    @property
    def is_co_authored(self) -> bool:
        return len(self.co_authors) > 1


@dataclass(frozen=True)
class ContractTerms:
    """
    The rate tables and advance state of the author's contract.

    rate_schedules maps each format to either a built RateSchedule or the raw
    tier rows (dicts or RateTier) for that format.
    """
    rate_mode: RateMode
    rate_schedules: Mapping[ContractFormat, Any]
    original_advance: Decimal = ZERO
    previously_recouped: Decimal = ZERO


@dataclass(frozen=True)
class FormatActivity:
    """Period sales and approved returns of one format."""
    format: ContractFormat
    sales: SalesAggregate = field(default_factory=SalesAggregate)
    returns: ReturnsAggregate = field(default_factory=ReturnsAggregate)
    lifetime_units_before: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return self.sales.units == 0 and self.returns.units == 0


def _build_schedules(contract: ContractTerms) -> dict[ContractFormat, RateSchedule]:
    if not contract.rate_schedules:
        raise CalculationError("Contract has no rate schedule")

    schedules = {}
    for fmt, raw in contract.rate_schedules.items():
        fmt = ContractFormat(fmt)
        if isinstance(raw, RateSchedule):
            schedules[fmt] = raw
            continue
        if not raw:
            raise CalculationError(f"Contract has no {fmt.value} rate tiers", format=fmt.value)
        try:
            schedules[fmt] = RateSchedule(contract.rate_mode, raw, format=fmt)
        except ValidationError as exc:
            # Stored tier tables were validated on entry; a broken one is corrupt data
            raise DataIntegrityError(
                f"Invalid {fmt.value} rate table on contract: {exc.message}",
                **{**exc.details, "format": fmt.value},
            ) from exc
    return schedules


def _index_activity(activity: Iterable[FormatActivity]) -> dict[ContractFormat, FormatActivity]:
    indexed = {}
    for item in activity:
        fmt = ContractFormat(item.format)
        if fmt in indexed:
            raise ValidationError(f"Duplicate activity for format {fmt.value}", format=fmt.value)
        indexed[fmt] = item
    return indexed


def _format_breakdown(schedule: RateSchedule, item: FormatActivity) -> FormatBreakdown:
    net = net_returns(item.sales, item.returns)
    computation = compute_royalty(
        schedule,
        net.royalty_units,
        net.unit_price,
        lifetime_units_before=item.lifetime_units_before,
    )
    return FormatBreakdown(
        format=item.format,
        rate_mode=schedule.mode.value,
        total_quantity=net.gross_units,
        total_revenue=round_currency(net.gross_revenue),
        returned_quantity=net.gross_returned_units,
        returned_revenue=round_currency(net.gross_returned_revenue),
        unit_price=net.unit_price,
        net_quantity=net.net_units,
        net_revenue=round_currency(net.net_revenue),
        royalty_quantity=net.royalty_units,
        lifetime_quantity_before=item.lifetime_units_before if schedule.mode == RateMode.LIFETIME else None,
        tier_breakdowns=[
            TierBreakdown(
                min_quantity=t.min_quantity,
                max_quantity=t.max_quantity,
                rate=t.rate,
                units_applied=t.units,
                royalty_amount=t.royalty_amount,
            )
            for t in computation.applied_tiers
        ],
        format_royalty=round_currency(computation.royalty_amount),
    )


def assemble_statement(
    author: AuthorContext,
    title: TitleContext,
    period: RoyaltyPeriod,
    contract: Optional[ContractTerms],
    activity: Optional[Iterable[FormatActivity]],
    policy: ReconciliationPolicy = ReconciliationPolicy.PRIMARY_AUTHOR,
) -> StatementCalculations:
    """
    Build the calculation record for one author, title and period.

    Args:
        author: Author the statement is for
        title: Title, with co-author stakes when co-authored
        period: Royalty period
        contract: The author's contract terms (rates come from it, as does
            the advance state)
        activity: Sales and approved returns per format in the period
        policy: Where split rounding residuals go

    Raises:
        CalculationError: contract, rate schedule or activity missing
        DataIntegrityError: corrupt tier table, ownership not summing to
            100, author not an owner, or recoupment exceeding the advance
        ValidationError: malformed activity figures
    """
    if contract is None:
        raise CalculationError(f"No contract for author {author.author_id} on title {title.title_id}")
    if activity is None:
        raise CalculationError(f"No sales data for title {title.title_id} in {period}")

    schedules = _build_schedules(contract)
    by_format = _index_activity(activity)

    breakdowns = []
    for fmt in sorted(by_format, key=lambda f: f.value):
        item = by_format[fmt]
        if fmt not in schedules:
            if item.is_empty:
                continue
            raise CalculationError(
                f"No {fmt.value} rate schedule for title {title.title_id}",
                format=fmt.value,
            )
        breakdowns.append(_format_breakdown(schedules[fmt], item))

    title_total = sum((b.format_royalty for b in breakdowns), ZERO)
    returns_deduction = sum(
        (b.total_revenue - max(b.net_revenue, ZERO) for b in breakdowns),
        ZERO,
    )

    split_record = None
    gross_royalty = title_total
    if title.is_co_authored:
        split = split_among_authors(title_total, title.co_authors, policy)
        if author.author_id not in split.shares:
            raise DataIntegrityError(
                f"Author {author.author_id} is not an owner of title {title.title_id}",
                author_id=str(author.author_id),
                title_id=str(title.title_id),
            )
        share = split.shares[author.author_id]
        gross_royalty = share.author_share
        split_record = SplitCalculationRecord(
            title_total_royalty=share.title_total_royalty,
            ownership_percentage=share.ownership_percentage,
        )

    recoupment = apply_recoupment(gross_royalty, contract.previously_recouped, contract.original_advance)

    logger.info(
        f"Assembled statement for author {author.author_id} title {title.title_id} {period}: "
        f"gross={gross_royalty} recouped={recoupment.this_period_recoupment} net={recoupment.net_payable}"
    )

    return StatementCalculations(
        period=PeriodBounds(start_date=period.start_date, end_date=period.end_date),
        format_breakdowns=breakdowns,
        returns_deduction=round_currency(returns_deduction),
        gross_royalty=round_currency(gross_royalty),
        advance_recoupment=AdvanceRecoupment(
            original_advance=round_currency(recoupment.original_advance),
            previously_recouped=round_currency(recoupment.previously_recouped),
            this_period_recoupment=round_currency(recoupment.this_period_recoupment),
            remaining_advance=round_currency(recoupment.remaining_advance),
        ),
        net_payable=round_currency(recoupment.net_payable),
        split_calculation=split_record,
    )


def contract_terms_from_tiers(
    rate_mode: RateMode | str,
    tiers: Sequence[Any],
    original_advance: Numeric = ZERO,
    previously_recouped: Numeric = ZERO,
) -> ContractTerms:
    """Group ContractTier rows (or equivalents) by format into ContractTerms."""
    grouped: dict[ContractFormat, list[RateTier]] = {}
    for tier in sorted(tiers, key=lambda t: (ContractFormat(t.format).value, t.min_quantity)):
        grouped.setdefault(ContractFormat(tier.format), []).append(
            RateTier(min_quantity=tier.min_quantity, rate=to_decimal(tier.rate, "rate"), max_quantity=tier.max_quantity)
        )
    return ContractTerms(
        rate_mode=RateMode(rate_mode),
        rate_schedules=grouped,
        original_advance=to_decimal(original_advance, "original_advance"),
        previously_recouped=to_decimal(previously_recouped, "previously_recouped"),
    )
