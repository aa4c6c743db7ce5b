"""
Rate tier resolution.

A contract's royalty rate table for one format is a ``RateSchedule``:

- flat:     one open-ended tier, every unit earns the same rate
- period:   tiers keyed by units sold in the statement period
- lifetime: tiers keyed by cumulative units ever sold, so the period's units
            continue from where prior sales left off

Tier bands are half-open on cumulative unit positions: a tier with
min_quantity=0 and max_quantity=1000 covers units 0..999 (1000 units), and
the next tier must start at 1000. Only the final tier may be open-ended.

Royalty per tier:
    round_cents(units_in_tier * unit_price * rate)

Tier amounts are rounded before they are summed, matching the granularity
shown on statements.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from publisher_royalties.core.exceptions import CalculationError, ValidationError
from publisher_royalties.core.money import (
    ZERO,
    Numeric,
    require_non_negative,
    require_units,
    round_currency,
    to_decimal,
)
from publisher_royalties.models.contract import ContractFormat, RateMode


@dataclass(frozen=True)
class RateTier:
    """A unit band [min_quantity, max_quantity) with its royalty rate."""
    min_quantity: int
    rate: Decimal
    max_quantity: Optional[int] = None

    @property
    def is_open_ended(self) -> bool:
        return self.max_quantity is None

    def capacity_from(self, position: int) -> Optional[int]:
        """Units this tier can still absorb starting at a cumulative position."""
        if self.max_quantity is None:
            return None
        return max(self.max_quantity - position, 0)


@dataclass(frozen=True)
class AppliedTier:
    """How many units of the period landed in one tier, and what they earned."""
    min_quantity: int
    max_quantity: Optional[int]
    rate: Decimal
    units: int
    royalty_amount: Decimal


@dataclass(frozen=True)
class RoyaltyComputation:
    royalty_amount: Decimal
    applied_tiers: Tuple[AppliedTier, ...] = field(default_factory=tuple)

    @property
    def units(self) -> int:
        return sum(t.units for t in self.applied_tiers)


def _build_tier(raw: RateTier | dict) -> RateTier:
    if isinstance(raw, RateTier):
        min_q, max_q, rate = raw.min_quantity, raw.max_quantity, raw.rate
    else:
        try:
            min_q = raw["min_quantity"]
            rate = raw["rate"]
        except KeyError as e:
            raise ValidationError(f"Tier is missing {e.args[0]}", tier=raw)
        max_q = raw.get("max_quantity")

    require_units(min_q, "min_quantity")
    if max_q is not None:
        require_units(max_q, "max_quantity")
    rate = to_decimal(rate, "rate")
    if rate < 0 or rate > 1:
        raise ValidationError(f"Tier rate must be between 0 and 1, got {rate}", rate=str(rate))
    return RateTier(min_quantity=min_q, rate=rate, max_quantity=max_q)


class RateSchedule:
    """
    Validated royalty rate table for one contract format.

    Raises:
        ValidationError: on empty tables, a first tier not starting at 0,
            non-increasing lower bounds, overlaps or gaps between tiers, an
            open-ended tier that is not last, or an out-of-range rate
    """

    def __init__(
        self,
        mode: RateMode | str,
        tiers: Iterable[RateTier | dict],
        format: ContractFormat | str | None = None,
    ):
        try:
            self.mode = RateMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown rate mode: {mode!r}", mode=mode)
        self.format = ContractFormat(format) if format is not None else None
        self.tiers: Tuple[RateTier, ...] = tuple(_build_tier(t) for t in tiers)
        self._validate()

    @classmethod
    def flat(cls, rate: Numeric, format: ContractFormat | str | None = None) -> "RateSchedule":
        return cls(RateMode.FLAT, [RateTier(min_quantity=0, rate=to_decimal(rate, "rate"))], format=format)

    def _validate(self) -> None:
        if not self.tiers:
            raise ValidationError("Rate schedule needs at least one tier", format=self._format_value)

        if self.mode == RateMode.FLAT and len(self.tiers) != 1:
            raise ValidationError(
                f"Flat rate schedule must have exactly one tier, got {len(self.tiers)}",
                format=self._format_value,
            )

        if self.tiers[0].min_quantity != 0:
            raise ValidationError(
                f"First tier must start at 0 units, got {self.tiers[0].min_quantity}",
                format=self._format_value,
            )

        for index, tier in enumerate(self.tiers):
            if tier.max_quantity is not None and tier.max_quantity <= tier.min_quantity:
                raise ValidationError(
                    f"Tier {index} upper bound {tier.max_quantity} must exceed lower bound {tier.min_quantity}",
                    tier_index=index,
                )

            is_last = index == len(self.tiers) - 1
            if is_last:
                if tier.max_quantity is not None:
                    raise ValidationError(
                        f"Final tier must be open-ended, got upper bound {tier.max_quantity}",
                        tier_index=index,
                    )
                continue

            following = self.tiers[index + 1]
            if following.min_quantity <= tier.min_quantity:
                raise ValidationError(
                    f"Tier lower bounds must be strictly increasing: "
                    f"{tier.min_quantity} then {following.min_quantity}",
                    tier_index=index + 1,
                )
            if tier.max_quantity is None:
                raise ValidationError(
                    f"Only the final tier may be open-ended (tier {index})",
                    tier_index=index,
                )
            if tier.max_quantity != following.min_quantity:
                kind = "overlaps" if tier.max_quantity > following.min_quantity else "leaves a gap before"
                raise ValidationError(
                    f"Tier {index} ending at {tier.max_quantity} {kind} tier {index + 1} "
                    f"starting at {following.min_quantity}",
                    tier_index=index,
                )

    @property
    def _format_value(self) -> Optional[str]:
        return self.format.value if self.format else None

    @property
    def is_tiered(self) -> bool:
        return self.mode != RateMode.FLAT

    def __repr__(self) -> str:
        return f"<RateSchedule mode={self.mode.value} format={self._format_value} tiers={len(self.tiers)}>"


def _walk_tiers(
    schedule: RateSchedule,
    start_position: int,
    units: int,
    unit_price: Decimal,
) -> RoyaltyComputation:
    applied: List[AppliedTier] = []
    total = ZERO
    position = start_position
    remaining = units

    for tier in schedule.tiers:
        if remaining == 0:
            break

        capacity = tier.capacity_from(position)
        if capacity == 0:
            # Cumulative position is already past this tier
            continue

        quantity = remaining if capacity is None else min(remaining, capacity)
        amount = round_currency(Decimal(quantity) * unit_price * tier.rate)

        applied.append(AppliedTier(
            min_quantity=tier.min_quantity,
            max_quantity=tier.max_quantity,
            rate=tier.rate,
            units=quantity,
            royalty_amount=amount,
        ))
        total += amount
        position += quantity
        remaining -= quantity

    return RoyaltyComputation(royalty_amount=total, applied_tiers=tuple(applied))


def compute_royalty_continuing_from(
    schedule: RateSchedule,
    units_before: int,
    units_sold: int,
    unit_price: Numeric,
) -> RoyaltyComputation:
    """
    Walk the tier table starting at an explicit cumulative offset.

    Splitting a unit count into consecutive calls that thread the offset
    yields the same royalty as a single call over the combined count.
    """
    require_units(units_before, "units_before")
    require_units(units_sold, "units_sold")
    price = require_non_negative(unit_price, "unit_price")

    if units_sold == 0:
        return RoyaltyComputation(royalty_amount=ZERO)

    return _walk_tiers(schedule, units_before, units_sold, price)


def compute_royalty(
    schedule: RateSchedule,
    units_sold: int,
    unit_price: Numeric,
    lifetime_units_before: Optional[int] = None,
) -> RoyaltyComputation:
    """
    Compute the royalty owed for units sold in a period.

    Args:
        schedule: Validated rate table for the format
        units_sold: Net units sold in the period (after returns)
        unit_price: Price basis per unit
        lifetime_units_before: Cumulative units sold before the period;
            required for lifetime schedules, ignored otherwise

    Returns:
        RoyaltyComputation with the total and the per-tier allocation

    Raises:
        ValidationError: negative units or price
        CalculationError: lifetime schedule without lifetime history
    """
    if schedule.mode == RateMode.LIFETIME:
        if lifetime_units_before is None:
            raise CalculationError(
                "Lifetime rate schedule requires lifetime units sold before the period",
                format=schedule._format_value,
            )
        offset = lifetime_units_before
    else:
        offset = 0

    return compute_royalty_continuing_from(schedule, offset, units_sold, unit_price)
