"""Tests for rate tier resolution."""
from decimal import Decimal

import pytest

from publisher_royalties.core.exceptions import CalculationError, ValidationError
from publisher_royalties.models.contract import RateMode
from publisher_royalties.services.rate_tiers import (
    RateSchedule,
    RateTier,
    compute_royalty,
    compute_royalty_continuing_from,
)

ESCALATING = [
    {"min_quantity": 0, "max_quantity": 1000, "rate": "0.10"},
    {"min_quantity": 1000, "max_quantity": None, "rate": "0.15"},
]


def period_schedule():
    return RateSchedule(RateMode.PERIOD, ESCALATING, format="physical")


def lifetime_schedule():
    return RateSchedule(RateMode.LIFETIME, ESCALATING, format="physical")


class TestPeriodTiers:

    def test_units_split_across_tier_boundary(self):
        """1000 units at 10% then 500 at 15%, $20 each: $2000 + $1500."""
        result = compute_royalty(period_schedule(), 1500, Decimal("20"))

        assert result.royalty_amount == Decimal("3500.00")
        assert [t.units for t in result.applied_tiers] == [1000, 500]
        assert [t.royalty_amount for t in result.applied_tiers] == [Decimal("2000.00"), Decimal("1500.00")]
        assert result.units == 1500

    def test_units_within_first_tier(self):
        result = compute_royalty(period_schedule(), 999, Decimal("20"))

        assert result.royalty_amount == Decimal("1998.00")
        assert len(result.applied_tiers) == 1

    def test_period_mode_ignores_lifetime_history(self):
        result = compute_royalty(period_schedule(), 500, Decimal("20"), lifetime_units_before=5000)

        assert result.royalty_amount == Decimal("1000.00")

    def test_zero_units_is_zero_royalty(self):
        result = compute_royalty(period_schedule(), 0, Decimal("20"))

        assert result.royalty_amount == Decimal("0")
        assert result.applied_tiers == ()

    def test_tier_amounts_rounded_before_summing(self):
        """Two tiers of 0.033 each round to 0.03, giving 0.06 rather than 0.07."""
        schedule = RateSchedule(
            RateMode.PERIOD,
            [
                {"min_quantity": 0, "max_quantity": 1, "rate": "0.10"},
                {"min_quantity": 1, "rate": "0.10"},
            ],
        )

        result = compute_royalty(schedule, 2, Decimal("0.33"))

        assert result.royalty_amount == Decimal("0.06")


class TestFlatRate:

    def test_flat_rate(self):
        schedule = RateSchedule.flat("0.10", format="ebook")

        result = compute_royalty(schedule, 150, Decimal("12.50"))

        assert result.royalty_amount == Decimal("187.50")
        assert schedule.is_tiered is False

    def test_flat_rate_rejects_multiple_tiers(self):
        with pytest.raises(ValidationError, match="exactly one tier"):
            RateSchedule(RateMode.FLAT, ESCALATING)


class TestLifetimeTiers:

    def test_continues_from_lifetime_position(self):
        """800 units sold before: 200 more at 10%, the remaining 300 at 15%."""
        result = compute_royalty(lifetime_schedule(), 500, Decimal("20"), lifetime_units_before=800)

        assert result.royalty_amount == Decimal("1300.00")
        assert [t.units for t in result.applied_tiers] == [200, 300]

    def test_already_past_boundary_uses_higher_rate(self):
        result = compute_royalty(lifetime_schedule(), 100, Decimal("20"), lifetime_units_before=5000)

        assert result.royalty_amount == Decimal("300.00")
        assert [t.rate for t in result.applied_tiers] == [Decimal("0.15")]

    def test_exactly_at_boundary(self):
        result = compute_royalty(lifetime_schedule(), 10, Decimal("20"), lifetime_units_before=1000)

        assert result.royalty_amount == Decimal("30.00")

    def test_missing_lifetime_history_raises(self):
        with pytest.raises(CalculationError):
            compute_royalty(lifetime_schedule(), 100, Decimal("20"))


class TestAdditivity:

    @pytest.mark.parametrize("first", [0, 1, 400, 999, 1000, 1200])
    @pytest.mark.parametrize("second", [0, 1, 600, 2000])
    def test_period_split_equals_combined(self, first, second):
        schedule = period_schedule()
        price = Decimal("20")

        part_one = compute_royalty(schedule, first, price)
        part_two = compute_royalty_continuing_from(schedule, first, second, price)
        combined = compute_royalty(schedule, first + second, price)

        assert part_one.royalty_amount + part_two.royalty_amount == combined.royalty_amount

    @pytest.mark.parametrize("history", [0, 700, 1000, 3000])
    @pytest.mark.parametrize("first,second", [(0, 500), (300, 300), (250, 1750)])
    def test_lifetime_split_equals_combined(self, history, first, second):
        schedule = lifetime_schedule()
        price = Decimal("20")

        part_one = compute_royalty(schedule, first, price, lifetime_units_before=history)
        part_two = compute_royalty_continuing_from(schedule, history + first, second, price)
        combined = compute_royalty(schedule, first + second, price, lifetime_units_before=history)

        assert part_one.royalty_amount + part_two.royalty_amount == combined.royalty_amount


class TestScheduleValidation:

    def test_rejects_empty_table(self):
        with pytest.raises(ValidationError, match="at least one tier"):
            RateSchedule(RateMode.PERIOD, [])

    def test_rejects_first_tier_not_at_zero(self):
        with pytest.raises(ValidationError, match="start at 0"):
            RateSchedule(RateMode.PERIOD, [{"min_quantity": 10, "rate": "0.1"}])

    def test_rejects_decreasing_bounds(self):
        with pytest.raises(ValidationError, match="strictly increasing"):
            RateSchedule(
                RateMode.PERIOD,
                [
                    RateTier(min_quantity=0, max_quantity=1000, rate=Decimal("0.1")),
                    RateTier(min_quantity=1000, max_quantity=2000, rate=Decimal("0.12")),
                    RateTier(min_quantity=500, rate=Decimal("0.15")),
                ],
            )

    def test_rejects_duplicate_bounds(self):
        with pytest.raises(ValidationError):
            RateSchedule(
                RateMode.PERIOD,
                [
                    {"min_quantity": 0, "max_quantity": 100, "rate": "0.1"},
                    {"min_quantity": 0, "rate": "0.15"},
                ],
            )

    def test_rejects_overlap(self):
        with pytest.raises(ValidationError, match="overlaps"):
            RateSchedule(
                RateMode.PERIOD,
                [
                    {"min_quantity": 0, "max_quantity": 1000, "rate": "0.1"},
                    {"min_quantity": 900, "rate": "0.15"},
                ],
            )

    def test_rejects_gap(self):
        with pytest.raises(ValidationError, match="gap"):
            RateSchedule(
                RateMode.PERIOD,
                [
                    {"min_quantity": 0, "max_quantity": 1000, "rate": "0.1"},
                    {"min_quantity": 1500, "rate": "0.15"},
                ],
            )

    def test_rejects_open_tier_before_last(self):
        with pytest.raises(ValidationError, match="open-ended"):
            RateSchedule(
                RateMode.PERIOD,
                [
                    {"min_quantity": 0, "rate": "0.1"},
                    {"min_quantity": 1000, "rate": "0.15"},
                ],
            )

    def test_rejects_bounded_final_tier(self):
        with pytest.raises(ValidationError, match="Final tier"):
            RateSchedule(RateMode.PERIOD, [{"min_quantity": 0, "max_quantity": 1000, "rate": "0.1"}])

    def test_rejects_rate_out_of_range(self):
        with pytest.raises(ValidationError, match="between 0 and 1"):
            RateSchedule(RateMode.PERIOD, [{"min_quantity": 0, "rate": "1.5"}])

    def test_rejects_missing_rate(self):
        with pytest.raises(ValidationError, match="missing rate"):
            RateSchedule(RateMode.PERIOD, [{"min_quantity": 0}])

    def test_rejects_unknown_mode(self):
        with pytest.raises(ValidationError, match="Unknown rate mode"):
            RateSchedule("weekly", ESCALATING)


class TestInputValidation:

    def test_negative_units(self):
        with pytest.raises(ValidationError):
            compute_royalty(period_schedule(), -1, Decimal("20"))

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            compute_royalty(period_schedule(), 10, Decimal("-1"))

    def test_fractional_units(self):
        with pytest.raises(ValidationError):
            compute_royalty(period_schedule(), 1.5, Decimal("20"))
