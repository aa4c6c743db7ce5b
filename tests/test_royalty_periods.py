"""Tests for royalty period derivation."""
from datetime import date, timedelta

import pytest

from publisher_royalties.core.exceptions import ValidationError
from publisher_royalties.services.royalty_periods import (
    PeriodSettings,
    RoyaltyPeriod,
    RoyaltyPeriodType,
    StatementFrequency,
    iter_periods,
    next_period,
    period_containing,
    previous_period,
)

CALENDAR_ANNUAL = PeriodSettings()
CALENDAR_QUARTERLY = PeriodSettings(frequency=StatementFrequency.QUARTERLY)


class TestPeriodContaining:

    def test_calendar_year(self):
        period = period_containing(CALENDAR_ANNUAL, date(2024, 6, 15))

        assert period == RoyaltyPeriod(date(2024, 1, 1), date(2024, 12, 31))

    def test_calendar_quarter(self):
        period = period_containing(CALENDAR_QUARTERLY, date(2024, 5, 10))

        assert period == RoyaltyPeriod(date(2024, 4, 1), date(2024, 6, 30))

    def test_period_boundaries_are_inclusive(self):
        assert period_containing(CALENDAR_QUARTERLY, date(2024, 3, 31)).end_date == date(2024, 3, 31)
        assert period_containing(CALENDAR_QUARTERLY, date(2024, 4, 1)).start_date == date(2024, 4, 1)

    def test_fiscal_year(self):
        settings = PeriodSettings(period_type=RoyaltyPeriodType.FISCAL_YEAR, fiscal_year_start=date(2020, 7, 1))

        period = period_containing(settings, date(2024, 3, 1))

        assert period == RoyaltyPeriod(date(2023, 7, 1), date(2024, 6, 30))

    def test_custom_anchor(self):
        settings = PeriodSettings(period_type="custom", start_month=10, start_day=15)

        period = period_containing(settings, date(2024, 10, 14))

        assert period == RoyaltyPeriod(date(2023, 10, 15), date(2024, 10, 14))

    def test_leap_day_anchor_falls_back_in_common_years(self):
        settings = PeriodSettings(period_type=RoyaltyPeriodType.CUSTOM, start_month=2, start_day=29)

        assert period_containing(settings, date(2023, 6, 1)) == RoyaltyPeriod(date(2023, 2, 28), date(2024, 2, 28))
        assert period_containing(settings, date(2024, 3, 1)) == RoyaltyPeriod(date(2024, 2, 29), date(2025, 2, 27))


class TestContiguity:

    @pytest.mark.parametrize("settings", [
        CALENDAR_ANNUAL,
        CALENDAR_QUARTERLY,
        PeriodSettings(period_type="custom", start_month=1, start_day=31, frequency="quarterly"),
        PeriodSettings(period_type="custom", start_month=2, start_day=29, frequency="annual"),
    ])
    def test_consecutive_periods_touch(self, settings):
        periods = list(iter_periods(settings, date(2023, 1, 1), date(2026, 12, 31)))

        for earlier, later in zip(periods, periods[1:]):
            assert later.start_date == earlier.end_date + timedelta(days=1)

    def test_iter_periods_covers_range(self):
        periods = list(iter_periods(CALENDAR_QUARTERLY, date(2024, 1, 1), date(2024, 12, 31)))

        assert len(periods) == 4
        assert periods[-1] == RoyaltyPeriod(date(2024, 10, 1), date(2024, 12, 31))

    def test_iter_periods_empty_range(self):
        assert list(iter_periods(CALENDAR_ANNUAL, date(2024, 2, 1), date(2024, 1, 1))) == []

    def test_next_and_previous(self):
        q2 = RoyaltyPeriod(date(2024, 4, 1), date(2024, 6, 30))

        assert next_period(CALENDAR_QUARTERLY, q2) == RoyaltyPeriod(date(2024, 7, 1), date(2024, 9, 30))
        assert previous_period(CALENDAR_QUARTERLY, q2) == RoyaltyPeriod(date(2024, 1, 1), date(2024, 3, 31))


class TestSettingsValidation:

    def test_custom_requires_month_and_day(self):
        with pytest.raises(ValidationError, match="required"):
            PeriodSettings(period_type=RoyaltyPeriodType.CUSTOM, start_month=3)

    def test_invalid_day_for_month(self):
        with pytest.raises(ValidationError, match="Day 30 is invalid for month 2"):
            PeriodSettings(period_type=RoyaltyPeriodType.CUSTOM, start_month=2, start_day=30)

    def test_fiscal_year_requires_start(self):
        with pytest.raises(ValidationError):
            PeriodSettings(period_type=RoyaltyPeriodType.FISCAL_YEAR)

    def test_period_end_before_start(self):
        with pytest.raises(ValidationError):
            RoyaltyPeriod(date(2024, 2, 1), date(2024, 1, 1))

    def test_contains(self):
        period = RoyaltyPeriod(date(2024, 1, 1), date(2024, 3, 31))

        assert period.contains(date(2024, 3, 31))
        assert not period.contains(date(2024, 4, 1))
