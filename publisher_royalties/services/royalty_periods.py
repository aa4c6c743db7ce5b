"""
Royalty period derivation from tenant settings.

The anchor (month, day) marks the first day of a royalty year:
- calendar_year: January 1
- fiscal_year: the tenant's fiscal year start
- custom: an explicit month and day

Statement frequency cuts each royalty year into 12-month (annual) or
3-month (quarterly) periods. Every period ends the day before the next one
starts, so consecutive periods neither overlap nor leave gaps. An anchor day
past the end of a shorter month (e.g. Feb 29 in a non-leap year, or the 31st
in a 30-day month) falls back to that month's last day.
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterator, Optional, Tuple

from publisher_royalties.core.exceptions import ValidationError

# Feb allows 29 so leap-day anchors can be stored
DAYS_IN_MONTH = (31, 29, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


class RoyaltyPeriodType(str, Enum):
    CALENDAR_YEAR = "calendar_year"
    FISCAL_YEAR = "fiscal_year"
    CUSTOM = "custom"


class StatementFrequency(str, Enum):
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


FREQUENCY_MONTHS = {
    StatementFrequency.QUARTERLY: 3,
    StatementFrequency.ANNUAL: 12,
}


def is_valid_day_for_month(month: int, day: int) -> bool:
    if month < 1 or month > 12:
        return False
    return 1 <= day <= DAYS_IN_MONTH[month - 1]


@dataclass(frozen=True)
class PeriodSettings:
    """Tenant royalty period configuration."""
    period_type: RoyaltyPeriodType = RoyaltyPeriodType.CALENDAR_YEAR
    frequency: StatementFrequency = StatementFrequency.ANNUAL
    start_month: Optional[int] = None
    start_day: Optional[int] = None
    fiscal_year_start: Optional[date] = None

    def __post_init__(self):
        object.__setattr__(self, "period_type", RoyaltyPeriodType(self.period_type))
        object.__setattr__(self, "frequency", StatementFrequency(self.frequency))

        if self.period_type == RoyaltyPeriodType.CUSTOM:
            if self.start_month is None or self.start_day is None:
                raise ValidationError("Start month and day are required for a custom royalty period")
        if self.period_type == RoyaltyPeriodType.FISCAL_YEAR and self.fiscal_year_start is None:
            if self.start_month is None or self.start_day is None:
                raise ValidationError("Fiscal year royalty periods need a fiscal year start")
        if self.start_month is not None and self.start_day is not None:
            if not is_valid_day_for_month(self.start_month, self.start_day):
                raise ValidationError(
                    f"Day {self.start_day} is invalid for month {self.start_month}",
                    start_month=self.start_month,
                    start_day=self.start_day,
                )

    @property
    def anchor(self) -> Tuple[int, int]:
        """(month, day) on which a royalty year begins."""
        if self.period_type == RoyaltyPeriodType.CALENDAR_YEAR:
            return 1, 1
        if self.period_type == RoyaltyPeriodType.FISCAL_YEAR and self.fiscal_year_start is not None:
            return self.fiscal_year_start.month, self.fiscal_year_start.day
        return self.start_month, self.start_day

    @property
    def months_per_period(self) -> int:
        return FREQUENCY_MONTHS[self.frequency]


@dataclass(frozen=True)
class RoyaltyPeriod:
    """Inclusive date range covered by one statement."""
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValidationError(
                f"Period end {self.end_date} is before start {self.start_date}",
                start_date=self.start_date.isoformat(),
                end_date=self.end_date.isoformat(),
            )

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()}..{self.end_date.isoformat()}"


def _boundary(settings: PeriodSettings, index: int) -> date:
    """Start date of the index-th period counted from the anchor in year 1."""
    anchor_month, anchor_day = settings.anchor
    months = anchor_month - 1 + index * settings.months_per_period
    year, month = 1 + months // 12, months % 12 + 1
    day = min(anchor_day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def period_containing(settings: PeriodSettings, day: date) -> RoyaltyPeriod:
    anchor_month, _ = settings.anchor
    step = settings.months_per_period
    index = ((day.year - 1) * 12 + day.month - anchor_month) // step

    while _boundary(settings, index) > day:
        index -= 1
    while _boundary(settings, index + 1) <= day:
        index += 1

    return RoyaltyPeriod(
        start_date=_boundary(settings, index),
        end_date=_boundary(settings, index + 1) - timedelta(days=1),
    )


def next_period(settings: PeriodSettings, period: RoyaltyPeriod) -> RoyaltyPeriod:
    return period_containing(settings, period.end_date + timedelta(days=1))


def previous_period(settings: PeriodSettings, period: RoyaltyPeriod) -> RoyaltyPeriod:
    return period_containing(settings, period.start_date - timedelta(days=1))


def iter_periods(settings: PeriodSettings, start: date, end: date) -> Iterator[RoyaltyPeriod]:
    """Periods overlapping [start, end], in order."""
    if end < start:
        return
    period = period_containing(settings, start)
    while period.start_date <= end:
        yield period
        period = next_period(settings, period)
