"""Pydantic schemas for the persisted statement calculations document."""
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from publisher_royalties.models.contract import ContractFormat


class _Document(BaseModel):
    # Frozen so a built statement cannot drift from what was persisted
    model_config = ConfigDict(frozen=True)


class PeriodBounds(_Document):
    start_date: date
    end_date: date


class TierBreakdown(_Document):
    """Units of one format that landed in one tier."""
    min_quantity: int
    max_quantity: Optional[int] = Field(default=None, description="Exclusive upper bound, None = open ended")
    rate: Decimal
    units_applied: int
    royalty_amount: Decimal


class FormatBreakdown(_Document):
    format: ContractFormat
    rate_mode: str
    total_quantity: int = Field(description="Units sold in the period")
    total_revenue: Decimal
    returned_quantity: int = Field(description="Approved returned units in the period")
    returned_revenue: Decimal
    unit_price: Decimal = Field(description="Sale price basis used for returns and royalties")
    net_quantity: int = Field(description="Raw net units, negative when returns exceed sales")
    net_revenue: Decimal
    royalty_quantity: int = Field(description="Net units floored at zero")
    lifetime_quantity_before: Optional[int] = None
    tier_breakdowns: List[TierBreakdown] = Field(default_factory=list)
    format_royalty: Decimal


class AdvanceRecoupment(_Document):
    original_advance: Decimal
    previously_recouped: Decimal
    this_period_recoupment: Decimal
    remaining_advance: Decimal


class SplitCalculationRecord(_Document):
    title_total_royalty: Decimal
    ownership_percentage: Decimal
    is_split_calculation: bool = True


class StatementCalculations(_Document):
    """
    Full calculation record for one author, title and period.

    Stored verbatim in Statement.calculations and consumed by renderers.
    """
    period: PeriodBounds
    format_breakdowns: List[FormatBreakdown] = Field(default_factory=list)
    returns_deduction: Decimal
    gross_royalty: Decimal = Field(description="Author's royalty before recoupment")
    advance_recoupment: AdvanceRecoupment
    net_payable: Decimal
    split_calculation: Optional[SplitCalculationRecord] = None

    def to_document(self) -> dict:
        """JSON-compatible dict; Decimals become strings."""
        return self.model_dump(mode="json")

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_document(cls, document: dict) -> "StatementCalculations":
        return cls.model_validate(document)
