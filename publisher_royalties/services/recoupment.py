"""
Advance recoupment.

RECOUPMENT RULE:
  remaining_before = original_advance - previously_recouped
  this_period_recoupment = min(gross_royalty, remaining_before)
  net_payable = gross_royalty - this_period_recoupment
  remaining_advance = remaining_before - this_period_recoupment

The running balance is never mutated in place. Callers pass the recouped
to date figure in and persist this period's recoupment as a new ledger entry.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Tuple

from publisher_royalties.core.exceptions import DataIntegrityError
from publisher_royalties.core.money import ZERO, Numeric, require_non_negative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoupmentResult:
    original_advance: Decimal
    previously_recouped: Decimal
    this_period_recoupment: Decimal
    remaining_advance: Decimal
    gross_royalty: Decimal
    net_payable: Decimal

    @property
    def is_fully_recouped(self) -> bool:
        return self.remaining_advance == ZERO


def apply_recoupment(
    gross_royalty: Numeric,
    previously_recouped: Numeric,
    original_advance: Numeric,
) -> RecoupmentResult:
    """
    Withhold as much of the period's royalty as the unearned advance allows.

    Raises:
        ValidationError: negative inputs
        DataIntegrityError: previously recouped exceeds the advance
    """
    gross = require_non_negative(gross_royalty, "gross_royalty")
    recouped = require_non_negative(previously_recouped, "previously_recouped")
    advance = require_non_negative(original_advance, "original_advance")

    if recouped > advance:
        logger.error(f"Recouped to date {recouped} exceeds original advance {advance}")
        raise DataIntegrityError(
            f"Previously recouped {recouped} exceeds original advance {advance}",
            previously_recouped=str(recouped),
            original_advance=str(advance),
        )

    remaining_before = advance - recouped
    this_period = min(gross, remaining_before)

    return RecoupmentResult(
        original_advance=advance,
        previously_recouped=recouped,
        this_period_recoupment=this_period,
        remaining_advance=remaining_before - this_period,
        gross_royalty=gross,
        net_payable=gross - this_period,
    )


@dataclass(frozen=True)
class AdvanceLedger:
    """Recoupment state of one contract between statement runs."""
    original_advance: Decimal
    recouped_to_date: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return self.original_advance - self.recouped_to_date

    def apply(self, gross_royalty: Numeric) -> Tuple[RecoupmentResult, "AdvanceLedger"]:
        result = apply_recoupment(gross_royalty, self.recouped_to_date, self.original_advance)
        next_ledger = AdvanceLedger(
            original_advance=result.original_advance,
            recouped_to_date=result.previously_recouped + result.this_period_recoupment,
        )
        return result, next_ledger
