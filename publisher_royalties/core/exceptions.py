"""
Typed exceptions for the royalty engine.

    RoyaltyEngineError (base)
    |
    +-- ValidationError       malformed or out-of-range input
    +-- DataIntegrityError    a stored invariant would be violated
    +-- CalculationError      required upstream data is missing

Every exception carries a machine-readable ``code`` and a ``details`` dict so
callers can branch on type and report structured data instead of parsing
messages. None of these are retried by the engine itself; the orchestrating
workflow decides whether to skip the author-period or abort the batch.
"""
from typing import Any


class RoyaltyEngineError(Exception):
    """Base class for every error raised by the engine."""

    code: str = "ROYALTY_ENGINE_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code} message={self.message!r}>"


class ValidationError(RoyaltyEngineError):
    """Input is malformed or out of range (negative units, bad prefix, ...)."""

    code = "VALIDATION_ERROR"


class DataIntegrityError(RoyaltyEngineError):
    """
    A persisted invariant would be violated.

    Fatal for the author-period being processed; surfaced for operator
    investigation and never clamped away.
    """

    code = "DATA_INTEGRITY_ERROR"


class CalculationError(RoyaltyEngineError):
    """Required upstream data (contract, rate schedule, sales) is missing."""

    code = "CALCULATION_ERROR"
