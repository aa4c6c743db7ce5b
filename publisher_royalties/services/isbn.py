"""
ISBN-13 prefix blocks.

A registrant prefix (7-12 digits, starting 978 or 979) leaves
12 - len(prefix) body digits for sequence numbers. A block of N ISBNs uses
sequence numbers 0..N-1, zero padded to the body width, followed by the
check digit:

    sum(digit * (1 if index even else 3) for the first 12 digits)
    check = (10 - sum % 10) % 10

Blocks are produced lazily so a million-ISBN block never sits in memory.
"""
import re
from typing import Iterator

from publisher_royalties.core.exceptions import ValidationError
from publisher_royalties.models.isbn import GenerationStatus

BLOCK_SIZES = (10, 100, 1000, 10000, 100000, 1000000)

PREFIX_MIN_LENGTH = 7
PREFIX_MAX_LENGTH = 12
EAN_PREFIXES = ("978", "979")

_SEPARATORS = re.compile(r"[\s-]")
_ASCII_DIGITS = re.compile(r"[0-9]+")

# Legal generation status moves; failed -> generating is a retry
TRANSITIONS = {
    GenerationStatus.PENDING: {GenerationStatus.GENERATING},
    GenerationStatus.GENERATING: {GenerationStatus.COMPLETED, GenerationStatus.FAILED},
    GenerationStatus.FAILED: {GenerationStatus.GENERATING},
    GenerationStatus.COMPLETED: set(),
}


def normalize_prefix(prefix: str) -> str:
    """Strip hyphens and spaces and validate a registrant prefix."""
    if not isinstance(prefix, str):
        raise ValidationError(f"ISBN prefix must be a string, got {type(prefix).__name__}")
    digits = _SEPARATORS.sub("", prefix)
    if not _ASCII_DIGITS.fullmatch(digits):
        raise ValidationError(f"ISBN prefix must contain only digits: {prefix!r}", prefix=prefix)
    if not PREFIX_MIN_LENGTH <= len(digits) <= PREFIX_MAX_LENGTH:
        raise ValidationError(
            f"ISBN prefix must be {PREFIX_MIN_LENGTH}-{PREFIX_MAX_LENGTH} digits, got {len(digits)}",
            prefix=prefix,
        )
    if not digits.startswith(EAN_PREFIXES):
        raise ValidationError(f"ISBN prefix must start with 978 or 979: {prefix!r}", prefix=prefix)
    return digits


def body_width(prefix: str) -> int:
    return PREFIX_MAX_LENGTH - len(prefix)


def validate_block_size(prefix: str, block_size: int) -> None:
    if block_size not in BLOCK_SIZES:
        raise ValidationError(
            f"Block size must be one of {', '.join(str(s) for s in BLOCK_SIZES)}, got {block_size}",
            block_size=block_size,
        )
    capacity = 10 ** body_width(prefix)
    if block_size > capacity:
        raise ValidationError(
            f"Prefix {format_prefix(prefix)} leaves room for {capacity} ISBNs, not {block_size}",
            prefix=prefix,
            block_size=block_size,
        )


def calculate_check_digit(first_12: str) -> str:
    if len(first_12) != 12 or not _ASCII_DIGITS.fullmatch(first_12):
        raise ValidationError(f"Check digit needs exactly 12 digits, got {first_12!r}")
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(first_12))
    return str((10 - total % 10) % 10)


def is_valid_isbn13(value: str) -> bool:
    if not isinstance(value, str):
        return False
    digits = _SEPARATORS.sub("", value)
    if len(digits) != 13 or not _ASCII_DIGITS.fullmatch(digits) or not digits.startswith(EAN_PREFIXES):
        return False
    return calculate_check_digit(digits[:12]) == digits[12]


def isbn_at(prefix: str, sequence: int) -> str:
    """The ISBN-13 for one sequence number within a prefix."""
    first_12 = prefix + str(sequence).zfill(body_width(prefix))
    return first_12 + calculate_check_digit(first_12)


def generate_block(prefix: str, block_size: int, start: int = 0) -> Iterator[str]:
    """
    Lazily yield the ISBNs of a block from sequence number start.

    Arguments are validated on call, before anything is yielded. A retried
    generation passes the count already persisted as start so no ISBN is
    emitted twice.
    """
    prefix = normalize_prefix(prefix)
    validate_block_size(prefix, block_size)
    if isinstance(start, bool) or not isinstance(start, int) or not 0 <= start <= block_size:
        raise ValidationError(f"Start must be between 0 and {block_size}, got {start!r}", start=start)

    return (isbn_at(prefix, sequence) for sequence in range(start, block_size))


def format_prefix(prefix: str) -> str:
    """978-1234567 style display form."""
    return f"{prefix[:3]}-{prefix[3:]}" if len(prefix) > 3 else prefix


def format_block_size(size: int) -> str:
    return f"{size:,}"


def transition(current: GenerationStatus, target: GenerationStatus) -> GenerationStatus:
    current, target = GenerationStatus(current), GenerationStatus(target)
    if target not in TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot move ISBN generation from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
    return target
