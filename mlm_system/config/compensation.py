"""
Compensation constants and the per-level percentage schedule.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import logging

from config import Config

logger = logging.getLogger(__name__)

# Constants (fallbacks when Config is not initialized)
DEFAULT_BASE_PERCENTAGE = Decimal("0.10")
DEFAULT_DECAY_ENABLED = True
CURRENCY_MINOR_UNIT = Decimal("0.01")

# Storage precision for ledger amounts
AMOUNT_QUANTUM = Decimal("0.00000001")

DECAY_FACTOR = Decimal("2")


def get_minor_unit() -> Decimal:
    """Smallest currency unit, used to decide whether an amount is zero."""
    return Decimal(str(Config.get(Config.CURRENCY_MINOR_UNIT, CURRENCY_MINOR_UNIT)))


def normalize_percentage(value) -> Decimal:
    """
    Accept either a fraction (0-1) or a percent (0-100).

    Args:
        value: 0.1, "0.1", 10 or "10" all mean ten percent

    Returns:
        Fraction as Decimal

    Raises:
        ValueError: If value is negative, above 100 or not a number
    """
    percentage = Decimal(str(value))
    if not percentage.is_finite() or percentage < 0:
        raise ValueError(f"basePercentage must be a non-negative number, got {value}")

    if percentage > 1:
        percentage = percentage / 100

    if percentage > 1:
        raise ValueError(f"basePercentage must be between 0 and 1, got {value}")

    return percentage


def percentage_for_level(
        basePercentage: Decimal,
        level: int,
        decayEnabled: bool = True
) -> Decimal:
    """
    Percentage paid to the ancestor at `level` (1 = immediate parent).

    With decay every level halves the previous one:
    10%, 5%, 2.5%, 1.25%, 0.625%, ...
    Without decay every level receives the flat base percentage.
    """
    if level < 1:
        raise ValueError(f"level must be >= 1, got {level}")

    base = Decimal(str(basePercentage))
    if not decayEnabled:
        return base

    return base / (DECAY_FACTOR ** (level - 1))


def credit_amount(bvAmount: Decimal, percentage: Decimal) -> Decimal:
    """Ledger amount for one level, stored unrounded to AMOUNT_QUANTUM."""
    return (Decimal(str(bvAmount)) * percentage).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def rounds_to_zero(amount: Decimal, minorUnit: Optional[Decimal] = None) -> bool:
    """True when amount is zero in the currency's minimal unit."""
    unit = minorUnit if minorUnit is not None else get_minor_unit()
    return amount.quantize(unit, rounding=ROUND_HALF_UP) == 0
