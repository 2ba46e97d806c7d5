# ============================================================================
# Rate Calculator
# ============================================================================
"""
Percentage and average helpers shared by every analytics component.

All percentages in the analytics layer go through ``rate`` so the
zero-denominator policy is applied in one place: when nothing is required,
the requirement is considered fully satisfied (100.0).

Averages and period-over-period growth are not rates. They fall back to 0.0
on an empty denominator and are kept separate on purpose.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]

_ONE_DECIMAL = Decimal("0.1")


def as_number(value: Optional[Number]) -> float:
    """Treat NULL aggregates from the database as 0"""
    if value is None:
        return 0.0
    return float(value)


def round1(value: Number) -> float:
    """Round to one decimal place, halves away from zero"""
    return float(Decimal(str(value)).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def rate(numerator: Optional[Number], denominator: Optional[Number]) -> float:
    """
    Percentage of ``numerator`` over ``denominator`` in [0, 100].

    Args:
        numerator: Satisfied count (e.g. volunteers holding a valid document)
        denominator: Required count

    Returns:
        ``numerator / denominator * 100`` rounded to one decimal place.
        100.0 when the denominator is 0. Values above 100 are clamped and
        logged, since they mean the two counts were taken over different sets.
    """
    numerator = as_number(numerator)
    denominator = as_number(denominator)

    if denominator <= 0:
        return 100.0

    if numerator > denominator:
        logger.warning(
            f"Rate numerator exceeds denominator ({numerator} > {denominator}); clamping to 100"
        )
        return 100.0

    if numerator < 0:
        logger.warning(f"Negative rate numerator {numerator}; clamping to 0")
        return 0.0

    return round1(numerator / denominator * 100)


def safe_average(total: Optional[Number], count: Optional[Number]) -> float:
    """Average per item, 0.0 when there are no items"""
    count = as_number(count)
    if count <= 0:
        return 0.0
    return round1(as_number(total) / count)


def growth_rate(current: Optional[Number], previous: Optional[Number]) -> float:
    """Percent change from ``previous`` to ``current``; 0.0 without a baseline"""
    current = as_number(current)
    previous = as_number(previous)
    if previous <= 0:
        return 0.0
    return round1((current - previous) / previous * 100)
