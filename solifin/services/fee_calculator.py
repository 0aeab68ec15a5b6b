"""
Fee Calculator - Pure fee / commission arithmetic shared by every payment flow
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

from solifin.models import FeeBreakdown, FeeSchedule

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[str, int, float, Decimal]


def quantize(value: Decimal) -> Decimal:
    """Round a money value to cents, half up"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Number) -> Decimal:
    """
    Parse a user-entered amount

    Args:
        value: Amount as typed (str) or already numeric

    Returns:
        Decimal amount (not rounded)

    Raises:
        ValueError: Blank, non-numeric, NaN or infinite input
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")

    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1
        value = str(value)

    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            raise ValueError("Amount is required")

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid amount: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    return amount


def calculate_fees(
    amount: Number,
    fee_percentage: Number,
    commission_percentage: Number = 0
) -> FeeBreakdown:
    """
    Derive fee, commission and total to debit for an amount

    Fee and commission are rounded separately so that
    ``total == amount + fee + commission`` holds on the rounded values.

    Example:
        >>> calculate_fees("100", 2, 1).total
        Decimal('103.00')
    """
    amount = quantize(parse_amount(amount))
    fee_pct = parse_amount(fee_percentage)
    commission_pct = parse_amount(commission_percentage)

    if amount <= 0:
        return FeeBreakdown.zero()
    if fee_pct < 0 or commission_pct < 0:
        raise ValueError("Fee percentages cannot be negative")

    fee = quantize(amount * fee_pct / HUNDRED)
    commission = quantize(amount * commission_pct / HUNDRED)
    total_fee = fee + commission

    return FeeBreakdown(
        amount=amount,
        fee=fee,
        commission=commission,
        total_fee=total_fee,
        total=amount + total_fee
    )


def calculate_with_schedule(amount: Number, schedule: FeeSchedule) -> FeeBreakdown:
    """Apply a resolved fee schedule to an amount"""
    return calculate_fees(amount, schedule.fee_percentage, schedule.commission_percentage)


def summarize(breakdowns: Iterable[FeeBreakdown]) -> FeeBreakdown:
    """Add up the lines of a multi-recipient transfer"""
    amount = fee = commission = Decimal("0.00")
    for line in breakdowns:
        amount += line.amount
        fee += line.fee
        commission += line.commission

    return FeeBreakdown(
        amount=amount,
        fee=fee,
        commission=commission,
        total_fee=fee + commission,
        total=amount + fee + commission
    )
