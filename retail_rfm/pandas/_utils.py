"""Shared utilities for pandas conversion operations."""

from decimal import Decimal


def decimal_to_float(value: Decimal) -> float:
    """Convert Decimal to float for pandas compatibility."""
    return float(value)


def float_to_decimal(value: float) -> Decimal:
    """Convert float to Decimal, avoiding binary representation noise.

    Warning:
        Floats with >15 significant digits may lose precision due to
        float representation limits. For revenue figures that must be
        exact, keep Decimal values from the start.

    Args:
        value: Float value to convert

    Returns:
        Decimal representation of the float

    Raises:
        TypeError: If value is not numeric

    Example:
        >>> float_to_decimal(2.55)
        Decimal('2.55')
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise TypeError(f"Expected numeric type, got {type(value)}")
    return Decimal(str(value))
