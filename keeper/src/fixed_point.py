"""Fixed-point price helpers.

Prices are carried as integers with PRICE_DECIMALS decimals, the same
representation the betting contract stores for start and end prices.
Conversions never go through floats.

.. code-block:: python

    >>> parse_decimal_price("3012.123456789")
    301212345678
    >>> rescale(301212345678, 8, 18)
    3012123456780000000000
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation

PRICE_DECIMALS = 8

# Bet amounts and payouts are in token base units.
TOKEN_DECIMALS = 18


def parse_decimal_price(value: str | Decimal | int, decimals: int = PRICE_DECIMALS) -> int:
    """Convert a decimal price into a fixed-point integer.

    Extra fractional digits are truncated, not rounded.

    :param value: Price as a decimal string, Decimal or integer.
    :param decimals: Number of decimals in the result.
    :returns: Scaled integer price.
    :raises ValueError: If the value is not a finite number or is out of range.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid price value: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"Invalid price value: {value!r}")

    quantum = Decimal(1).scaleb(-decimals)
    try:
        scaled = amount.quantize(quantum, rounding=ROUND_DOWN).scaleb(decimals)
    except InvalidOperation as e:
        raise ValueError(f"Price out of range: {value!r}") from e
    return int(scaled)


def rescale(value: int, from_decimals: int, to_decimals: int = PRICE_DECIMALS) -> int:
    """Rescale a fixed-point integer between decimal precisions.

    Reducing precision truncates toward zero.

    :param value: Scaled integer value.
    :param from_decimals: Decimals of ``value``.
    :param to_decimals: Decimals of the result.
    :returns: Rescaled integer.
    """
    if from_decimals == to_decimals:
        return value
    if from_decimals < to_decimals:
        return value * 10 ** (to_decimals - from_decimals)
    divisor = 10 ** (from_decimals - to_decimals)
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


def to_decimal(value: int, decimals: int = PRICE_DECIMALS) -> Decimal:
    """Convert a fixed-point integer back to a Decimal."""
    return Decimal(value).scaleb(-decimals)


def format_price(value: int, decimals: int = PRICE_DECIMALS) -> str:
    """Format a fixed-point price for logging, e.g. ``$3012.12345678``."""
    return f"${to_decimal(value, decimals):.{decimals}f}"
