"""
Fixed-point conversion between integer base-unit amounts and display strings.

All protocol amounts are integers with an implicit decimal exponent: 18 for
asset amounts and health factors, 8 for price feed answers, 2 for basis points
rendered as a percent. Rendering truncates toward zero so that a displayed
value never exceeds what the contract computes with integer division.
"""

import math
import re
from typing import Optional, Union

from .exceptions import ParseError

WAD_DECIMALS = 18
WAD = 10**WAD_DECIMALS
PRICE_FEED_DECIMALS = 8
UINT256_MAX = 2**256 - 1
INFINITY_SYMBOL = "∞"

# Health factors are ints except for the no-debt sentinel
HealthFactor = Union[int, float]

_DECIMAL_PATTERN = re.compile(r"^(?P<whole>[0-9]*)(?:\.(?P<frac>[0-9]*))?$")


def is_infinite(value: HealthFactor) -> bool:
    return isinstance(value, float) and math.isinf(value)


def to_display(value: HealthFactor, decimals_to_show: Optional[int] = None, decimals: int = WAD_DECIMALS) -> str:
    """
    Render a base-unit integer as a decimal string.

    Args:
        value: Integer mantissa, or ``math.inf`` for the no-debt sentinel.
        decimals_to_show: Digits to keep after the point. The value is truncated
            (never rounded) and padded to exactly this many digits. When None the
            full precision is rendered with trailing zeros removed.
        decimals: Implicit decimal exponent of ``value``.

    Returns:
        Display string, or ``INFINITY_SYMBOL`` for the sentinel.
    """
    if is_infinite(value):
        return INFINITY_SYMBOL
    if isinstance(value, float):
        raise TypeError("Fixed-point values must be integers")

    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(int(value)), 10**decimals)
    frac_str = str(frac).rjust(decimals, "0") if decimals else ""

    if decimals_to_show is None:
        frac_str = frac_str.rstrip("0")
    else:
        frac_str = frac_str[:decimals_to_show].ljust(decimals_to_show, "0")

    if sign and whole == 0 and not frac_str.strip("0"):
        sign = ""
    if not frac_str:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac_str}"


def from_display(text: str, decimals: int = WAD_DECIMALS) -> int:
    """
    Parse a non-negative decimal string into a base-unit integer.

    Raises:
        ParseError: If the input is empty, non-numeric, negative, or has more
            fractional digits than ``decimals`` can represent.
    """
    if not isinstance(text, str):
        raise ParseError(f"Amount must be a string, got {type(text).__name__}")

    candidate = text.strip()
    if candidate.startswith("-"):
        raise ParseError(f"Amount must not be negative: {text!r}")

    match = _DECIMAL_PATTERN.match(candidate)
    if not candidate or not match:
        raise ParseError(f"Amount is not a valid number: {text!r}")

    whole = match.group("whole") or ""
    frac = match.group("frac") or ""
    if not whole and not frac:
        raise ParseError(f"Amount is not a valid number: {text!r}")
    if len(frac) > decimals:
        raise ParseError(f"Amount has more than {decimals} decimal places: {text!r}")

    return int(whole or "0") * 10**decimals + int(frac.ljust(decimals, "0") or "0")


def format_price(answer: int, display_decimals: int = 2, feed_decimals: int = PRICE_FEED_DECIMALS) -> str:
    """Render a raw price feed answer (8 decimals by default)."""
    return to_display(answer, display_decimals, feed_decimals)


def bps_to_percent(bps: int) -> str:
    """Render a basis-point rate as a two-decimal percent string (200 -> "2.00")."""
    return to_display(bps, 2, 2)


def normalize_health_factor(raw: int, total_debt: int) -> HealthFactor:
    """
    Map the contract's health factor onto the Infinity sentinel.

    A position without debt, or a reading of max uint256, has no finite health
    factor.
    """
    if total_debt == 0 or raw == UINT256_MAX:
        return math.inf
    return raw
