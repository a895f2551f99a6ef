"""
===============================================================================
 Module: number_utils.py
 Project: SIP Rebalancer
 Location: ProjectRoot/utils/
 Description:
   Single-purpose numeric helpers shared by the allocation engine and the
   statement normaliser.  All "clean or default to zero" policy lives here
   so that every numeric ingestion boundary behaves the same way.
===============================================================================
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

__all__ = [
    "clean_number",
    "coerce_number",
    "round_half_up",
    "round_amount",
]

# Currency symbols, percent signs, thousands separators and any whitespace
# (\s also covers the non-breaking spaces spreadsheets like to insert).
_STRIP_PATTERN = re.compile(r"[₹$€£¥,%\s]")

# Leading decimal number, optionally signed, optionally with an exponent.
# Trailing garbage is ignored ("12.5abc" -> 12.5).
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def clean_number(value: Any) -> float:
    """Clean a locale-formatted statement cell into a float.

    Strips currency symbols, percent signs, whitespace and thousands
    separators, then parses the leading decimal number.  Empty, missing,
    NaN or unparsable input cleans to exactly ``0.0``; a legitimate zero is
    not distinguishable from a malformed cell.

    Args:
        value: Raw cell content (text, number, ``None`` or NaN).

    Returns:
        The parsed number, or ``0.0``.

    Example:
        >>> clean_number("₹ 12,000")
        12000.0
        >>> clean_number("10%")
        10.0
        >>> clean_number("InvalidNumber")
        0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _finite(float(value))
    text = _STRIP_PATTERN.sub("", str(value))
    match = _LEADING_NUMBER.match(text)
    if not match:
        return 0.0
    try:
        return _finite(float(match.group(0)))
    except ValueError:
        return 0.0


def coerce_number(value: Any) -> float:
    """Coerce a user-supplied numeric field to float, defaulting to ``0.0``.

    Accepts numbers and numeric strings (surrounding whitespace and thousands
    separators allowed).  ``None``, booleans, NaN, infinities and anything
    that does not parse become ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return _finite(float(value))
    try:
        return _finite(float(str(value).strip().replace(",", "")))
    except ValueError:
        return 0.0


def round_half_up(value: float, places: int = 0) -> float:
    """Round ``value`` to ``places`` decimals, halves away from zero.

    Python's built-in ``round`` uses banker's rounding, so ``round(2.5)`` is
    ``2``; amounts shown to an investor round ``2.5`` to ``3``.
    """
    quantum = Decimal(1).scaleb(-places)
    try:
        rounded = Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0.0
    return float(rounded)


def round_amount(value: float) -> int:
    """Round a monetary amount to the nearest whole unit (halves up)."""
    return int(round_half_up(value, 0))
