"""
Numeric parsing and display helpers for on-chain quantities.

Upstream payloads encode the same quantity as native ints, 0x-hex strings, or
decimal strings. hex_to_int_safe() is the single place that decides whether a
value is an unsigned integer; everything else builds on it.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

WEI_PER_ETHER = 10**18
ETHER_DECIMALS = 18

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")
_DIGITS_RE = re.compile(r"^\d+$")
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_THOUSANDS_RE = re.compile(r"\B(?=(\d{3})+(?!\d))")


def is_digit_string(value: Any) -> bool:
    return isinstance(value, str) and bool(_DIGITS_RE.fullmatch(value))


def is_address(value: Any) -> bool:
    """True for a 0x-prefixed 20-byte hex address (checksum not verified)."""
    return isinstance(value, str) and bool(_ADDRESS_RE.fullmatch(value))


def hex_to_int_safe(value: Any) -> int | None:
    """
    Parse an unsigned integer from an int, 0x-hex string, or decimal string.

    Booleans, negatives, non-integral floats, blank strings, and anything else
    return None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        if not value.is_integer() or value < 0:
            return None
        return int(value)
    if not isinstance(value, str):
        return None
    s = value.strip()
    if not s:
        return None
    if _HEX_RE.fullmatch(s):
        return int(s, 16)
    if _DIGITS_RE.fullmatch(s):
        return int(s)
    return None


def format_int_string(value: str | int) -> str:
    """Insert thousands separators into an integer string: 1234567 -> 1,234,567."""
    return _THOUSANDS_RE.sub(",", str(value))


def format_hex_to_decimal(value: Any) -> str | None:
    parsed = hex_to_int_safe(value)
    if parsed is None:
        return None
    return format_int_string(parsed)


def format_ether(wei: int) -> str:
    """Format a wei amount as an ether decimal string without trailing zeros."""
    sign = "-" if wei < 0 else ""
    whole, frac = divmod(abs(wei), WEI_PER_ETHER)
    if not frac:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(ETHER_DECIMALS, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def parse_ether(value: str) -> int:
    """
    Parse an ether decimal string into wei.

    Raises ValueError for non-numeric input, negatives, or more than 18 decimals.
    """
    s = value.strip()
    try:
        amount = Decimal(s)
    except InvalidOperation as e:
        raise ValueError(f"Invalid ether amount: {value!r}") from e
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid ether amount: {value!r}")
    with localcontext() as ctx:
        ctx.prec = 96
        wei = amount * WEI_PER_ETHER
    if wei != wei.to_integral_value():
        raise ValueError(f"Too many decimals for ether amount: {value!r}")
    return int(wei)


def ratio_pct(part: int, total: int) -> float:
    """
    Percentage of part over total with two decimals, via integer basis points.

    Exact on arbitrarily large gas values; 0.0 when total <= 0.
    """
    if total <= 0:
        return 0.0
    return ((part * 10_000) // total) / 100


def shorten_hex(value: str, left: int = 6, right: int = 4) -> str:
    if len(value) <= left + right + 2:
        return value
    return f"{value[: left + 2]}…{value[-right:]}"
