"""Day-window and amount-tolerance helpers shared by matching and detection.

Everything here is pure: no database, no settings lookups.  Money flows
through as ``Decimal`` so tolerance edges compare exactly.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Number) -> Decimal:
    """Coerce ``value`` to a two-place ``Decimal``.

    Floats go through ``str`` first so ``0.1`` stays ``0.10`` instead of
    picking up binary noise.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how ``DateTime`` columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ── Day windows ──────────────────────────────────────────────────────


def day_window(day: date, days: int) -> tuple[date, date]:
    """Return the inclusive ``(day - days, day + days)`` window."""
    delta = timedelta(days=days)
    return day - delta, day + delta


def days_apart(a: date, b: date) -> int:
    """Absolute number of calendar days between two dates."""
    return abs((a - b).days)


def within_days(a: date, b: date, days: int) -> bool:
    return days_apart(a, b) <= days


# ── Amount windows ───────────────────────────────────────────────────


def amount_window(amount: Number, tolerance: Number) -> tuple[Decimal, Decimal]:
    """Inclusive ``[amount - tolerance, amount + tolerance]`` range."""
    amount = Decimal(str(amount))
    tolerance = abs(Decimal(str(tolerance)))
    return amount - tolerance, amount + tolerance


def percent_window(amount: Number, percent: Number) -> tuple[Decimal, Decimal]:
    """Range of ``amount`` +/- ``percent`` %, low bound first.

    Outgoing (negative) amounts flip the naive bounds, so they are sorted
    before being returned.
    """
    amount = Decimal(str(amount))
    factor = Decimal(str(percent)) / HUNDRED
    low = amount * (1 - factor)
    high = amount * (1 + factor)
    return min(low, high), max(low, high)


def amounts_differ(a: Number, b: Number, epsilon: Number = CENT) -> bool:
    """True when ``|a - b|`` is strictly greater than ``epsilon``."""
    return abs(Decimal(str(a)) - Decimal(str(b))) > Decimal(str(epsilon))


# ── Confidence ───────────────────────────────────────────────────────


def scaled_confidence(
    base: Number,
    floor: Number,
    difference: Number,
    reference: Number,
) -> Decimal:
    """``max(floor, base - difference / reference * 100)`` rounded to 0.01.

    ``difference`` is taken in absolute value; a zero ``reference`` (a
    zero-amount payment) can only be trusted at the floor.
    """
    base = Decimal(str(base))
    floor = Decimal(str(floor))
    reference = abs(Decimal(str(reference)))
    if reference == 0:
        return floor.quantize(CENT)
    penalty = abs(Decimal(str(difference))) / reference * HUNDRED
    return max(floor, base - penalty).quantize(CENT, rounding=ROUND_HALF_UP)
