"""Formatting and conversion utilities."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from stakevue_state.constants import MOTES_PER_CSPR, RATE_PRECISION

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def motes_to_cspr(motes: int) -> float:
    """Convert motes to CSPR for display. Never feed the result back into arithmetic."""
    return float(Decimal(motes) / MOTES_PER_CSPR)


def format_cspr(motes: int, *, decimals: int = 4, approx: bool = False, unit: str = "CSPR") -> str:
    """Format motes as CSPR (or stCSPR, which shares the 9-decimal unit)."""
    cspr = Decimal(motes) / MOTES_PER_CSPR
    s = f"{cspr:.{decimals}f}"
    if "." in s:
        s = s.rstrip("0").rstrip(".")
    prefix = "~" if approx else ""
    return f"{prefix}{s} {unit}"


def format_rate(rate_fixed_point: int, precision: int = RATE_PRECISION, *, decimals: int = 4) -> str:
    """Format a fixed-point exchange rate, e.g. 1_000_000_000 -> '1.0000'."""
    return f"{(Decimal(rate_fixed_point) / Decimal(precision)):.{decimals}f}"


def iso_utc(ts: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def iso_from_ms(ms: int) -> str | None:
    """ISO-8601 UTC timestamp for a block time in milliseconds; None when out of datetime's range."""
    try:
        return iso_utc(_EPOCH + timedelta(milliseconds=ms))
    except (OverflowError, ValueError):
        return None


def datetime_to_ms(ts: datetime) -> int:
    """Milliseconds since the epoch."""
    return (ts - _EPOCH) // timedelta(milliseconds=1)


def short_key(key: str, *, head: int = 10, tail: int = 6) -> str:
    """Shorten a long hex identifier for console output."""
    if len(key) <= head + tail + 3:
        return key
    return f"{key[:head]}...{key[-tail:]}"
