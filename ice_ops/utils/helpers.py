# ice_ops/utils/helpers.py
from __future__ import annotations

from datetime import date, datetime, timezone
import logging
from typing import Union, Optional
from zoneinfo import ZoneInfo

from ..constants import DEFAULT_TIMEZONE

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)


def today_str(tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Return today's business date as ISO string (YYYY-MM-DD)."""
    return datetime.now(ZoneInfo(tz_name)).date().isoformat()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def round_money(v: float) -> float:
    return round(float(v) + 0.0, 2)


def parse_timestamp(value, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """
    Parse an ISO-8601 timestamp (or pass a datetime through) and return an
    aware datetime in UTC.

    Naive values are read as wall-clock time in the business timezone, which
    is how drivers and area managers enter them.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Could not parse {value!r} as a timestamp.")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(tz_name))
    return dt.astimezone(timezone.utc)


def business_date(ts: datetime, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Calendar date of `ts` in the business timezone (YYYY-MM-DD)."""
    return ts.astimezone(ZoneInfo(tz_name)).date().isoformat()


def as_date_str(d: Union[date, str]) -> str:
    return d.isoformat() if isinstance(d, date) else str(d)


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"
