# ice_ops/utils/validators.py
from datetime import date
import math


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)

    ok == False means parsing failed and value is None.
    Booleans, NaN and infinities are rejected.
    """
    if x is None or isinstance(x, bool):
        return False, None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(val):
        return False, None
    return True, val


def parse_float(x) -> float:
    """
    Strict parse to float; raises ValueError with a clear message on failure.
    """
    ok, val = try_parse_float(x)
    if not ok:
        raise ValueError(f"Could not parse '{x}' as a number.")
    return val  # type: ignore[return-value]


def try_parse_int(x):
    """
    Like try_parse_float() but for integral ids. "7" and 7.0 are accepted,
    7.5 is not.
    """
    ok, val = try_parse_float(x)
    if not ok or val is None or val != int(val):
        return False, None
    return True, int(val)


def is_non_negative_number(x) -> bool:
    """
    True iff x parses to a float and value >= 0.
    """
    ok, val = try_parse_float(x)
    return bool(ok and val is not None and val >= 0)


# ---- Dates ----

def is_iso_date(text) -> bool:
    """True iff `text` is a calendar date in YYYY-MM-DD form."""
    if not isinstance(text, str) or len(text) != 10:
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def is_optional_text(x) -> bool:
    """True for None or a string; free-text columns accept nothing else."""
    return x is None or isinstance(x, str)
