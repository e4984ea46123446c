# tests/test_utils.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import math

import pytest

from ice_ops.utils.auth import decode_token, make_token
from ice_ops.utils.helpers import business_date, fmt_money, parse_timestamp, round_money
from ice_ops.utils.validators import (
    is_iso_date,
    is_non_negative_number,
    is_optional_text,
    non_empty,
    parse_float,
    try_parse_float,
    try_parse_int,
)


# ---------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "value, expected",
    [
        ("3.5", (True, 3.5)),
        (4, (True, 4.0)),
        ("", (False, None)),
        (None, (False, None)),
        (True, (False, None)),
        ("nan", (False, None)),
        (math.inf, (False, None)),
        ("abc", (False, None)),
    ],
)
def test_try_parse_float(value, expected):
    assert try_parse_float(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [("7", (True, 7)), (7.0, (True, 7)), (7.5, (False, None)), ("x", (False, None)), (None, (False, None))],
)
def test_try_parse_int(value, expected):
    assert try_parse_int(value) == expected


def test_parse_float_raises():
    assert parse_float("12.25") == 12.25
    with pytest.raises(ValueError):
        parse_float("twelve")


def test_number_predicates():
    assert is_non_negative_number(0)
    assert not is_non_negative_number(-0.01)


def test_non_empty():
    assert non_empty(" x ")
    assert not non_empty("   ")
    assert not non_empty(None)


def test_is_optional_text():
    assert is_optional_text(None)
    assert is_optional_text("")
    assert is_optional_text("wet")
    assert not is_optional_text({"x": 1})
    assert not is_optional_text(["x"])
    assert not is_optional_text(5)


@pytest.mark.parametrize(
    "text, ok",
    [("2024-02-29", True), ("2023-02-29", False), ("2024-3-1", False), ("20240301", False), (None, False)],
)
def test_is_iso_date(text, ok):
    assert is_iso_date(text) is ok


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def test_parse_timestamp_normalises_to_utc():
    assert parse_timestamp("2024-03-01T06:30:00Z") == datetime(2024, 3, 1, 6, 30, tzinfo=timezone.utc)
    assert parse_timestamp("2024-03-01T13:30:00+07:00") == datetime(2024, 3, 1, 6, 30, tzinfo=timezone.utc)
    # naive input is business-local wall clock
    assert parse_timestamp("2024-03-01T13:30:00") == datetime(2024, 3, 1, 6, 30, tzinfo=timezone.utc)
    for bad in ("", None, "yesterday"):
        with pytest.raises(ValueError):
            parse_timestamp(bad)


def test_business_date_crosses_midnight():
    late_utc = datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc)
    assert business_date(late_utc) == "2024-03-02"
    assert business_date(late_utc, "UTC") == "2024-03-01"


def test_money_helpers():
    assert round_money(0.1 + 0.2) == 0.3
    assert fmt_money(1234.5) == "1,234.50"
    assert fmt_money("n/a") == "n/a"
    assert fmt_money("n/a", sentinel="N/A") == "N/A"
    with pytest.raises(ValueError):
        fmt_money("n/a", strict=True)


# ---------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------

def test_token_round_trip():
    token = make_token(5, "manager", "s3cret")
    payload = decode_token(token, "s3cret")
    assert payload["user_id"] == 5
    assert payload["role"] == "manager"


def test_token_rejected_when_tampered_or_expired():
    token = make_token(5, "staff", "s3cret")
    payload_b64, sig = token.split(".")
    forged = make_token(1, "admin", "s3cret").split(".")[0]
    assert decode_token(f"{forged}.{sig}", "s3cret") is None
    assert decode_token(token, "other-secret") is None
    assert decode_token(payload_b64, "s3cret") is None
    assert decode_token("", "s3cret") is None
    assert decode_token(make_token(5, "staff", "s3cret", ttl=timedelta(seconds=-5)), "s3cret") is None
