# tests/test_date_utils.py
import datetime as dt
import pytest

from utils import month_key, normalize_iso_date, parse_timestamp, to_calendar_date


def test_normalize_valid_iso_string():
    d = normalize_iso_date("2025-01-10")
    assert isinstance(d, dt.date)
    assert d == dt.date(2025, 1, 10)


def test_normalize_keeps_only_the_calendar_part_of_a_timestamp():
    assert normalize_iso_date("2025-01-10T23:59:00Z") == dt.date(2025, 1, 10)


def test_normalize_invalid_month():
    with pytest.raises(ValueError) as exc:
        normalize_iso_date("2025-13-01")
    assert "Invalid date format" in str(exc.value)


def test_normalize_invalid_string():
    with pytest.raises(ValueError):
        normalize_iso_date("not-a-date")


def test_normalize_already_date():
    original = dt.date(2025, 1, 10)
    assert normalize_iso_date(original) == original


def test_normalize_none_raises():
    with pytest.raises(ValueError):
        normalize_iso_date(None)


def test_parse_timestamp_naive_string():
    assert parse_timestamp("2025-03-04T10:30:00") == dt.datetime(2025, 3, 4, 10, 30)


def test_parse_timestamp_utc_suffix_is_converted_to_local_naive():
    parsed = parse_timestamp("2025-03-04T10:30:00Z")
    expected = (
        dt.datetime(2025, 3, 4, 10, 30, tzinfo=dt.timezone.utc)
        .astimezone()
        .replace(tzinfo=None)
    )
    assert parsed == expected
    assert parsed.tzinfo is None


@pytest.mark.parametrize("value", [None, "", "   ", "yesterday", 12345, {"$date": 1}])
def test_parse_timestamp_garbage_is_none(value):
    assert parse_timestamp(value) is None


def test_to_calendar_date_from_plain_date_string():
    assert to_calendar_date("2025-07-01") == dt.date(2025, 7, 1)


def test_to_calendar_date_invalid_is_none():
    assert to_calendar_date("31/12/2025") is None


def test_month_key_pads_month():
    assert month_key(dt.date(2025, 3, 9)) == "2025-03"
