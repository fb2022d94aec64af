"""Tests for the phone/time input masks and date checks."""

from datetime import date

import pytest

from ems.core.formatting import (format_phone, format_time_input, is_upcoming,
                                 is_valid_date, is_valid_time)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", ""),
        ("010", "010"),
        ("0101", "010-1"),
        ("0101234", "010-1234"),
        ("01012345", "010-1234-5"),
        ("01012345678", "010-1234-5678"),
        ("010-1234-5678", "010-1234-5678"),
        ("(010) 1234 5678 99", "010-1234-5678"),
    ],
)
def test_format_phone(raw, expected):
    assert format_phone(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("", ""), ("9", "9"), ("093", "093"), ("0930", "09:30"), ("09:30", "09:30"), ("093015", "09:30")],
)
def test_format_time_input(raw, expected):
    assert format_time_input(raw) == expected


def test_time_validation():
    assert is_valid_time("00:00")
    assert is_valid_time("23:59")
    assert not is_valid_time("24:00")
    assert not is_valid_time("9:05")
    assert not is_valid_time("12:60")
    assert not is_valid_time("")


def test_padded_time_sorts_like_numbers():
    """String order of valid HH:mm equals (hour, minute) order."""
    times = [f"{h:02d}:{m:02d}" for h in range(24) for m in (0, 7, 30, 59)]
    assert sorted(times) == sorted(times, key=lambda t: (int(t[:2]), int(t[3:])))


def test_date_validation():
    assert is_valid_date("2030-02-28")
    assert not is_valid_date("2030-02-30")
    assert not is_valid_date("2030-2-3")
    assert not is_valid_date("tomorrow")


def test_is_upcoming():
    today = date(2030, 5, 1)
    assert is_upcoming("2030-05-01", today)
    assert is_upcoming("2030-12-31", today)
    assert not is_upcoming("2030-04-30", today)
