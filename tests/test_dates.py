"""Unit tests for wire date handling."""

from datetime import date, timezone

import pytest
from pydantic import BaseModel, ValidationError

from classjournal.core.dates import (
    CalendarDate,
    end_of_day,
    format_date,
    parse_date,
    parse_optional_date,
    start_of_day,
)
from classjournal.core.exceptions import InvalidDateFormat


class Payload(BaseModel):
    day: CalendarDate


def test_parse_and_format() -> None:
    assert parse_date("2026-02-28") == date(2026, 2, 28)
    assert format_date(date(2026, 3, 1)) == "2026-03-01"


@pytest.mark.parametrize("value", ["2026-02-30", "28.02.2026", "2026/02/28", "", "2026-2-28x"])
def test_parse_rejects_bad_input(value: str) -> None:
    with pytest.raises(InvalidDateFormat):
        parse_date(value)


def test_optional_date() -> None:
    assert parse_optional_date(None) is None
    assert parse_optional_date("") is None
    assert parse_optional_date("2026-10-17") == date(2026, 10, 17)


def test_day_bounds_are_utc() -> None:
    start, end = start_of_day(date(2026, 10, 17)), end_of_day(date(2026, 10, 17))
    assert start.tzinfo is timezone.utc
    assert (start.hour, start.minute) == (0, 0)
    assert (end.hour, end.minute, end.second) == (23, 59, 59)


def test_calendar_date_field() -> None:
    assert Payload(day="2026-10-17").day == date(2026, 10, 17)
    with pytest.raises(ValidationError):
        Payload(day="17.10.2026")
    with pytest.raises(ValidationError):
        Payload(day=20261017)
