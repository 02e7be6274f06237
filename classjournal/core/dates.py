"""Calendar date handling for the wire format (YYYY-MM-DD) and UTC timestamps."""

from datetime import date, datetime, time, timezone
from typing import Any, Optional

from pydantic import BeforeValidator
from typing_extensions import Annotated

from classjournal.core.exceptions import InvalidDateFormat

DATE_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError) as e:
        raise InvalidDateFormat() from e


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def parse_optional_date(value: Optional[str]) -> Optional[date]:
    """Query-string helper: empty or missing means no bound."""
    if not value:
        return None
    return parse_date(value)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


def _strict_date(value: Any) -> Any:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value, DATE_FORMAT).date()
        except ValueError:
            raise ValueError("invalid date format, expected YYYY-MM-DD")
    raise ValueError("invalid date format, expected YYYY-MM-DD")


# Request field accepting only YYYY-MM-DD strings.
CalendarDate = Annotated[date, BeforeValidator(_strict_date)]
