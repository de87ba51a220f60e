"""Shared helpers for report date-range calculations."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta

YMD_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    @property
    def start_str(self) -> str:
        return format_ymd(self.start)

    @property
    def end_str(self) -> str:
        return format_ymd(self.end)


def format_ymd(value: date) -> str:
    return value.strftime(YMD_FORMAT)


def parse_ymd(value: str) -> date:
    return datetime.strptime(value.strip(), YMD_FORMAT).date()


def compute_date_range(now: date | datetime) -> DateRange:
    """Return the reporting window for a query run on ``now``.

    The window opens on the first day of ``now``'s month and closes the day
    before ``now``, since the current day's figures are not settled yet. A
    query run on the 1st clamps ``end`` to ``start`` instead of producing an
    inverted range. Dates are taken as-is in the caller's calendar.
    """

    current = now.date() if isinstance(now, datetime) else now
    start = current.replace(day=1)
    end = current - timedelta(days=1)
    if end < start:
        end = start
    return DateRange(start=start, end=end)


def get_query_date(reference: date | None = None) -> date:
    """Return the reference date for a run, defaulting to today."""

    return reference or date.today()
