"""Date helpers for command arguments.

Currently provides:
    parse_date(s): parse a calendar date given on the command line and
        return a ``datetime.date``. Accepts ISO-8601 dates ("2020-10-21")
        and full timestamps, of which only the date part is kept.
    today(): the current local date.

Keeping dateutil behind these helpers gives a single spot to patch if
parsing behaviour changes.
"""
from __future__ import annotations

import datetime as _dt
from typing import Union

from dateutil.parser import isoparse as _isoparse

__all__ = ["parse_date", "today"]


def parse_date(value: Union[str, _dt.date]) -> _dt.date:
    """Parse *value* into a ``datetime.date``.

    Raises:
        ValueError: if *value* is not a valid ISO-8601 date.
    """
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value

    if not isinstance(value, str):
        raise TypeError("parse_date expects str or date, got " + type(value).__name__)

    try:
        parsed = _isoparse(value.strip())
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"invalid ISO-8601 date: {value}") from exc
    return parsed.date()


def today() -> _dt.date:
    return _dt.date.today()
