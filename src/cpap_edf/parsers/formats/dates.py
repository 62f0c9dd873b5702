"""
EDF date and session timestamp parsing.

EDF start dates appear in two textual forms on ResMed devices:
- DD.MM.YY (the EDF standard, two-digit year pivoting at 1980)
- DD-MMM-YYYY (used by some firmware in STR.edf, e.g. "30-NOV-2024")

Unrecognized text yields None instead of raising.
"""

import re

from datetime import date, datetime, time, timedelta

from cpap_edf.constants import EDF_YEAR_PIVOT, MONTH_ABBREVIATIONS, SESSION_ID_FORMAT

_LONG_DATE_RE = re.compile(r"(\d{2})-([A-Z]{3})-(\d{4})")
_SHORT_DATE_RE = re.compile(r"(\d{2})\.(\d{2})\.(\d{2})")
_TIME_RE = re.compile(r"(\d{2})[.:](\d{2})[.:](\d{2})")
_SESSION_ID_RE = re.compile(r"^\d{8}_\d{6}$")


def expand_two_digit_year(year: int) -> int:
    """Map a two-digit EDF year onto 1980-2079."""
    return year + (2000 if year < EDF_YEAR_PIVOT else 1900)


def parse_edf_date(text: str | None) -> date | None:
    """
    Parse an EDF start date.

    Args:
        text: Date text, "DD-MMM-YYYY" or "DD.MM.YY"

    Returns:
        Calendar date, or None if the text matches neither format or names
        an impossible date
    """
    if not text:
        return None

    match = _LONG_DATE_RE.search(text)
    if match:
        month = MONTH_ABBREVIATIONS.get(match.group(2))
        if month is not None:
            try:
                return date(int(match.group(3)), month, int(match.group(1)))
            except ValueError:
                return None

    match = _SHORT_DATE_RE.search(text)
    if match:
        year = expand_two_digit_year(int(match.group(3)))
        try:
            return date(year, int(match.group(2)), int(match.group(1)))
        except ValueError:
            return None

    return None


def parse_edf_time(text: str | None) -> time | None:
    """
    Parse an EDF start time ("HH.MM.SS").

    Returns:
        Time of day, or None if unreadable
    """
    if not text:
        return None

    match = _TIME_RE.search(text)
    if not match:
        return None

    try:
        return time(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def offset_date(start: date, days: int) -> date:
    """Return the date `days` whole days after `start`."""
    return start + timedelta(days=days)


def parse_session_timestamp(session_id: str) -> datetime | None:
    """
    Parse a ResMed session identifier.

    Args:
        session_id: Timestamp string in YYYYMMDD_HHMMSS format

    Returns:
        Session start as a naive local datetime, or None if malformed
    """
    if not _SESSION_ID_RE.match(session_id):
        return None
    try:
        return datetime.strptime(session_id, SESSION_ID_FORMAT)
    except ValueError:
        return None
