"""
Sleep-night aggregation.

A sleep night runs from day_start_hour on one calendar day to day_start_hour
on the next, so a session starting at 01:00 counts toward the previous
evening. The default noon boundary matches ResMed's own reporting.
"""

import logging

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from cpap_edf.constants import DEFAULT_DAY_START_HOUR
from cpap_edf.models.day import SleepNight
from cpap_edf.models.session import SessionFile

logger = logging.getLogger(__name__)


def get_night_date(
    start: datetime, day_start_hour: int = DEFAULT_DAY_START_HOUR
) -> date:
    """
    Get the sleep-night date a session belongs to.

    Args:
        start: Session start time
        day_start_hour: Hour (0-23) at which a new sleep night begins

    Returns:
        The previous calendar day if the session starts before
        day_start_hour, otherwise the session's own date
    """
    if start.hour < day_start_hour:
        return (start - timedelta(days=1)).date()
    return start.date()


def calculate_sleep_night_usage(
    sessions: Iterable[SessionFile],
    day_start_hour: int = DEFAULT_DAY_START_HOUR,
) -> dict[date, SleepNight]:
    """
    Sum session durations per sleep night.

    Sessions without a parsed timestamp or with no positive duration are
    skipped.

    Args:
        sessions: Sessions to aggregate
        day_start_hour: Hour (0-23) at which a new sleep night begins

    Returns:
        SleepNight per night date, in first-seen order
    """
    totals: dict[date, tuple[float, int]] = {}
    skipped = 0

    for session in sessions:
        if session.timestamp is None or session.duration_minutes <= 0:
            skipped += 1
            continue

        night = get_night_date(session.timestamp, day_start_hour)
        minutes, count = totals.get(night, (0.0, 0))
        totals[night] = (minutes + session.duration_minutes, count + 1)

    if skipped:
        logger.debug(f"Skipped {skipped} sessions without timestamp or duration")

    return {
        night: SleepNight(date=night, total_minutes=minutes, session_count=count)
        for night, (minutes, count) in totals.items()
    }
