"""
Daily summary (STR.edf) adapter.

STR.edf holds one data record per calendar day; each signal contributes one
value per record (AHI, Leak.50, OnDuration, ...). The adapter turns decoded
records into DailyRecord mappings and projects them into DailyStats.
"""

import datetime
import logging
import math

from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from cpap_edf.constants import MINUTES_PER_HOUR, SUMMARY_FIELD_ALIASES
from cpap_edf.models.day import DailyStats, SleepNight
from cpap_edf.parsers.formats.dates import offset_date, parse_edf_date
from cpap_edf.parsers.formats.edf import decode_edf, read_edf
from cpap_edf.parsers.formats.types import DecodedEDF, FileHeader, SignalDescriptor

logger = logging.getLogger(__name__)


class DailyRecord(BaseModel):
    """One day of summary values, keyed by signal label."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Record index within the file")
    date: datetime.date | None = Field(
        default=None, description="Header start date + index days"
    )
    values: dict[str, float] = Field(default_factory=dict)

    def __getitem__(self, label: str) -> float:
        return self.values[label]

    def get(self, label: str, default: float | None = None) -> float | None:
        return self.values.get(label, default)

    def keys(self) -> list[str]:
        return list(self.values)

    def __contains__(self, label: object) -> bool:
        return label in self.values


class DailySummary(BaseModel):
    """Decoded STR.edf contents."""

    model_config = ConfigDict(frozen=True)

    header: FileHeader
    signals: list[SignalDescriptor] = Field(default_factory=list)
    days: list[DailyRecord] = Field(default_factory=list)


def build_daily_records(decoded: DecodedEDF) -> list[DailyRecord]:
    """
    Split decoded summary signals into one record per day.

    A record holds the i-th value of every signal that has one; signals
    that ran out early are simply absent from later records.

    Args:
        decoded: Decoded STR.edf

    Returns:
        Records in file order
    """
    start = parse_edf_date(decoded.header.start_date)
    if start is None:
        logger.debug(
            f"Unrecognized summary start date {decoded.header.start_date!r}; "
            f"daily records will have no date"
        )

    longest = max((len(values) for values in decoded.data.values()), default=0)
    num_days = min(max(decoded.header.num_data_records, 0), longest)

    days = []
    for i in range(num_days):
        values = {
            label: float(samples[i])
            for label, samples in decoded.data.items()
            if i < len(samples)
        }
        days.append(
            DailyRecord(
                index=i,
                date=offset_date(start, i) if start is not None else None,
                values=values,
            )
        )
    return days


def decode_daily_summary(buffer: bytes) -> DailySummary:
    """
    Decode an in-memory STR.edf.

    Raises:
        EDFFormatError: If the buffer is shorter than 256 bytes
    """
    decoded = decode_edf(buffer)
    return DailySummary(
        header=decoded.header,
        signals=decoded.signals,
        days=build_daily_records(decoded),
    )


def parse_str_file(file_path: Path | str) -> DailySummary:
    """
    Read and decode an STR.edf file.

    Raises:
        FileNotFoundError: If the file does not exist
        EDFFormatError: If the file is shorter than 256 bytes
    """
    decoded = read_edf(file_path)
    summary = DailySummary(
        header=decoded.header,
        signals=decoded.signals,
        days=build_daily_records(decoded),
    )
    logger.info(f"Decoded {len(summary.days)} days from {Path(file_path).name}")
    return summary


def _is_set(value: float | None) -> bool:
    return value is not None and value != 0 and not math.isnan(value)


def resolve_field(day: Mapping[str, float], aliases: list[str]) -> float:
    """
    Get the first non-zero value among candidate labels.

    Args:
        day: Label to value mapping for one day
        aliases: Candidate labels, in priority order

    Returns:
        The first set value, or 0.0 when none is set
    """
    for label in aliases:
        value = day.get(label)
        if _is_set(value):
            return float(value)  # type: ignore[arg-type]
    return 0.0


def project_daily_stats(
    day: DailyRecord,
    usage_minutes: float | None = None,
    aliases: dict[str, list[str]] | None = None,
) -> DailyStats:
    """
    Map a DailyRecord onto named DailyStats fields.

    Args:
        day: Decoded summary record
        usage_minutes: Summed session minutes for the day's sleep night;
            falls back to the record's OnDuration when None
        aliases: Field to label candidates (defaults to the built-in table)

    Returns:
        DailyStats with unset fields reported as 0
    """
    aliases = aliases if aliases is not None else SUMMARY_FIELD_ALIASES

    fields = {
        field: resolve_field(day.values, labels)
        for field, labels in aliases.items()
        if field in DailyStats.model_fields
    }

    if usage_minutes is None:
        usage_minutes = fields.get("on_duration", 0.0)

    return DailyStats(
        date=day.date.isoformat() if day.date else f"Day {day.index + 1}",
        usage_hours=usage_minutes / MINUTES_PER_HOUR,
        raw=dict(day.values),
        **fields,
    )


def get_daily_stats(
    summary: DailySummary,
    nights: dict[datetime.date, SleepNight] | None = None,
    aliases: dict[str, list[str]] | None = None,
) -> list[DailyStats]:
    """
    Project every day with recorded usage.

    Days where neither Duration nor OnDuration is positive are dropped.

    Args:
        summary: Decoded STR.edf
        nights: Sleep-night usage keyed by night date
        aliases: Field to label candidates

    Returns:
        DailyStats in file order
    """
    nights = nights or {}
    stats = []
    for day in summary.days:
        night = nights.get(day.date) if day.date else None
        projected = project_daily_stats(
            day,
            usage_minutes=night.total_minutes if night else None,
            aliases=aliases,
        )
        if projected.duration > 0 or projected.on_duration > 0:
            stats.append(projected)

    logger.debug(f"{len(stats)} of {len(summary.days)} summary days have usage")
    return stats
