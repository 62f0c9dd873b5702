"""Pydantic models for decoded CPAP data."""

from cpap_edf.models.day import CPAPSummary, DailyStats, SleepNight, SummaryAverages
from cpap_edf.models.machine import DeviceInfo
from cpap_edf.models.results import LoadError, SubFileError
from cpap_edf.models.session import SessionDetail, SessionFile, SubFileDetail

__all__ = [
    "CPAPSummary",
    "DailyStats",
    "DeviceInfo",
    "LoadError",
    "SessionDetail",
    "SessionFile",
    "SleepNight",
    "SubFileDetail",
    "SubFileError",
    "SummaryAverages",
]
