"""
ResMed SD card loader.

Expected layout:

    <root>/
        Identification.tgt   (or Identification.json)
        STR.edf              daily summary
        DATALOG/
            20240105/
                20240105_230012_BRP.edf
                20240105_230012_PLD.edf
                ...

Missing pieces produce structured errors (LoadError, DeviceInfo.error)
rather than exceptions.
"""

import json
import logging
import re

from datetime import date
from pathlib import Path

from cpap_edf.analysis.nights import calculate_sleep_night_usage
from cpap_edf.config import get_batch_workers, get_day_boundary, get_field_aliases
from cpap_edf.constants import (
    DATALOG_DIR_NAME,
    DATE_DIR_PATTERN,
    DEFAULT_MAX_SESSIONS,
    DEFAULT_RECENT_DAYS,
    IDENTIFICATION_JSON,
    IDENTIFICATION_TGT,
    SESSION_DURATION_FILE_TYPE,
    SUMMARY_FILE_NAME,
)
from cpap_edf.models.day import CPAPSummary, DailyStats, SleepNight, SummaryAverages
from cpap_edf.models.machine import DeviceInfo
from cpap_edf.models.results import LoadError
from cpap_edf.models.session import SessionDetail, SessionFile
from cpap_edf.parsers.batch import BatchDecoder
from cpap_edf.parsers.formats.edf import EDFError
from cpap_edf.parsers.session import (
    group_session_files,
    load_session_detail,
    read_session_duration,
)
from cpap_edf.parsers.summary import DailySummary, get_daily_stats, parse_str_file

logger = logging.getLogger(__name__)

_TGT_LINE_RE = re.compile(r"^#(\w+)\s+(.+)$")
_DATE_DIR_RE = re.compile(DATE_DIR_PATTERN)


def _validate_hour(name: str, hour: int) -> None:
    if not 0 <= hour <= 23:
        raise ValueError(f"{name} must be between 0 and 23, got {hour}")


def parse_identification_tgt(text: str) -> DeviceInfo:
    """
    Parse Identification.tgt contents.

    Lines look like "#SRN 23192345678"; PNA uses underscores for spaces.
    """
    info: dict[str, str] = {}
    for line in text.splitlines():
        match = _TGT_LINE_RE.match(line.strip())
        if match:
            info[match.group(1)] = match.group(2).strip()

    return DeviceInfo(
        serial_number=info.get("SRN") or "Unknown",
        product_name=info["PNA"].replace("_", " ") if info.get("PNA") else "Unknown",
        product_code=info.get("PCD") or "Unknown",
        machine_id=info.get("MID") or "Unknown",
        firmware_version=info.get("FGT") or "Unknown",
        raw=info,
    )


def parse_identification_json(text: str) -> DeviceInfo:
    """
    Parse Identification.json contents (AirSense 11).

    Raises:
        ValueError: If the text is not valid JSON
    """
    data = json.loads(text)
    profiles = data.get("FlowGenerator", {}).get("IdentificationProfiles", {})
    product = profiles.get("Product", {})
    software = profiles.get("Software", {})

    raw = {
        key: str(value)
        for section in (product, software)
        for key, value in section.items()
        if isinstance(value, (str, int, float))
    }

    return DeviceInfo(
        serial_number=str(product.get("SerialNumber") or "Unknown"),
        product_name=str(product.get("ProductName") or "Unknown"),
        product_code=str(product.get("ProductCode") or "Unknown"),
        machine_id=str(product.get("MachineId") or "Unknown"),
        firmware_version=str(software.get("ApplicationIdentifier") or "Unknown"),
        raw=raw,
    )


class CPAPDataLoader:
    """
    Loads device info, daily summary and sessions from a ResMed SD card.

    Usage:
        loader = CPAPDataLoader("/media/SDCARD")
        summary = loader.load_all()
        detail = loader.load_session_detail("20240105_230012")
    """

    def __init__(
        self,
        data_path: Path | str,
        day_start_hour: int | None = None,
        day_end_hour: int | None = None,
        max_workers: int | None = None,
    ):
        """
        Initialize loader.

        Args:
            data_path: SD card root directory
            day_start_hour: Sleep-night boundary hour (config default if None)
            day_end_hour: Stored for configuration symmetry; not used in
                grouping
            max_workers: Threads for reading session headers (config default
                if None)
        """
        config_start, config_end = get_day_boundary()
        self.data_path = Path(data_path)
        self.day_start_hour = config_start if day_start_hour is None else day_start_hour
        self.day_end_hour = config_end if day_end_hour is None else day_end_hour
        _validate_hour("day_start_hour", self.day_start_hour)
        _validate_hour("day_end_hour", self.day_end_hour)

        self.max_workers = max_workers or get_batch_workers()
        self.aliases = get_field_aliases()

        self.device_info: DeviceInfo | None = None
        self.daily_summary: DailySummary | LoadError | None = None
        self.sessions: list[SessionFile] = []
        self.sleep_night_usage: dict[date, SleepNight] = {}

    def load_all(self) -> CPAPSummary:
        """Load everything and return the overall summary."""
        self.load_device_info()
        self.load_daily_summary()
        self.load_session_list()
        return self.get_summary()

    def load_device_info(self) -> DeviceInfo:
        """
        Read device identification.

        Identification.tgt is preferred; Identification.json is the
        fallback for newer devices.
        """
        tgt_path = self.data_path / IDENTIFICATION_TGT
        json_path = self.data_path / IDENTIFICATION_JSON

        if tgt_path.exists():
            self.device_info = parse_identification_tgt(
                tgt_path.read_text(encoding="utf-8", errors="replace")
            )
        elif json_path.exists():
            try:
                self.device_info = parse_identification_json(
                    json_path.read_text(encoding="utf-8")
                )
            except (OSError, ValueError, AttributeError) as e:
                logger.warning(f"Failed to parse {IDENTIFICATION_JSON}: {e}")
                self.device_info = DeviceInfo(error=f"Invalid {IDENTIFICATION_JSON}")
        else:
            self.device_info = DeviceInfo(error="Identification file not found")

        logger.debug(f"Device info: {self.device_info.product_name}")
        return self.device_info

    def load_daily_summary(self) -> DailySummary | LoadError:
        """Decode STR.edf."""
        str_path = self.data_path / SUMMARY_FILE_NAME

        if not str_path.exists():
            logger.warning(f"{SUMMARY_FILE_NAME} not found in {self.data_path}")
            self.daily_summary = LoadError(error=f"{SUMMARY_FILE_NAME} not found")
            return self.daily_summary

        try:
            self.daily_summary = parse_str_file(str_path)
        except (OSError, EDFError) as e:
            logger.error(f"Failed to decode {SUMMARY_FILE_NAME}: {e}")
            self.daily_summary = LoadError(error=str(e))

        return self.daily_summary

    def load_session_list(self) -> list[SessionFile]:
        """
        Find every session under DATALOG, newest first.

        Durations are read from the BRP headers on a thread pool.
        """
        datalog = self.data_path / DATALOG_DIR_NAME
        if not datalog.is_dir():
            logger.info(f"No {DATALOG_DIR_NAME} directory in {self.data_path}")
            self.sessions = []
            self.sleep_night_usage = {}
            return self.sessions

        date_dirs = sorted(
            (d for d in datalog.iterdir() if d.is_dir() and _DATE_DIR_RE.match(d.name)),
            key=lambda d: d.name,
            reverse=True,
        )

        sessions: list[SessionFile] = []
        for date_dir in date_dirs:
            sessions.extend(
                reversed(group_session_files(date_dir, with_durations=False))
            )

        timed = [s for s in sessions if SESSION_DURATION_FILE_TYPE in s.files]
        items = BatchDecoder(self.max_workers).run(
            read_session_duration,
            [s.files[SESSION_DURATION_FILE_TYPE] for s in timed],
        )
        durations = {
            session.id: item.result
            for session, item in zip(timed, items, strict=True)
            if item.result
        }

        self.sessions = [
            s.model_copy(update={"duration_minutes": durations[s.id]})
            if s.id in durations
            else s
            for s in sessions
        ]
        logger.info(
            f"Found {len(self.sessions)} sessions in {len(date_dirs)} date folders"
        )

        self._recalculate_usage()
        return self.sessions

    def _recalculate_usage(self) -> None:
        self.sleep_night_usage = calculate_sleep_night_usage(
            self.sessions, self.day_start_hour
        )

    def set_day_boundary(self, start_hour: int, end_hour: int | None = None) -> None:
        """
        Change the sleep-night boundary and regroup session usage.

        Raises:
            ValueError: If either hour is outside 0-23
        """
        end_hour = start_hour if end_hour is None else end_hour
        _validate_hour("start_hour", start_hour)
        _validate_hour("end_hour", end_hour)
        self.day_start_hour = start_hour
        self.day_end_hour = end_hour
        self._recalculate_usage()

    def get_session(self, session_id: str) -> SessionFile | None:
        """Find a loaded session by id."""
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def load_session_detail(
        self, session_id: str, include_samples: bool = False
    ) -> SessionDetail | LoadError:
        """
        Decode every sub-file of a session.

        Returns:
            SessionDetail, or LoadError if the id is unknown
        """
        session = self.get_session(session_id)
        if session is None:
            return LoadError(error="Session not found")
        return load_session_detail(session, include_samples=include_samples)

    def get_daily_stats(self) -> list[DailyStats]:
        """Daily statistics for days with recorded usage, oldest first."""
        if not isinstance(self.daily_summary, DailySummary):
            return []
        return get_daily_stats(
            self.daily_summary, nights=self.sleep_night_usage, aliases=self.aliases
        )

    def get_summary(
        self,
        recent_days: int = DEFAULT_RECENT_DAYS,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ) -> CPAPSummary:
        """
        Build the overall summary.

        Args:
            recent_days: Number of latest days to average over
            max_sessions: Number of newest sessions to include
        """
        stats = self.get_daily_stats()
        recent = stats[-recent_days:] if recent_days > 0 else []

        averages = SummaryAverages()
        if recent:
            averages = SummaryAverages(
                ahi=sum(d.ahi for d in recent) / len(recent),
                usage_hours=sum(d.usage_hours for d in recent) / len(recent),
                leak_50=sum(d.leak_50 for d in recent) / len(recent),
            )

        return CPAPSummary(
            device_info=self.device_info or DeviceInfo(),
            total_days=len(stats),
            recent_days=len(recent),
            averages=averages,
            daily_stats=stats,
            sessions=self.sessions[:max_sessions],
            error=(
                self.daily_summary.error
                if isinstance(self.daily_summary, LoadError)
                else None
            ),
        )
