"""
Session file adapter.

A ResMed therapy session is a set of EDF files in one DATALOG date bucket
sharing a start timestamp:

    DATALOG/20240105/20240105_230012_BRP.edf   breathing waveforms
    DATALOG/20240105/20240105_230012_PLD.edf   pressure/leak data
    DATALOG/20240105/20240105_230012_EVE.edf   events

Each sub-file is decoded independently; one that fails is reported beside
its siblings instead of failing the session.
"""

import logging
import re

from pathlib import Path

from cpap_edf.constants import (
    SECONDS_PER_MINUTE,
    SESSION_DURATION_FILE_TYPE,
    SESSION_FILE_PATTERN,
)
from cpap_edf.models.results import SubFileError
from cpap_edf.models.session import SessionDetail, SessionFile, SubFileDetail
from cpap_edf.parsers.formats.dates import parse_session_timestamp
from cpap_edf.parsers.formats.edf import EDFError, EDFReader

logger = logging.getLogger(__name__)

_SESSION_FILE_RE = re.compile(SESSION_FILE_PATTERN)


def match_session_file(filename: str) -> tuple[str, str] | None:
    """
    Split a session file name into (session_id, type tag).

    Returns:
        Tuple of ids, or None if the name is not a session file
    """
    match = _SESSION_FILE_RE.match(filename)
    if not match:
        return None
    return match.group(1), match.group(2)


def read_session_duration(file_path: Path | str) -> float:
    """
    Get a session's duration from its waveform file header.

    Only the fixed header is read.

    Args:
        file_path: Path to the BRP sub-file

    Returns:
        Duration in minutes, or 0.0 if the file is missing or unreadable
    """
    try:
        with EDFReader(file_path) as edf:
            header = edf.get_header()
    except (OSError, EDFError) as e:
        logger.debug(f"No duration for {Path(file_path).name}: {e}")
        return 0.0

    return max(header.total_duration_seconds, 0.0) / SECONDS_PER_MINUTE


def group_session_files(
    date_dir: Path, *, with_durations: bool = True
) -> list[SessionFile]:
    """
    Group the EDF files of one date-bucket directory into sessions.

    Args:
        date_dir: DATALOG/<YYYYMMDD> directory
        with_durations: If False, leave duration_minutes at 0 so callers can
            read durations separately (e.g. in parallel)

    Returns:
        Sessions sorted by id
    """
    grouped: dict[str, dict[str, Path]] = {}

    for path in sorted(date_dir.iterdir()):
        if not path.is_file():
            continue
        parts = match_session_file(path.name)
        if parts is None:
            continue
        session_id, file_type = parts
        grouped.setdefault(session_id, {})[file_type] = path

    sessions = []
    for session_id in sorted(grouped):
        files = grouped[session_id]
        duration = 0.0
        if with_durations and SESSION_DURATION_FILE_TYPE in files:
            duration = read_session_duration(files[SESSION_DURATION_FILE_TYPE])

        sessions.append(
            SessionFile(
                id=session_id,
                date=date_dir.name,
                timestamp=parse_session_timestamp(session_id),
                files=files,
                duration_minutes=duration,
            )
        )

    logger.debug(f"Found {len(sessions)} sessions in {date_dir.name}")
    return sessions


def load_sub_file(file_path: Path | str, include_samples: bool = False) -> SubFileDetail:
    """
    Decode one session sub-file.

    Without include_samples only the headers are read and sample counts are
    derived from the file size.

    Raises:
        FileNotFoundError: If the file does not exist
        EDFFormatError: If the file is shorter than 256 bytes
    """
    with EDFReader(file_path) as edf:
        if include_samples:
            decoded = edf.read_all()
            return SubFileDetail(
                header=decoded.header,
                signals=decoded.labels,
                sample_counts=decoded.sample_counts,
                raw_data=decoded.data,
            )

        return SubFileDetail(
            header=edf.get_header(),
            signals=edf.list_signal_labels(),
            sample_counts=edf.sample_counts(),
        )


def load_session_detail(
    session: SessionFile, include_samples: bool = False
) -> SessionDetail:
    """
    Decode every sub-file of a session.

    Args:
        session: Session to load
        include_samples: Include physical sample arrays per signal

    Returns:
        SessionDetail mapping each type tag to its decoded view or error
    """
    data: dict[str, SubFileDetail | SubFileError] = {}

    for file_type, path in sorted(session.files.items()):
        try:
            data[file_type] = load_sub_file(path, include_samples=include_samples)
        except (OSError, EDFError, ValueError) as e:
            logger.warning(f"Failed to decode {path.name}: {e}")
            data[file_type] = SubFileError(error=str(e))

    return SessionDetail(
        id=session.id,
        date=session.date,
        timestamp=session.timestamp,
        data=data,
    )
