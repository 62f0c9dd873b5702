"""Pydantic models for therapy session data."""

from datetime import datetime
from pathlib import Path

import numpy as np

from pydantic import BaseModel, ConfigDict, Field

from cpap_edf.models.results import SubFileError
from cpap_edf.parsers.formats.types import FileHeader


class SessionFile(BaseModel):
    """
    One therapy session: the sibling EDF files sharing a timestamp.

    Files live in a DATALOG date-bucket directory and are named
    <YYYYMMDD_HHMMSS>_<TYPE>.edf, e.g. 20240105_230012_BRP.edf.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "20240105_230012",
                "date": "20240105",
                "timestamp": "2024-01-05T23:00:12",
                "files": {
                    "BRP": "DATALOG/20240105/20240105_230012_BRP.edf",
                    "PLD": "DATALOG/20240105/20240105_230012_PLD.edf",
                },
                "duration_minutes": 412.0,
            }
        },
    )

    id: str = Field(description="Session timestamp YYYYMMDD_HHMMSS")
    date: str = Field(description="Date-bucket directory name (YYYYMMDD)")
    timestamp: datetime | None = Field(
        default=None, description="Session start parsed from the id"
    )
    files: dict[str, Path] = Field(
        default_factory=dict, description="Sub-file path by type tag"
    )
    duration_minutes: float = Field(
        default=0.0, ge=0, description="Duration from the waveform sub-file header"
    )

    @property
    def file_types(self) -> list[str]:
        """Type tags present for this session, sorted."""
        return sorted(self.files)


class SubFileDetail(BaseModel):
    """Decoded view of one session sub-file."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    header: FileHeader
    signals: list[str] = Field(default_factory=list, description="Signal labels")
    sample_counts: dict[str, int] = Field(
        default_factory=dict, description="Samples per signal"
    )
    raw_data: dict[str, np.ndarray] | None = Field(
        default=None, description="Physical samples, only when requested"
    )

    @property
    def duration_seconds(self) -> float:
        """Declared duration of this sub-file."""
        return self.header.total_duration_seconds


class SessionDetail(BaseModel):
    """Per-sub-file decode results for one session."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    date: str
    timestamp: datetime | None = None
    data: dict[str, SubFileDetail | SubFileError] = Field(default_factory=dict)

    @property
    def errors(self) -> dict[str, str]:
        """Error message by type tag for sub-files that failed."""
        return {
            tag: result.error
            for tag, result in self.data.items()
            if isinstance(result, SubFileError)
        }
