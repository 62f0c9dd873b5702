"""EDF format type definitions."""

from datetime import datetime

import numpy as np

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cpap_edf.constants import (
    EDF_ANNOTATION_LABEL,
    EDF_HEADER_SIZE,
    EDF_SIGNAL_HEADER_SIZE,
)
from cpap_edf.parsers.formats.dates import parse_edf_date, parse_edf_time


class FileHeader(BaseModel):
    """Fixed 256-byte EDF preamble."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default="", description="Format version")
    patient_id: str = Field(default="", description="Patient identification")
    recording_id: str = Field(default="", description="Recording identification")
    start_date: str = Field(default="", description="DD.MM.YY or DD-MMM-YYYY")
    start_time: str = Field(default="", description="HH.MM.SS")
    header_bytes: int = Field(default=0, description="Byte offset of sample data")
    reserved: str = Field(default="", description="Reserved (EDF+C/EDF+D marker)")
    num_data_records: int = Field(default=0, description="Number of data records")
    data_record_duration: float = Field(
        default=0.0, description="Duration of one data record (seconds)"
    )
    num_signals: int = Field(default=0, ge=0, description="Number of signals")

    @field_validator("num_signals", mode="before")
    @classmethod
    def clamp_signal_count(cls, v: int) -> int:
        """Negative signal counts are treated as no signals."""
        return max(int(v), 0)

    @property
    def expected_header_bytes(self) -> int:
        """Header size a well-formed file declares for this signal count."""
        return EDF_HEADER_SIZE + self.num_signals * EDF_SIGNAL_HEADER_SIZE

    @property
    def total_duration_seconds(self) -> float:
        """Declared recording length in seconds."""
        return self.num_data_records * self.data_record_duration

    @property
    def start_datetime(self) -> datetime | None:
        """Recording start, or None if either the date or time is unreadable."""
        start_date = parse_edf_date(self.start_date)
        start_time = parse_edf_time(self.start_time)
        if start_date is None or start_time is None:
            return None
        return datetime.combine(start_date, start_time)


class SignalDescriptor(BaseModel):
    """Metadata for a single EDF signal/channel."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Signal name")
    transducer_type: str = Field(default="", description="Transducer type")
    physical_dimension: str = Field(
        default="", description="Units (e.g., 'cmH2O', 'L/min')"
    )
    physical_minimum: float = Field(default=0.0, description="Physical minimum value")
    physical_maximum: float = Field(default=0.0, description="Physical maximum value")
    digital_minimum: int = Field(default=0, description="Digital minimum value")
    digital_maximum: int = Field(default=0, description="Digital maximum value")
    prefiltering: str = Field(default="", description="Prefiltering info")
    samples_per_record: int = Field(
        default=0, ge=0, description="Samples per data record"
    )
    reserved: str = Field(default="", description="Reserved")

    @field_validator("samples_per_record", mode="before")
    @classmethod
    def clamp_samples(cls, v: int) -> int:
        """Negative sample counts are treated as an empty signal."""
        return max(int(v), 0)

    @property
    def is_degenerate(self) -> bool:
        """True when the digital range is zero and calibration is skipped."""
        return self.digital_maximum == self.digital_minimum

    @property
    def gain(self) -> float:
        """Digital->physical scale factor."""
        if self.is_degenerate:
            return 1.0
        return (self.physical_maximum - self.physical_minimum) / (
            self.digital_maximum - self.digital_minimum
        )

    @property
    def offset(self) -> float:
        """Physical value of digital zero."""
        if self.is_degenerate:
            return 0.0
        return self.physical_minimum - self.digital_minimum * self.gain

    @property
    def is_annotation(self) -> bool:
        """True for EDF+ annotation channels."""
        return self.label.startswith(EDF_ANNOTATION_LABEL)

    def digital_to_physical(self, digital_value: int) -> float:
        """Convert a digital value to physical units."""
        if self.is_degenerate:
            return float(digital_value)
        return self.physical_minimum + (digital_value - self.digital_minimum) * (
            self.physical_maximum - self.physical_minimum
        ) / (self.digital_maximum - self.digital_minimum)

    def sample_rate(self, record_duration: float) -> float:
        """
        Get sample rate in Hz.

        Args:
            record_duration: Duration of one data record in seconds

        Returns:
            Samples per second, or 0.0 when the record duration is unknown
        """
        if record_duration <= 0:
            return 0.0
        return self.samples_per_record / record_duration


def unique_signal_keys(signals: list[SignalDescriptor]) -> list[str]:
    """
    Get the data-mapping key for each signal, in declaration order.

    Repeated labels get a "#n" suffix (n = 2, 3, ...) so that every signal
    keeps its own sample sequence.

    Args:
        signals: Signal descriptors in file order

    Returns:
        One unique key per signal
    """
    seen: dict[str, int] = {}
    keys = []
    for signal in signals:
        count = seen.get(signal.label, 0) + 1
        seen[signal.label] = count
        keys.append(signal.label if count == 1 else f"{signal.label}#{count}")
    return keys


class DecodedEDF(BaseModel):
    """A fully decoded EDF file."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    header: FileHeader
    signals: list[SignalDescriptor] = Field(default_factory=list)
    data: dict[str, np.ndarray] = Field(
        default_factory=dict, description="Physical values by signal label"
    )

    @property
    def labels(self) -> list[str]:
        """Keys of the data mapping, in signal declaration order."""
        return list(self.data.keys())

    @property
    def sample_counts(self) -> dict[str, int]:
        """Number of decoded samples per signal."""
        return {label: len(values) for label, values in self.data.items()}

    @property
    def records_decoded(self) -> int:
        """Number of complete data records present for every decoded signal."""
        keyed = self._keyed_signals()
        counts = [
            len(values) // keyed[label].samples_per_record
            for label, values in self.data.items()
            if label in keyed and keyed[label].samples_per_record > 0
        ]
        return min(counts) if counts else 0

    def _keyed_signals(self) -> dict[str, SignalDescriptor]:
        return dict(zip(unique_signal_keys(self.signals), self.signals, strict=True))

    def signal(self, label: str) -> SignalDescriptor:
        """
        Look up a signal descriptor by data label.

        Raises:
            KeyError: If no signal has that label
        """
        keyed = self._keyed_signals()
        if label not in keyed:
            raise KeyError(f"Signal '{label}' not found. Available: {list(keyed)}")
        return keyed[label]

    def timestamps(self, label: str) -> np.ndarray:
        """
        Seconds from recording start for each sample of a signal.

        Raises:
            KeyError: If the signal is unknown or was not decoded
        """
        descriptor = self.signal(label)
        rate = descriptor.sample_rate(self.header.data_record_duration)
        count = len(self.data[label])
        if rate <= 0:
            return np.zeros(count, dtype=np.float64)
        return np.arange(count, dtype=np.float64) / rate
