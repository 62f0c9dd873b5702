"""
EDF File Format Decoder

Decoder for European Data Format (EDF) files as written by ResMed CPAP
devices. A file is laid out as:

- a fixed 256-byte ASCII header
- numSignals x 256 bytes of signal headers, stored as 10 column blocks
  (all labels, then all transducer types, ...)
- numDataRecords data records, each holding samplesPerRecord[i]
  little-endian int16 samples for every signal i in declaration order

The decoder is lenient: malformed numeric text decodes as 0, and a buffer
that ends early yields the samples that are present instead of an error.
EDF+ annotation channels are decoded as ordinary int16 signals.

The pure functions (decode_header, decode_signal_headers, decode_samples,
decode_edf) work on in-memory buffers and have no side effects, so separate
files can be decoded concurrently. EDFReader adds file access on top.
"""

import logging
import os
import re

from pathlib import Path
from types import TracebackType
from typing import BinaryIO

import numpy as np

from cpap_edf.constants import (
    EDF_HEADER_FIELDS,
    EDF_HEADER_SIZE,
    EDF_SAMPLE_BYTES,
    EDF_SIGNAL_FIELDS,
    EDF_SIGNAL_HEADER_SIZE,
)
from cpap_edf.parsers.formats.types import (
    DecodedEDF,
    FileHeader,
    SignalDescriptor,
    unique_signal_keys,
)

logger = logging.getLogger(__name__)

_INT_PREFIX_RE = re.compile(r"^[+-]?\d+")
_FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_PADDING = " \t\r\n\x00"

_INT_FIELDS = {"header_bytes", "num_data_records", "num_signals"}
_FLOAT_FIELDS = {"data_record_duration"}
_SIGNAL_INT_FIELDS = {"digital_minimum", "digital_maximum", "samples_per_record"}
_SIGNAL_FLOAT_FIELDS = {"physical_minimum", "physical_maximum"}

_SAMPLE_DTYPE = np.dtype("<i2")


class EDFError(Exception):
    """Base exception for EDF decoding errors."""

    pass


class EDFFormatError(EDFError):
    """Raised when a buffer is too short to hold an EDF header."""

    pass


def parse_int_or_zero(text: str) -> int:
    """
    Parse the leading integer of a header field.

    Trailing garbage after the digits is ignored ("12abc" -> 12, "1.0" -> 1).

    Args:
        text: Field text, already trimmed

    Returns:
        Parsed integer, or 0 for blank or non-numeric text
    """
    match = _INT_PREFIX_RE.match(text.strip())
    if match is None:
        if text.strip():
            logger.debug(f"Non-numeric integer field {text!r} decoded as 0")
        return 0
    return int(match.group(0))


def parse_float_or_zero(text: str) -> float:
    """
    Parse the leading decimal number of a header field.

    Args:
        text: Field text, already trimmed

    Returns:
        Parsed float, or 0.0 for blank or non-numeric text
    """
    match = _FLOAT_PREFIX_RE.match(text.strip())
    if match is None:
        if text.strip():
            logger.debug(f"Non-numeric float field {text!r} decoded as 0")
        return 0.0
    return float(match.group(0))


def _read_ascii(buffer: bytes, start: int, length: int) -> str:
    return buffer[start : start + length].decode("ascii", errors="replace").strip(
        _PADDING
    )


def decode_header(buffer: bytes) -> FileHeader:
    """
    Decode the fixed 256-byte EDF header.

    Args:
        buffer: File contents (at least the first 256 bytes)

    Returns:
        FileHeader with trimmed text fields and leniently parsed numbers

    Raises:
        EDFFormatError: If the buffer is shorter than 256 bytes
    """
    if len(buffer) < EDF_HEADER_SIZE:
        raise EDFFormatError(
            f"Buffer too short for EDF header: {len(buffer)} < {EDF_HEADER_SIZE} bytes"
        )

    fields: dict[str, str | int | float] = {}
    for name, offset, length in EDF_HEADER_FIELDS:
        text = _read_ascii(buffer, offset, length)
        if name in _INT_FIELDS:
            fields[name] = parse_int_or_zero(text)
        elif name in _FLOAT_FIELDS:
            fields[name] = parse_float_or_zero(text)
        else:
            fields[name] = text

    header = FileHeader.model_validate(fields)

    if header.header_bytes != header.expected_header_bytes:
        logger.debug(
            f"Declared header size {header.header_bytes} differs from expected "
            f"{header.expected_header_bytes} for {header.num_signals} signals"
        )

    return header


def decode_signal_headers(buffer: bytes, num_signals: int) -> list[SignalDescriptor]:
    """
    Decode the signal header column blocks that follow the fixed header.

    Each of the 10 fields is stored as a block of num_signals fixed-width
    entries; blocks are consumed in file order starting at byte 256.

    Args:
        buffer: File contents
        num_signals: Signal count from the fixed header

    Returns:
        One SignalDescriptor per signal, in declaration order
    """
    if num_signals <= 0:
        return []

    columns: dict[str, list[str]] = {}
    offset = EDF_HEADER_SIZE
    for name, width in EDF_SIGNAL_FIELDS:
        columns[name] = [
            _read_ascii(buffer, offset + i * width, width) for i in range(num_signals)
        ]
        offset += num_signals * width

    if len(buffer) < offset:
        logger.debug(
            f"Buffer ends inside signal headers ({len(buffer)} < {offset} bytes); "
            f"missing fields decoded as blank"
        )

    signals = []
    for i in range(num_signals):
        values: dict[str, str | int | float] = {}
        for name, _ in EDF_SIGNAL_FIELDS:
            text = columns[name][i]
            if name in _SIGNAL_INT_FIELDS:
                values[name] = parse_int_or_zero(text)
            elif name in _SIGNAL_FLOAT_FIELDS:
                values[name] = parse_float_or_zero(text)
            else:
                values[name] = text
        signals.append(SignalDescriptor.model_validate(values))

    return signals


def calibrate(raw: np.ndarray, signal: SignalDescriptor) -> np.ndarray:
    """
    Convert digital samples to physical units.

    A zero digital range skips calibration and returns the raw values.

    Args:
        raw: Digital sample values
        signal: Descriptor holding the calibration ranges

    Returns:
        float64 array of physical values
    """
    values = raw.astype(np.float64)
    if signal.is_degenerate:
        return values

    physical_range = signal.physical_maximum - signal.physical_minimum
    digital_range = signal.digital_maximum - signal.digital_minimum
    return (
        signal.physical_minimum
        + (values - signal.digital_minimum) * physical_range / digital_range
    )


def _samples_available(total_bytes: int, header: FileHeader) -> int:
    data_offset = max(header.header_bytes, 0)
    return max(total_bytes - data_offset, 0) // EDF_SAMPLE_BYTES


def _samples_to_decode(
    total_bytes: int, header: FileHeader, signals: list[SignalDescriptor]
) -> tuple[int, int]:
    samples_per_record = sum(s.samples_per_record for s in signals)
    declared = max(header.num_data_records, 0) * samples_per_record
    return min(_samples_available(total_bytes, header), declared), samples_per_record


def count_samples(
    total_bytes: int, header: FileHeader, signals: list[SignalDescriptor]
) -> dict[str, int]:
    """
    Count the samples each signal would decode to, without decoding them.

    Args:
        total_bytes: Size of the whole file/buffer in bytes
        header: Decoded file header
        signals: Decoded signal headers

    Returns:
        Sample count per signal key
    """
    limit, per_record = _samples_to_decode(total_bytes, header, signals)
    keys = unique_signal_keys(signals)
    if per_record == 0:
        return {key: 0 for key in keys}

    full_records, remainder = divmod(limit, per_record)
    counts = {}
    start = 0
    for key, signal in zip(keys, signals, strict=True):
        spr = signal.samples_per_record
        partial = min(max(remainder - start, 0), spr)
        counts[key] = full_records * spr + partial
        start += spr
    return counts


def decode_samples(
    buffer: bytes,
    header: FileHeader,
    signals: list[SignalDescriptor],
    *,
    digital: bool = False,
    labels: set[str] | None = None,
) -> dict[str, np.ndarray]:
    """
    Decode interleaved data records into one sample sequence per signal.

    Decoding starts at header.header_bytes and stops after
    header.num_data_records records or when the buffer runs out, whichever
    comes first. A final partial record contributes the whole samples it
    holds; a trailing odd byte is ignored.

    Args:
        buffer: File contents
        header: Decoded file header
        signals: Decoded signal headers
        digital: If True, return raw int16 values without calibration
        labels: If given, only materialize these signal keys

    Returns:
        Mapping of signal key to samples concatenated in record order
    """
    limit, per_record = _samples_to_decode(len(buffer), header, signals)
    keys = unique_signal_keys(signals)

    declared = max(header.num_data_records, 0) * per_record
    if limit < declared:
        logger.debug(
            f"Buffer exhausted after {limit} of {declared} declared samples "
            f"({limit // per_record if per_record else 0} of "
            f"{header.num_data_records} records)"
        )

    data_offset = max(header.header_bytes, 0)
    raw = (
        np.frombuffer(buffer, dtype=_SAMPLE_DTYPE, count=limit, offset=data_offset)
        if limit
        else np.empty(0, dtype=_SAMPLE_DTYPE)
    )

    full_records, remainder = divmod(limit, per_record) if per_record else (0, 0)
    records = raw[: full_records * per_record].reshape(full_records, per_record)
    tail = raw[full_records * per_record :]

    data: dict[str, np.ndarray] = {}
    start = 0
    for key, signal in zip(keys, signals, strict=True):
        spr = signal.samples_per_record
        if labels is None or key in labels:
            column = np.concatenate(
                [records[:, start : start + spr].reshape(-1), tail[start : start + spr]]
            )
            data[key] = column if digital else calibrate(column, signal)
        start += spr

    return data


def decode_edf(
    buffer: bytes,
    *,
    digital: bool = False,
    labels: set[str] | None = None,
) -> DecodedEDF:
    """
    Decode a complete EDF file held in memory.

    Stages run strictly in order: the fixed header supplies the signal count
    for the signal headers, and both supply the layout for the samples.

    Args:
        buffer: File contents
        digital: If True, keep raw int16 values
        labels: If given, only materialize these signal keys

    Returns:
        DecodedEDF with header, signals and per-signal sample arrays

    Raises:
        EDFFormatError: If the buffer is shorter than 256 bytes
    """
    header = decode_header(buffer)
    signals = decode_signal_headers(buffer, header.num_signals)
    data = decode_samples(buffer, header, signals, digital=digital, labels=labels)
    return DecodedEDF(header=header, signals=signals, data=data)


class EDFReader:
    """
    File-backed EDF reader.

    Header access reads only the header bytes, so session listings can
    report durations and sample counts without loading waveforms.

    Usage:
        with EDFReader("20240105_230000_BRP.edf") as edf:
            header = edf.get_header()
            counts = edf.sample_counts()
            flow, info = edf.read_signal("Flow.40ms")
    """

    def __init__(self, file_path: Path | str):
        """
        Initialize EDF reader.

        Args:
            file_path: Path to an EDF file
        """
        self.file_path = Path(file_path)
        self._file: BinaryIO | None = None
        self._header: FileHeader | None = None
        self._signals: list[SignalDescriptor] | None = None

    def __enter__(self) -> "EDFReader":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> None:
        """
        Open the EDF file.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        if self._file is not None:
            return

        if not self.file_path.exists():
            raise FileNotFoundError(f"EDF file not found: {self.file_path}")

        self._file = open(self.file_path, "rb")
        logger.debug(f"Opened EDF file: {self.file_path.name}")

    def close(self) -> None:
        """Close the EDF file."""
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.debug(f"Closed EDF file: {self.file_path.name}")

    def _read(self, start: int, length: int | None = None) -> bytes:
        if self._file is None:
            self.open()
        assert self._file is not None
        self._file.seek(start)
        return self._file.read() if length is None else self._file.read(length)

    @property
    def file_size(self) -> int:
        """Size of the file on disk in bytes."""
        if self._file is None:
            self.open()
        assert self._file is not None
        return os.fstat(self._file.fileno()).st_size

    def get_header(self) -> FileHeader:
        """
        Read the fixed header.

        Raises:
            EDFFormatError: If the file is shorter than 256 bytes
        """
        if self._header is None:
            self._header = decode_header(self._read(0, EDF_HEADER_SIZE))
        return self._header

    def get_signal_info(self) -> list[SignalDescriptor]:
        """Read the signal headers."""
        if self._signals is None:
            header = self.get_header()
            head = self._read(
                0, EDF_HEADER_SIZE + header.num_signals * EDF_SIGNAL_HEADER_SIZE
            )
            self._signals = decode_signal_headers(head, header.num_signals)
            logger.debug(f"Found {len(self._signals)} signals in {self.file_path.name}")
        return self._signals

    def list_signal_labels(self) -> list[str]:
        """Get the data key of every signal, in declaration order."""
        return unique_signal_keys(self.get_signal_info())

    def sample_counts(self) -> dict[str, int]:
        """Per-signal sample counts computed from the file size."""
        return count_samples(self.file_size, self.get_header(), self.get_signal_info())

    def read_all(
        self, *, digital: bool = False, labels: set[str] | None = None
    ) -> DecodedEDF:
        """
        Decode the whole file.

        Args:
            digital: If True, keep raw int16 values
            labels: If given, only materialize these signal keys
        """
        return decode_edf(self._read(0), digital=digital, labels=labels)

    def read_signal(
        self, label: str, *, digital: bool = False
    ) -> tuple[np.ndarray, SignalDescriptor]:
        """
        Read the samples of a single signal.

        Args:
            label: Signal key
            digital: If True, return raw int16 values

        Returns:
            Tuple of (samples, signal descriptor)

        Raises:
            KeyError: If the signal is not present
        """
        decoded = self.read_all(digital=digital, labels={label})
        descriptor = decoded.signal(label)
        logger.debug(f"Read {len(decoded.data[label])} samples from signal '{label}'")
        return decoded.data[label], descriptor

    def get_sample_rate(self, label: str) -> float:
        """
        Get sample rate for a specific signal in Hz.

        Raises:
            KeyError: If the signal is not present
        """
        keyed = dict(zip(self.list_signal_labels(), self.get_signal_info(), strict=True))
        if label not in keyed:
            raise KeyError(f"Signal '{label}' not found")
        return keyed[label].sample_rate(self.get_header().data_record_duration)

    def __repr__(self) -> str:
        return f"<EDFReader {self.file_path.name}>"


def read_edf(
    file_path: Path | str,
    *,
    digital: bool = False,
    labels: set[str] | None = None,
) -> DecodedEDF:
    """
    Read and decode an EDF file from disk.

    Raises:
        FileNotFoundError: If the file does not exist
        EDFFormatError: If the file is shorter than 256 bytes
    """
    with EDFReader(file_path) as edf:
        return edf.read_all(digital=digital, labels=labels)


def read_edf_header(file_path: Path | str) -> tuple[FileHeader, list[SignalDescriptor]]:
    """
    Read only the header and signal headers of an EDF file.

    Raises:
        FileNotFoundError: If the file does not exist
        EDFFormatError: If the file is shorter than 256 bytes
    """
    with EDFReader(file_path) as edf:
        return edf.get_header(), edf.get_signal_info()
