"""
Batch decoding across many EDF files.

Files are independent, so they are decoded on a thread pool. Cancellation
is checked before each file starts; a file already being decoded runs to
completion.
"""

import logging
import threading

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, TypeVar

from cpap_edf.constants import DEFAULT_BATCH_WORKERS
from cpap_edf.models.results import SubFileError
from cpap_edf.parsers.formats.edf import EDFError, read_edf
from cpap_edf.parsers.formats.types import DecodedEDF

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BatchItem(Generic[T]):
    """Outcome for one file of a batch."""

    path: Path
    result: T | None = None
    error: SubFileError | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


class BatchDecoder:
    """Runs a per-file function over many files in parallel."""

    def __init__(self, max_workers: int = DEFAULT_BATCH_WORKERS):
        """
        Initialize batch decoder.

        Args:
            max_workers: Thread pool size (at least 1)
        """
        self.max_workers = max(1, max_workers)
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Skip every file that has not started yet."""
        self._cancel_event.set()
        logger.info("Batch decode cancellation requested")

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def reset(self) -> None:
        """Clear a previous cancellation."""
        self._cancel_event.clear()

    def _run_one(self, func: Callable[[Path], T], path: Path) -> BatchItem[T]:
        if self._cancel_event.is_set():
            return BatchItem(path=path, skipped=True)
        try:
            return BatchItem(path=path, result=func(path))
        except (OSError, EDFError, ValueError) as e:
            logger.warning(f"Failed to decode {path.name}: {e}")
            return BatchItem(path=path, error=SubFileError(error=str(e)))

    def run(
        self, func: Callable[[Path], T], paths: Iterable[Path | str]
    ) -> list[BatchItem[T]]:
        """
        Apply func to every path.

        Args:
            func: Per-file function; OSError, EDFError and ValueError are
                captured as SubFileError, anything else propagates
            paths: Files to process

        Returns:
            One BatchItem per path, in input order
        """
        path_list = [Path(p) for p in paths]
        if not path_list:
            return []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._run_one, func, p) for p in path_list]
            items = [future.result() for future in futures]

        skipped = sum(1 for item in items if item.skipped)
        failed = sum(1 for item in items if item.error is not None)
        logger.debug(
            f"Batch of {len(items)} files: {len(items) - skipped - failed} ok, "
            f"{failed} failed, {skipped} skipped"
        )
        return items

    def decode_files(self, paths: Iterable[Path | str]) -> list[BatchItem[DecodedEDF]]:
        """Fully decode every file."""
        return self.run(read_edf, paths)
