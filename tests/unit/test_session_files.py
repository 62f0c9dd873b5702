"""Tests for session file grouping and per-sub-file decoding."""

from datetime import datetime

import numpy as np
import pytest

from cpap_edf.constants import (
    FILE_TYPE_BRP,
    FILE_TYPE_CSL,
    FILE_TYPE_EVE,
    FILE_TYPE_PLD,
    FILE_TYPE_SA2,
    FILE_TYPE_SAD,
)
from cpap_edf.models.results import SubFileError
from cpap_edf.models.session import SubFileDetail
from cpap_edf.parsers.session import (
    group_session_files,
    load_session_detail,
    load_sub_file,
    match_session_file,
    read_session_duration,
)
from tests.helpers.edf_builder import build_session_edf, write_edf


@pytest.fixture
def date_dir(tmp_path):
    """A DATALOG date bucket with two sessions and some noise."""
    folder = tmp_path / "DATALOG" / "20240105"
    write_edf(folder / "20240105_230000_BRP.edf", build_session_edf(90))
    write_edf(folder / "20240105_230000_PLD.edf", build_session_edf(90, "Leak.2s"))
    (folder / "20240105_230000_EVE.edf").write_bytes(b"short")
    write_edf(folder / "20240105_235500_SA2.edf", build_session_edf(5, "SpO2.1s"))
    (folder / "README.txt").write_text("ignored")
    return folder


@pytest.mark.parser
class TestSessionGrouping:
    """Files sharing a timestamp form one session."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("20240105_230000_BRP.edf", ("20240105_230000", "BRP")),
            ("20240105_230000_SA2.edf", ("20240105_230000", FILE_TYPE_SA2)),
            ("20240105_230000_SAD.edf", ("20240105_230000", FILE_TYPE_SAD)),
            ("20240105_230000_CSL.edf", ("20240105_230000", FILE_TYPE_CSL)),
            ("20240105_230000_B.edf", None),
            ("20240105_230000_TOOLONG.edf", None),
            ("20240105_230000_brp.edf", None),
            ("STR.edf", None),
        ],
    )
    def test_match_session_file(self, name, expected):
        assert match_session_file(name) == expected

    def test_group_session_files(self, date_dir):
        sessions = group_session_files(date_dir)

        assert [s.id for s in sessions] == ["20240105_230000", "20240105_235500"]
        first, second = sessions
        assert first.date == "20240105"
        assert first.timestamp == datetime(2024, 1, 5, 23, 0, 0)
        assert first.file_types == [FILE_TYPE_BRP, FILE_TYPE_EVE, FILE_TYPE_PLD]
        assert first.duration_minutes == 90
        # No BRP file, so no duration
        assert second.file_types == ["SA2"]
        assert second.duration_minutes == 0

    def test_group_without_durations(self, date_dir):
        sessions = group_session_files(date_dir, with_durations=False)
        assert all(s.duration_minutes == 0 for s in sessions)


@pytest.mark.parser
class TestSessionDuration:
    """Duration comes from the BRP header alone."""

    def test_duration_minutes(self, date_dir):
        assert read_session_duration(date_dir / "20240105_230000_BRP.edf") == 90

    def test_unreadable_file_is_zero(self, date_dir):
        assert read_session_duration(date_dir / "20240105_230000_EVE.edf") == 0.0

    def test_missing_file_is_zero(self, tmp_path):
        assert read_session_duration(tmp_path / "missing_BRP.edf") == 0.0


@pytest.mark.parser
class TestSessionDetail:
    """Sub-files decode independently."""

    def test_header_only_detail(self, date_dir):
        detail = load_sub_file(date_dir / "20240105_230000_PLD.edf")

        assert detail.signals == ["Leak.2s"]
        assert detail.sample_counts == {"Leak.2s": 180}
        assert detail.raw_data is None
        assert detail.duration_seconds == 90 * 60

    def test_detail_with_samples(self, date_dir):
        detail = load_sub_file(
            date_dir / "20240105_230000_BRP.edf", include_samples=True
        )

        flow = detail.raw_data["Flow.40ms"]
        assert len(flow) == detail.sample_counts["Flow.40ms"] == 180
        np.testing.assert_array_equal(flow[:4], [0, 0, 1, -1])

    def test_failed_sub_file_is_reported_beside_siblings(self, date_dir):
        session = group_session_files(date_dir)[0]

        detail = load_session_detail(session)

        assert detail.id == "20240105_230000"
        assert set(detail.data) == {"BRP", "EVE", "PLD"}
        assert isinstance(detail.data["BRP"], SubFileDetail)
        assert isinstance(detail.data["PLD"], SubFileDetail)
        assert isinstance(detail.data[FILE_TYPE_EVE], SubFileError)
        assert "too short" in detail.data[FILE_TYPE_EVE].error
        assert list(detail.errors) == [FILE_TYPE_EVE]

    def test_missing_sub_file_is_reported(self, date_dir):
        session = group_session_files(date_dir)[0]
        (date_dir / "20240105_230000_PLD.edf").unlink()

        detail = load_session_detail(session)

        assert isinstance(detail.data[FILE_TYPE_PLD], SubFileError)
        assert "not found" in detail.data[FILE_TYPE_PLD].error
