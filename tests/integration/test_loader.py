"""
Tests for CPAPDataLoader against a synthetic SD card.

Exercises device identification, STR.edf decoding, DATALOG discovery,
sleep-night regrouping and the overall summary together.
"""

import json

from datetime import date

import pytest

from cpap_edf.loader import CPAPDataLoader
from cpap_edf.models.results import LoadError, SubFileError
from cpap_edf.models.session import SessionDetail
from cpap_edf.parsers.summary import DailySummary


@pytest.fixture
def loader(sd_card):
    """Loader with every part of the card loaded."""
    instance = CPAPDataLoader(sd_card, day_start_hour=12, max_workers=2)
    instance.load_all()
    return instance


class TestDeviceInfo:
    """Identification.tgt and Identification.json."""

    def test_tgt_fields(self, loader):
        info = loader.device_info

        assert info.error is None
        assert info.serial_number == "23192345678"
        assert info.product_name == "AirSense 10 AutoSet"
        assert info.product_code == "37028"
        assert info.machine_id == "36"
        assert info.firmware_version == "SX567-0401"
        assert info.raw["VIR"] == "0064"

    def test_json_fallback(self, sd_card):
        (sd_card / "Identification.tgt").unlink()
        (sd_card / "Identification.json").write_text(
            json.dumps(
                {
                    "FlowGenerator": {
                        "IdentificationProfiles": {
                            "Product": {
                                "SerialNumber": "22222222222",
                                "ProductName": "AirSense 11 AutoSet",
                                "ProductCode": "39000",
                            },
                            "Software": {"ApplicationIdentifier": "SW04600.01"},
                        }
                    }
                }
            )
        )

        info = CPAPDataLoader(sd_card).load_device_info()

        assert info.serial_number == "22222222222"
        assert info.product_name == "AirSense 11 AutoSet"
        assert info.firmware_version == "SW04600.01"
        assert info.machine_id == "Unknown"

    def test_invalid_json(self, sd_card):
        (sd_card / "Identification.tgt").unlink()
        (sd_card / "Identification.json").write_text("{not json")

        info = CPAPDataLoader(sd_card).load_device_info()

        assert info.error == "Invalid Identification.json"

    def test_missing_identification(self, tmp_path):
        info = CPAPDataLoader(tmp_path).load_device_info()
        assert info.error == "Identification file not found"
        assert info.serial_number == "Unknown"


class TestDailySummary:
    """STR.edf loading."""

    def test_summary_loaded(self, loader):
        assert isinstance(loader.daily_summary, DailySummary)
        assert len(loader.daily_summary.days) == 3
        assert loader.daily_summary.days[0].date == date(2024, 1, 5)

    def test_missing_str(self, tmp_path):
        result = CPAPDataLoader(tmp_path).load_daily_summary()

        assert isinstance(result, LoadError)
        assert result.error == "STR.edf not found"

    def test_corrupt_str(self, sd_card):
        (sd_card / "STR.edf").write_bytes(b"0" * 100)

        result = CPAPDataLoader(sd_card).load_daily_summary()

        assert isinstance(result, LoadError)
        assert "too short" in result.error


class TestSessions:
    """DATALOG discovery and sleep nights."""

    def test_sessions_newest_first(self, loader):
        assert [s.id for s in loader.sessions] == [
            "20240106_140000",
            "20240106_013000",
            "20240105_230000",
        ]
        assert [s.duration_minutes for s in loader.sessions] == [30, 60, 120]

    def test_sleep_nights_with_noon_boundary(self, loader):
        usage = loader.sleep_night_usage

        assert usage[date(2024, 1, 5)].total_minutes == 180
        assert usage[date(2024, 1, 5)].session_count == 2
        assert usage[date(2024, 1, 6)].total_minutes == 30

    def test_day_boundary_change_regroups(self, loader):
        loader.set_day_boundary(0)

        usage = loader.sleep_night_usage
        assert usage[date(2024, 1, 5)].total_minutes == 120
        assert usage[date(2024, 1, 6)].total_minutes == 90
        assert usage[date(2024, 1, 6)].session_count == 2

    def test_invalid_day_boundary(self, loader):
        with pytest.raises(ValueError):
            loader.set_day_boundary(24)
        with pytest.raises(ValueError):
            CPAPDataLoader(".", day_start_hour=-1)

    def test_missing_datalog(self, tmp_path):
        loader = CPAPDataLoader(tmp_path)
        assert loader.load_session_list() == []
        assert loader.sleep_night_usage == {}

    def test_session_detail(self, loader):
        detail = loader.load_session_detail("20240105_230000")

        assert isinstance(detail, SessionDetail)
        assert set(detail.data) == {"BRP", "EVE", "PLD"}
        assert isinstance(detail.data["EVE"], SubFileError)
        assert detail.data["BRP"].sample_counts == {"Flow.40ms": 240}

    def test_unknown_session(self, loader):
        result = loader.load_session_detail("20990101_000000")

        assert isinstance(result, LoadError)
        assert result.error == "Session not found"


class TestOverallSummary:
    """Daily stats projection and averages."""

    def test_daily_stats(self, loader):
        stats = loader.get_daily_stats()

        # 2024-01-06 has no Duration/OnDuration and is dropped
        assert [s.date for s in stats] == ["2024-01-05", "2024-01-07"]
        assert stats[0].usage_hours == 3.0
        assert stats[1].usage_hours == 0.5
        assert stats[0].pressure == 8.0
        assert stats[0].max_pressure == 15.0

    def test_summary(self, loader):
        summary = loader.get_summary()

        assert summary.device_info.serial_number == "23192345678"
        assert summary.total_days == 2
        assert summary.recent_days == 2
        assert summary.averages.ahi == pytest.approx(1.5)
        assert summary.averages.usage_hours == pytest.approx(1.75)
        assert summary.averages.leak_50 == pytest.approx(5.0)
        assert len(summary.sessions) == 3
        assert summary.error is None

    def test_summary_limits(self, loader):
        summary = loader.get_summary(recent_days=1, max_sessions=1)

        assert summary.recent_days == 1
        assert summary.averages.ahi == pytest.approx(1.0)
        assert [s.id for s in summary.sessions] == ["20240106_140000"]

    def test_summary_without_str(self, sd_card):
        (sd_card / "STR.edf").unlink()

        summary = CPAPDataLoader(sd_card).load_all()

        assert summary.error == "STR.edf not found"
        assert summary.daily_stats == []
        assert len(summary.sessions) == 3

    def test_config_aliases_are_used(self, sd_card, config_path):
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text('[aliases]\npressure = ["S.AS.MaxPress"]\n')

        loader = CPAPDataLoader(sd_card)
        loader.load_all()

        assert loader.get_daily_stats()[0].pressure == 15.0
