"""
Tests for the STR.edf daily summary adapter.

Covers record splitting, date derivation, alias fallback and the
usage-day filter.
"""

from datetime import date

import pytest

from cpap_edf.models.day import SleepNight
from cpap_edf.parsers.summary import (
    DailyRecord,
    decode_daily_summary,
    get_daily_stats,
    parse_str_file,
    project_daily_stats,
    resolve_field,
)
from tests.helpers.edf_builder import HeaderSpec, SignalSpec, build_daily_edf, build_edf


@pytest.mark.parser
class TestDecodeDailySummary:
    """One DailyRecord per data record."""

    def test_one_record_per_day(self):
        data = build_daily_edf(
            {"AHI": [2, 5, 1], "OnDuration": [420, 0, 30]}, start_date="30.12.23"
        )

        summary = decode_daily_summary(data)

        assert len(summary.days) == 3
        assert [d.index for d in summary.days] == [0, 1, 2]
        assert [d.date for d in summary.days] == [
            date(2023, 12, 30),
            date(2023, 12, 31),
            date(2024, 1, 1),
        ]
        assert summary.days[1]["AHI"] == 5.0
        assert summary.days[2].get("OnDuration") == 30.0
        assert "AHI" in summary.days[0]
        assert summary.days[0].keys() == ["AHI", "OnDuration"]

    def test_unparseable_start_date_leaves_dates_empty(self):
        summary = decode_daily_summary(build_daily_edf({"AHI": [1]}, start_date="??"))
        assert summary.days[0].date is None

    def test_signals_that_run_out_are_absent(self):
        """No zero-filling for signals with fewer values than records."""
        data = build_edf(
            [
                SignalSpec(label="AHI", samples_per_record=1),
                SignalSpec(label="Leak.50", samples_per_record=1),
            ],
            [[[1], [10]], [[2], [20]], [[3], [30]]],
            HeaderSpec(start_date="01.01.24"),
        )
        # Truncated file: Leak.50 is missing its last value
        summary = decode_daily_summary(data[:-2])

        assert len(summary.days) == 3
        assert summary.days[1].values == {"AHI": 2.0, "Leak.50": 20.0}
        assert summary.days[2].values == {"AHI": 3.0}

    def test_days_bounded_by_declared_records(self):
        data = build_daily_edf({"AHI": [1, 2, 3]})
        patched = data[:236] + b"2       " + data[244:]

        summary = decode_daily_summary(patched)

        assert len(summary.days) == 2

    def test_parse_str_file(self, tmp_path):
        path = tmp_path / "STR.edf"
        path.write_bytes(build_daily_edf({"AHI": [3]}))

        summary = parse_str_file(path)

        assert summary.header.num_signals == 1
        assert summary.days[0]["AHI"] == 3.0

    def test_parse_missing_str_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_str_file(tmp_path / "STR.edf")


@pytest.mark.business_logic
class TestDailyStatsProjection:
    """Alias fallback and usage selection."""

    def test_first_nonzero_alias_wins(self):
        day = {"S.C.Press": 0.0, "S.AS.MinPress": 8.0}
        assert resolve_field(day, ["S.C.Press", "S.AS.MinPress"]) == 8.0
        assert resolve_field(day, ["Missing"]) == 0.0
        assert resolve_field({"X": float("nan")}, ["X"]) == 0.0

    def test_projection_uses_aliases(self):
        day = DailyRecord(
            index=0,
            date=date(2024, 1, 5),
            values={
                "AHI": 2.5,
                "Duration": 480.0,
                "OnDuration": 420.0,
                "S.C.Press": 0.0,
                "S.AS.MinPress": 7.0,
                "S.AS.MaxPress": 15.0,
                "SpO2.50": 95.0,
            },
        )

        stats = project_daily_stats(day)

        assert stats.date == "2024-01-05"
        assert stats.ahi == 2.5
        assert stats.pressure == 7.0
        assert stats.max_pressure == 15.0
        assert stats.spo2_avg == 95.0
        assert stats.leak_50 == 0.0
        assert stats.usage_hours == 7.0
        assert stats.raw["S.AS.MinPress"] == 7.0

    def test_session_usage_overrides_on_duration(self):
        day = DailyRecord(index=0, date=date(2024, 1, 5), values={"OnDuration": 420.0})
        assert project_daily_stats(day, usage_minutes=90).usage_hours == 1.5

    def test_missing_date_uses_day_number(self):
        day = DailyRecord(index=4, values={"Duration": 1.0})
        assert project_daily_stats(day).date == "Day 5"

    def test_custom_aliases(self):
        day = DailyRecord(index=0, values={"AHI.Custom": 4.0})
        stats = project_daily_stats(day, aliases={"ahi": ["AHI.Custom"]})
        assert stats.ahi == 4.0

    def test_get_daily_stats_filters_unused_days(self):
        summary = decode_daily_summary(
            build_daily_edf(
                {
                    "Duration": [480, 0, 0],
                    "OnDuration": [420, 0, 30],
                    "AHI": [2, 9, 1],
                },
                start_date="05.01.24",
            )
        )
        nights = {
            date(2024, 1, 5): SleepNight(
                date=date(2024, 1, 5), total_minutes=180, session_count=2
            )
        }

        stats = get_daily_stats(summary, nights)

        assert [s.date for s in stats] == ["2024-01-05", "2024-01-07"]
        assert stats[0].usage_hours == 3.0
        assert stats[1].usage_hours == 0.5
