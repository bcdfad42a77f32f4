"""
Tests for recurring pattern resolution and schedule share units.

Calendar used throughout: 1 March 2025 is a Saturday, so March 2025 has
Mondays on the 3rd, 10th, 17th, 24th and 31st.
"""
import pytest
import pandas as pd
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from profit_os.data.periods import ReportingPeriod
from profit_os.metrics.patterns import (
    build_exception_map,
    combine_shares,
    contributing_dates,
    normalise_interval,
    parse_days_of_week,
    pattern_shares,
    resolve_contribution,
    schedule_frame,
    schedule_shares,
    shift_hours,
    sunday_weekday,
)


MARCH = ReportingPeriod.for_month("2025-03")


def _pattern(**overrides):
    pattern = {
        "pattern_id": "p1",
        "staff_id": "S1",
        "client_name": "Acme",
        "days_of_week": [1, 3, 5],
        "recurrence_interval": "weekly",
        "start_date": "2025-01-01",
        "end_date": None,
        "start_time": "09:00",
        "end_time": "17:00",
    }
    pattern.update(overrides)
    return pattern


class TestParsing:
    """Tests for field parsing helpers."""

    def test_days_of_week_formats(self):
        assert parse_days_of_week([1, 3, 5]) == {1, 3, 5}
        assert parse_days_of_week("[1, 3]") == {1, 3}
        assert parse_days_of_week("{0,6}") == {0, 6}
        assert parse_days_of_week(None) == set()
        assert parse_days_of_week("") == set()

    def test_days_of_week_drops_out_of_range(self):
        assert parse_days_of_week([7, 2, -1]) == {2}

    def test_sunday_is_zero(self):
        assert sunday_weekday(date(2025, 3, 2)) == 0  # Sunday
        assert sunday_weekday(date(2025, 3, 3)) == 1  # Monday
        assert sunday_weekday(date(2025, 3, 1)) == 6  # Saturday

    def test_unknown_interval_is_weekly(self):
        assert normalise_interval("every-full-moon") == "weekly"
        assert normalise_interval(None) == "weekly"
        assert normalise_interval("Fortnightly") == "biweekly"

    def test_shift_hours(self):
        assert shift_hours("09:00", "17:30") == pytest.approx(8.5)
        assert shift_hours("09:00:00", "10:15:00") == pytest.approx(1.25)
        assert shift_hours("17:00", "09:00") == 0.0
        assert shift_hours(None, "09:00") == 0.0
        assert shift_hours("garbage", "09:00") == 0.0


class TestResolveContribution:
    """Tests for a single pattern's share units."""

    def test_weekly_full_month(self):
        """Mon/Wed/Fri in March 2025 is 5 + 4 + 4 days."""
        assert resolve_contribution(_pattern(), MARCH) == 13

    def test_sunday_pattern(self):
        assert resolve_contribution(_pattern(days_of_week=[0]), MARCH) == 5

    def test_biweekly_alternates(self):
        """Biweekly Monday over four weeks contributes weeks 0 and 2 only."""
        pattern = _pattern(days_of_week=[1], recurrence_interval="biweekly", start_date="2025-03-03")
        period = ReportingPeriod(date(2025, 3, 3), date(2025, 3, 30))

        dates = contributing_dates(pattern, period)

        assert dates == [date(2025, 3, 3), date(2025, 3, 17)]
        assert resolve_contribution(pattern, period) == 2

    def test_biweekly_phase_follows_pattern_start(self):
        """A pattern that started a week earlier is on the other phase."""
        pattern = _pattern(days_of_week=[1], recurrence_interval="biweekly", start_date="2025-02-24")

        assert contributing_dates(pattern, MARCH) == [
            date(2025, 3, 10), date(2025, 3, 24),
        ]

    def test_monthly_matches_day_of_month(self):
        """Monthly patterns need the weekday and the start day-of-month."""
        pattern = _pattern(days_of_week=[3], recurrence_interval="monthly", start_date="2025-01-15")

        # 15 Feb 2025 is a Saturday, 15 Oct 2025 is a Wednesday
        assert resolve_contribution(pattern, ReportingPeriod.for_month("2025-02")) == 0
        assert resolve_contribution(pattern, ReportingPeriod.for_month("2025-10")) == 1

    def test_daily_ignores_weekdays(self):
        pattern = _pattern(
            days_of_week=[], recurrence_interval="daily",
            start_date="2025-03-10", end_date="2025-03-19",
        )

        assert resolve_contribution(pattern, MARCH) == 10

    def test_clipped_to_pattern_window(self):
        """Only days inside both the pattern and the period count."""
        pattern = _pattern(start_date="2025-02-15", end_date="2025-03-05")

        assert contributing_dates(pattern, MARCH) == [date(2025, 3, 3), date(2025, 3, 5)]

    def test_pattern_outside_period(self):
        assert resolve_contribution(_pattern(start_date="2025-04-01"), MARCH) == 0
        assert resolve_contribution(_pattern(end_date="2025-02-28"), MARCH) == 0

    def test_same_day_period(self):
        period = ReportingPeriod(date(2025, 3, 3), date(2025, 3, 3))

        assert resolve_contribution(_pattern(), period) == 1

    def test_malformed_period_is_zero(self):
        period = ReportingPeriod(date(2025, 3, 31), date(2025, 3, 1))

        assert period.is_empty
        assert resolve_contribution(_pattern(), period) == 0

    def test_malformed_pattern_interval_is_zero(self):
        pattern = _pattern(start_date="2025-03-20", end_date="2025-03-10")

        assert resolve_contribution(pattern, MARCH) == 0

    def test_missing_start_date_is_zero(self):
        assert resolve_contribution(_pattern(start_date=None), MARCH) == 0

    def test_exception_dates_are_skipped(self):
        exceptions = [date(2025, 3, 10), "2025-03-12"]

        assert resolve_contribution(_pattern(), MARCH, exception_dates=exceptions) == 11

    def test_hours_mode(self):
        """13 days x 8 hours."""
        assert resolve_contribution(_pattern(), MARCH, mode="hours") == pytest.approx(104.0)

    def test_hours_mode_without_times_is_zero(self):
        pattern = _pattern(start_time=None, end_time=None)

        assert resolve_contribution(pattern, MARCH, mode="hours") == 0.0

    def test_unknown_mode_raises(self):
        with pytest.raises(ValueError):
            resolve_contribution(_pattern(), MARCH, mode="weeks")


class TestPatternShares:
    """Tests for the per (staff, client) share table."""

    def test_sums_patterns_per_staff_and_client(self):
        patterns = pd.DataFrame([
            _pattern(pattern_id="p1", days_of_week=[1]),
            _pattern(pattern_id="p2", days_of_week=[3]),
            _pattern(pattern_id="p3", client_name="Beta", days_of_week=[5]),
            _pattern(pattern_id="p4", staff_id="S2", start_date="2025-05-01"),
        ])

        shares = pattern_shares(patterns, MARCH)

        assert len(shares) == 2
        acme = shares[(shares["staff_id"] == "S1") & (shares["client_name"] == "Acme")]
        beta = shares[(shares["staff_id"] == "S1") & (shares["client_name"] == "Beta")]
        assert acme["share_units"].iloc[0] == 9
        assert beta["share_units"].iloc[0] == 4

    def test_exceptions_table(self):
        patterns = pd.DataFrame([_pattern()])
        exceptions = pd.DataFrame({
            "pattern_id": ["p1", "other"],
            "exception_date": ["2025-03-03", "2025-03-05"],
        })

        shares = pattern_shares(patterns, MARCH, exceptions=exceptions)

        assert shares["share_units"].iloc[0] == 12

    def test_build_exception_map(self):
        exceptions = pd.DataFrame({
            "pattern_id": ["1", "1", None],
            "exception_date": ["2025-03-03", "2025-03-05", "2025-03-07"],
        })

        exception_map = build_exception_map(exceptions)

        assert exception_map == {"1": {date(2025, 3, 3), date(2025, 3, 5)}}

    def test_empty_patterns(self):
        shares = pattern_shares(pd.DataFrame(), MARCH)

        assert len(shares) == 0
        assert list(shares.columns) == ["staff_id", "client_name", "share_units"]


class TestScheduleShares:
    """Tests for explicit one-off schedules."""

    def _schedules(self):
        return pd.DataFrame({
            "staff_id": ["S1", "S1", "S1", "S1"],
            "client_name": ["Acme", "Acme", "Acme", "Acme"],
            "start_datetime": [
                "2025-03-03T09:00:00Z",
                "2025-03-03T14:00:00Z",
                "2025-03-04T09:00:00Z",
                "2025-02-28T09:00:00Z",
            ],
            "end_datetime": [
                "2025-03-03T13:00:00Z",
                "2025-03-03T16:00:00Z",
                "2025-03-04T10:00:00Z",
                "2025-02-28T17:00:00Z",
            ],
        })

    def test_days_mode_counts_distinct_dates(self):
        shares = schedule_shares(self._schedules(), MARCH, mode="days")

        assert shares["share_units"].iloc[0] == 2

    def test_hours_mode_sums_durations(self):
        shares = schedule_shares(self._schedules(), MARCH, mode="hours")

        assert shares["share_units"].iloc[0] == pytest.approx(7.0)

    def test_combine_with_patterns(self):
        patterns = pattern_shares(pd.DataFrame([_pattern()]), MARCH)
        schedules = schedule_shares(self._schedules(), MARCH)

        combined = combine_shares(patterns, schedules)

        assert len(combined) == 1
        assert combined["share_units"].iloc[0] == 15

    def test_combine_nothing(self):
        assert len(combine_shares(None, pd.DataFrame())) == 0

    def test_offset_timestamps_bucket_by_local_day(self):
        """00:30 BST on 1 April is still 31 March in UTC but belongs to April."""
        schedules = pd.DataFrame({
            "staff_id": ["S1", "S1"],
            "client_name": ["Acme", "Acme"],
            "start_datetime": ["2025-04-01T00:30:00+01:00", "2025-03-31T23:30:00Z"],
            "end_datetime": ["2025-04-01T08:30:00+01:00", "2025-04-01T07:30:00Z"],
        })
        april = ReportingPeriod.for_month("2025-04")

        in_march = schedule_frame(schedules, MARCH, timezone="Europe/London")
        in_april = schedule_frame(schedules, april, timezone="Europe/London")

        assert len(in_march) == 0
        assert in_april["shift_date"].tolist() == [date(2025, 4, 1), date(2025, 4, 1)]
        assert in_april["hours"].tolist() == [8.0, 8.0]

    def test_naive_timestamps_are_local(self):
        schedules = pd.DataFrame({
            "staff_id": ["S1"],
            "client_name": ["Acme"],
            "start_datetime": ["2025-03-31T23:30:00"],
            "end_datetime": ["2025-04-01T01:30:00"],
        })

        frame = schedule_frame(schedules, MARCH, timezone="Europe/London")

        assert frame["shift_date"].tolist() == [date(2025, 3, 31)]
        assert frame["hours"].iloc[0] == pytest.approx(2.0)
