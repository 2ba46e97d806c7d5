# ============================================================================
# Time-Bucketing Engine Tests
# ============================================================================
from datetime import datetime, date

import pytest

from app.core.exceptions import InvalidGranularity
from app.services.analytics.bucketing import (
    Granularity, TimedValue, bucket_rows, fixed_window_range, parse_granularity,
)
from app.services.analytics.date_ranges import DateRange


def make_range(start: date, end: date) -> DateRange:
    return DateRange(datetime.combine(start, datetime.min.time()), datetime.combine(end, datetime.max.time()))


class TestZeroFill:
    """Every period in the range appears exactly once"""

    def test_daily_buckets_cover_leap_february(self):
        buckets = bucket_rows(make_range(date(2024, 2, 1), date(2024, 2, 29)), Granularity.DAY, [])

        assert len(buckets) == 29
        assert buckets[-1].period == "2024-02-29"
        assert all(bucket.total == 0 for bucket in buckets)

    def test_monthly_buckets_fill_gaps(self):
        rows = [TimedValue(date(2024, 2, 10), 2.5, key=1), TimedValue(date(2024, 2, 20), 1.5, key=2)]
        buckets = bucket_rows(make_range(date(2024, 1, 15), date(2024, 3, 2)), Granularity.MONTH, rows)

        assert [b.period for b in buckets] == ["2024-01-01", "2024-02-01", "2024-03-01"]
        assert [b.total for b in buckets] == [0.0, 4.0, 0.0]
        assert buckets[1].count == 2
        assert buckets[1].distinct_count == 2

    def test_iso_week_53_at_year_boundary(self):
        buckets = bucket_rows(make_range(date(2020, 12, 21), date(2021, 1, 10)), Granularity.WEEK, [])
        assert [b.period for b in buckets] == ["2020-W52", "2020-W53", "2021-W01"]

    def test_week_label_uses_iso_year(self):
        # 2024-12-30 is a Monday in ISO week 1 of 2025
        buckets = bucket_rows(make_range(date(2024, 12, 30), date(2025, 1, 5)), Granularity.WEEK, [])
        assert [b.period for b in buckets] == ["2025-W01"]

    def test_quarter_and_year_labels(self):
        quarters = bucket_rows(make_range(date(2023, 11, 1), date(2024, 4, 1)), Granularity.QUARTER, [])
        years = bucket_rows(make_range(date(2023, 11, 1), date(2024, 4, 1)), Granularity.YEAR, [])

        assert [b.period for b in quarters] == ["2023-Q4", "2024-Q1", "2024-Q2"]
        assert [b.period for b in years] == ["2023", "2024"]

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_periods_are_unique_and_ascending(self, granularity):
        buckets = bucket_rows(make_range(date(2023, 1, 17), date(2024, 8, 3)), granularity, [])
        labels = [b.period for b in buckets]

        assert labels == sorted(labels)
        assert len(labels) == len(set(labels))


class TestAggregation:
    """Rows are summed, counted and de-duplicated per bucket"""

    def test_rows_outside_range_are_ignored(self):
        rows = [
            TimedValue(date(2023, 12, 31), 5),
            TimedValue(datetime(2024, 1, 1, 8, 0), 1),
            TimedValue(date(2024, 2, 1), 5),
        ]
        buckets = bucket_rows(make_range(date(2024, 1, 1), date(2024, 1, 31)), Granularity.MONTH, rows)

        assert len(buckets) == 1
        assert buckets[0].total == 1.0
        assert buckets[0].count == 1

    def test_distinct_keys(self):
        rows = [TimedValue(date(2024, 1, 2), 1, key="a"), TimedValue(date(2024, 1, 3), 1, key="a")]
        bucket = bucket_rows(make_range(date(2024, 1, 1), date(2024, 1, 31)), Granularity.MONTH, rows)[0]

        assert bucket.count == 2
        assert bucket.distinct_count == 1

    def test_empty_range_has_no_buckets(self):
        empty = DateRange(datetime(2024, 5, 1), datetime(2024, 5, 1), empty=True)
        assert bucket_rows(empty, Granularity.DAY, [TimedValue(date(2024, 5, 1))]) == []


class TestGranularity:
    def test_parse(self):
        assert parse_granularity("Week") == Granularity.WEEK
        assert parse_granularity(Granularity.DAY) == Granularity.DAY

    def test_unknown_granularity_raises(self):
        with pytest.raises(InvalidGranularity):
            parse_granularity("fortnight")


class TestFixedWindow:
    """The fixed calendar-month window ignores any requested range"""

    def test_six_whole_months_ending_this_month(self):
        window = fixed_window_range(6, datetime(2024, 6, 15, 12, 0))

        assert window.start == datetime(2024, 1, 1)
        assert window.end == datetime(2024, 6, 30, 23, 59, 59, 999999)

        buckets = bucket_rows(window, Granularity.MONTH, [])
        assert [b.period for b in buckets] == [
            "2024-01-01", "2024-02-01", "2024-03-01", "2024-04-01", "2024-05-01", "2024-06-01",
        ]

    def test_window_crosses_year(self):
        window = fixed_window_range(3, datetime(2024, 1, 31))
        assert window.start == datetime(2023, 11, 1)
