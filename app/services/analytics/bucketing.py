# ============================================================================
# Time-Bucketing Engine
# ============================================================================
"""
Groups time-stamped rows into calendar periods.

Every period that overlaps the requested range appears in the output, even
when no rows fall into it, so chart consumers never see gaps.
"""
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta
from enum import Enum
from typing import Dict, Hashable, Iterable, Iterator, List, Optional, Set, Union

from dateutil.relativedelta import relativedelta

from app.core.exceptions import InvalidGranularity
from app.services.analytics.date_ranges import DateRange, start_of_month, end_of_month, utcnow


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


_STEPS = {
    Granularity.DAY: relativedelta(days=1),
    Granularity.WEEK: relativedelta(weeks=1),
    Granularity.MONTH: relativedelta(months=1),
    Granularity.QUARTER: relativedelta(months=3),
    Granularity.YEAR: relativedelta(years=1),
}


@dataclass
class TimedValue:
    """A raw row to bucket: when it happened, how much, and who"""
    timestamp: Union[date, datetime]
    value: float = 1.0
    key: Optional[Hashable] = None


@dataclass
class Bucket:
    period: str
    start: date
    total: float = 0.0
    count: int = 0
    keys: Set[Hashable] = field(default_factory=set, repr=False)

    @property
    def distinct_count(self) -> int:
        return len(self.keys)


def parse_granularity(value: Union[str, Granularity]) -> Granularity:
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(str(value).lower())
    except ValueError:
        raise InvalidGranularity(str(value)) from None


def period_start(day: date, granularity: Granularity) -> date:
    """First day of the period containing ``day``"""
    if granularity == Granularity.DAY:
        return day
    if granularity == Granularity.WEEK:
        # ISO weeks start on Monday
        return day - timedelta(days=day.weekday())
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    if granularity == Granularity.QUARTER:
        return day.replace(month=3 * ((day.month - 1) // 3) + 1, day=1)
    return day.replace(month=1, day=1)


def period_label(start: date, granularity: Granularity) -> str:
    """Stable, lexically sortable label for a period"""
    if granularity == Granularity.DAY:
        return start.isoformat()
    if granularity == Granularity.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == Granularity.MONTH:
        return start.strftime("%Y-%m-01")
    if granularity == Granularity.QUARTER:
        return f"{start.year}-Q{(start.month - 1) // 3 + 1}"
    return f"{start.year}"


def iter_periods(date_range: DateRange, granularity: Granularity) -> Iterator[date]:
    """Start dates of every period overlapping the range, ascending"""
    if date_range.empty:
        return

    step = _STEPS[granularity]
    current = period_start(date_range.start_date, granularity)
    last = date_range.end_date
    while current <= last:
        yield current
        current = current + step


def bucket_rows(
    date_range: DateRange,
    granularity: Granularity,
    rows: Iterable[TimedValue],
) -> List[Bucket]:
    """
    Bucket rows into zero-filled periods.

    Args:
        date_range: Range whose periods must all appear
        granularity: Period size
        rows: Rows to aggregate; rows outside the range are ignored

    Returns:
        One Bucket per period, ordered by start date
    """
    buckets: Dict[date, Bucket] = {
        start: Bucket(period=period_label(start, granularity), start=start)
        for start in iter_periods(date_range, granularity)
    }

    for row in rows:
        if not date_range.contains(row.timestamp):
            continue
        moment = row.timestamp.date() if isinstance(row.timestamp, datetime) else row.timestamp
        bucket = buckets.get(period_start(moment, granularity))
        if bucket is None:
            continue
        bucket.total += float(row.value or 0)
        bucket.count += 1
        if row.key is not None:
            bucket.keys.add(row.key)

    return list(buckets.values())


def fixed_window_range(month_count: int, now: Optional[datetime] = None) -> DateRange:
    """
    The ``month_count`` whole calendar months ending with the current month.

    Unlike caller-supplied ranges this window ignores any requested dates.
    """
    now = now or utcnow()
    month_count = max(month_count, 1)
    start = start_of_month(now) - relativedelta(months=month_count - 1)
    return DateRange(start, end_of_month(now))
