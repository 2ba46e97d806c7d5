# ============================================================================
# Date Range Resolver
# ============================================================================
"""
Turns a preset name or explicit ISO-8601 bounds into a canonical DateRange.

All datetimes are naive UTC. Both bounds are inclusive.
"""
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional, Union, Dict

from dateutil.relativedelta import relativedelta

from app.core.exceptions import InvalidDateRange

DateInput = Union[str, date, datetime, None]

DEFAULT_RANGE_MONTHS = 12

# last12months and unrecognised presets
TRAILING_PRESET_MONTHS = 12

_END_OF_DAY = time.max


def utcnow() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime
    empty: bool = False

    @property
    def start_date(self) -> date:
        return self.start.date()

    @property
    def end_date(self) -> date:
        return self.end.date()

    def contains(self, moment: Union[date, datetime]) -> bool:
        if self.empty:
            return False
        if isinstance(moment, datetime):
            return self.start <= moment <= self.end
        return self.start_date <= moment <= self.end_date

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), _END_OF_DAY)


def start_of_month(moment: datetime) -> datetime:
    return start_of_day(moment).replace(day=1)


def end_of_month(moment: datetime) -> datetime:
    return start_of_month(moment) + relativedelta(months=1) - timedelta(microseconds=1)


def _preset_range(preset: str, now: datetime) -> DateRange:
    if preset == "today":
        return DateRange(start_of_day(now), end_of_day(now))

    if preset == "week":
        # Weeks start on Monday
        start = start_of_day(now) - timedelta(days=now.weekday())
        return DateRange(start, start + timedelta(days=7) - timedelta(microseconds=1))

    if preset == "month":
        return DateRange(start_of_month(now), end_of_month(now))

    if preset == "quarter":
        first_month = 3 * ((now.month - 1) // 3) + 1
        start = start_of_day(now).replace(month=first_month, day=1)
        return DateRange(start, start + relativedelta(months=3) - timedelta(microseconds=1))

    if preset == "year":
        start = start_of_day(now).replace(month=1, day=1)
        return DateRange(start, start + relativedelta(years=1) - timedelta(microseconds=1))

    if preset == "last30days":
        return DateRange(now - timedelta(days=30), now)

    if preset == "last90days":
        return DateRange(now - timedelta(days=90), now)

    return DateRange(now - relativedelta(months=TRAILING_PRESET_MONTHS), now)


def parse_datetime(value: DateInput, field: str = "date", end_of_period: bool = False) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or date-time into naive UTC.

    A date without a time component resolves to the start of that day, or to
    its last microsecond when ``end_of_period`` is set.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, _END_OF_DAY if end_of_period else time.min)
        return parsed
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidDateRange(text, field) from None

        if end_of_period and "T" not in text and " " not in text:
            parsed = datetime.combine(parsed.date(), _END_OF_DAY)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def resolve_date_range(
    preset: Optional[str] = None,
    date_from: DateInput = None,
    date_to: DateInput = None,
    now: Optional[datetime] = None,
    default_months: int = DEFAULT_RANGE_MONTHS,
) -> DateRange:
    """
    Resolve a preset or explicit bounds into a DateRange.

    Args:
        preset: today, week, month, quarter, year, last30days, last90days or
            last12months; unknown names resolve like last12months
        date_from: ISO-8601 start (used only without a preset)
        date_to: ISO-8601 end (used only without a preset)
        now: Anchor for presets and defaults
        default_months: Length of the window used when neither a preset nor
            a start bound is given

    Returns:
        A DateRange with start <= end. When ``date_from`` is after
        ``date_to`` the range is flagged empty, so counts come back as zero.

    Raises:
        InvalidDateRange: If an explicit bound cannot be parsed
    """
    now = now or utcnow()

    if preset:
        return _preset_range(preset, now)

    start = parse_datetime(date_from, "from")
    end = parse_datetime(date_to, "to", end_of_period=True)

    if start is None and end is None:
        return DateRange(now - relativedelta(months=default_months), now)

    end = end or now
    start = start or end - relativedelta(months=default_months)

    if start > end:
        return DateRange(start, start, empty=True)

    return DateRange(start, end)


def previous_period(date_range: DateRange) -> DateRange:
    """The range of equal length immediately before ``date_range``"""
    length = date_range.end - date_range.start
    end = date_range.start - timedelta(microseconds=1)
    return DateRange(end - length, end, empty=date_range.empty)
