"""
Time Bucketer

Partitions a time range into calendar-aligned, contiguous buckets in a
reference time zone.

Day, week and month boundaries are computed on wall-clock dates and then
localized, so a DST day lasts 23 or 25 hours and a month 28 to 31 days.
Hour boundaries advance in absolute hours, so the repeated hour of a
fall-back night yields two buckets and a skipped hour yields none.
"""

from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Iterator, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.constants import DEFAULT_TIMEZONE, DEFAULT_WEEK_START, Granularity, WeekStart
from ..core.errors import InvalidArgument, InvalidRange
from ..core.models import Bucket, TimeRange

MAX_BUCKETS = 100_000

_ONE_HOUR = timedelta(hours=1)


def resolve_timezone(tz: "str | tzinfo | None") -> tzinfo:
    """IANA name or tzinfo; None/'' means UTC"""
    if tz is None or tz == "":
        return ZoneInfo(DEFAULT_TIMEZONE)
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(str(tz).strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidArgument(f"Unknown time zone: {tz!r}", {"timezone": str(tz)}) from e


def _localize(naive: datetime, tz: tzinfo) -> datetime:
    # fold=0 maps a wall time inside a DST gap to the first real instant after it
    return naive.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)


def _midnight(day, tz: tzinfo) -> datetime:
    return _localize(datetime.combine(day, time.min), tz)


def floor_boundary(
        instant: datetime,
        granularity: Granularity,
        tz: tzinfo,
        week_start: WeekStart = DEFAULT_WEEK_START,
) -> datetime:
    """Latest calendar boundary <= instant, returned in UTC"""
    local = instant.astimezone(tz)

    if granularity == Granularity.HOUR:
        floored = local.replace(minute=0, second=0, microsecond=0).astimezone(timezone.utc)
        # Zones with sub-hour offset shifts can push the wall hour past the instant
        return min(floored, instant)

    if granularity == Granularity.DAY:
        day = local.date()
    elif granularity == Granularity.WEEK:
        day = local.date() - timedelta(days=(local.weekday() - int(week_start)) % 7)
    else:
        day = local.date().replace(day=1)

    return min(_midnight(day, tz), instant)


def next_boundary(
        boundary: datetime,
        granularity: Granularity,
        tz: tzinfo,
) -> datetime:
    """Boundary one calendar unit after `boundary` (which must be aligned)"""
    try:
        if granularity == Granularity.HOUR:
            candidate = boundary + _ONE_HOUR
            floored = floor_boundary(candidate, granularity, tz)
            return floored if floored > boundary else candidate

        day = boundary.astimezone(tz).date()
        if granularity == Granularity.DAY:
            day = day + timedelta(days=1)
        elif granularity == Granularity.WEEK:
            day = day + timedelta(days=7)
        elif day.month == 12:
            day = day.replace(year=day.year + 1, month=1, day=1)
        else:
            day = day.replace(month=day.month + 1, day=1)

        result = _midnight(day, tz)

    except (OverflowError, ValueError) as e:
        raise InvalidRange(f"Range exceeds the supported calendar: {boundary.isoformat()}") from e

    if result <= boundary:
        raise InvalidRange(f"Calendar did not advance past {boundary.isoformat()}")
    return result


def iter_boundaries(
        time_range: TimeRange,
        granularity: Granularity,
        tz: tzinfo,
        week_start: WeekStart = DEFAULT_WEEK_START,
) -> Iterator[datetime]:
    """Aligned boundaries from the floor of start up to the first one >= end"""
    boundary = floor_boundary(time_range.start, granularity, tz, week_start)
    yield boundary
    while boundary < time_range.end:
        boundary = next_boundary(boundary, granularity, tz)
        yield boundary


def build_buckets(
        time_range: TimeRange,
        granularity: "Granularity | str | None" = None,
        tz: "str | tzinfo | None" = None,
        week_start: "WeekStart | str | int | None" = None,
        unit: str = "",
        max_buckets: Optional[int] = MAX_BUCKETS,
) -> List[Bucket]:
    """
    Ordered bucket templates (value 0, sample_count 0) covering the range

    The first and last bucket are clipped to [start, end): 10:30-10:45 at hour
    granularity is one 15-minute bucket, never 10:00-11:00. An empty range
    yields no buckets.

    Args:
        time_range: Range to cover
        granularity: hour/day/week/month, default day
        tz: Reference time zone, default UTC
        week_start: First weekday of week buckets, default Monday
        unit: Unit stamped on every bucket
        max_buckets: Guard against ranges too long for the granularity

    Raises:
        InvalidArgument: bad granularity, zone, week start, or too many buckets
    """
    if time_range.is_empty:
        return []

    try:
        granularity = Granularity.parse(granularity)
        week_start = WeekStart.parse(week_start)
    except ValueError as e:
        raise InvalidArgument(str(e)) from e

    zone = resolve_timezone(tz)

    buckets: List[Bucket] = []
    boundaries = iter_boundaries(time_range, granularity, zone, week_start)
    lower = next(boundaries)

    for upper in boundaries:
        if max_buckets is not None and len(buckets) >= max_buckets:
            raise InvalidArgument(
                f"Range needs more than {max_buckets} {granularity.value} buckets",
                {"granularity": granularity.value, "max_buckets": max_buckets},
            )

        buckets.append(Bucket(
            start_time=max(lower, time_range.start),
            end_time=min(upper, time_range.end),
            unit=unit,
        ))
        lower = upper

    return buckets
