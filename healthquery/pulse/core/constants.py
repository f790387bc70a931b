"""
Core constants and enumerations module

Defines constants and enumerations shared by the query service, the bucketer and the record sources
"""

from enum import Enum, IntEnum


class MetricKind(str, Enum):
    """How the records of a metric reduce over a period"""

    CUMULATIVE = "cumulative"  # Sum (steps, distance, energy)
    DISCRETE = "discrete"  # Mean of instantaneous readings (heart rate, weight)


class Granularity(str, Enum):
    """Calendar unit used to partition a time range into buckets"""

    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: "str | Granularity | None") -> "Granularity":
        if value is None or value == "":
            return DEFAULT_GRANULARITY
        if isinstance(value, Granularity):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported granularity: {value!r}") from None


class WeekStart(IntEnum):
    """First day of a week bucket, numbered like datetime.weekday()"""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: "str | int | WeekStart | None") -> "WeekStart":
        if value is None or value == "":
            return DEFAULT_WEEK_START
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Unsupported week start: {value!r}") from None


DEFAULT_GRANULARITY = Granularity.DAY

# ISO-8601 weeks start on Monday; never inherited from the process locale.
DEFAULT_WEEK_START = WeekStart.MONDAY

DEFAULT_TIMEZONE = "UTC"


class PageConfig:
    """Pagination limits"""

    DEFAULT_PAGE_SIZE = 1000
    MAX_PAGE_SIZE = 5000


class CursorConfig:
    """Page cursor token settings"""

    VERSION = 1
    FINGERPRINT_LENGTH = 16  # Hex characters of the sha256 query fingerprint
    MAX_TOKEN_LENGTH = 2048
