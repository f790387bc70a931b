"""
Core module

Provides the pieces shared by every query path:
- Metric classification table (reduction kind and unit per metric type)
- Common data models and enumerations
- Query error taxonomy
"""

from .constants import (
    CursorConfig,
    DEFAULT_GRANULARITY,
    DEFAULT_TIMEZONE,
    DEFAULT_WEEK_START,
    Granularity,
    MetricKind,
    PageConfig,
    WeekStart,
)
from .errors import (
    EmptyGranularity,
    ErrorCategory,
    InvalidArgument,
    InvalidCursor,
    InvalidRange,
    QueryError,
    SourceUnavailable,
    UnknownMetricType,
)
from .indicators_info import (
    DEFAULT_METRIC_TABLE,
    MetricClassifier,
    MetricInfo,
    StandardMetric,
    build_metric_table,
    get_all_metrics_info,
)
from .models import (
    AggregateResponse,
    Bucket,
    DeviceInformation,
    HealthRecord,
    RecordPage,
    TimeRange,
    parse_instant,
)

__all__ = [
    # Constants and enumerations
    "MetricKind",
    "Granularity",
    "WeekStart",
    "PageConfig",
    "CursorConfig",
    "DEFAULT_GRANULARITY",
    "DEFAULT_TIMEZONE",
    "DEFAULT_WEEK_START",
    # Errors
    "QueryError",
    "ErrorCategory",
    "InvalidArgument",
    "InvalidRange",
    "UnknownMetricType",
    "InvalidCursor",
    "SourceUnavailable",
    "EmptyGranularity",
    # Metric classification
    "MetricInfo",
    "StandardMetric",
    "MetricClassifier",
    "DEFAULT_METRIC_TABLE",
    "build_metric_table",
    "get_all_metrics_info",
    # Data models
    "TimeRange",
    "HealthRecord",
    "DeviceInformation",
    "Bucket",
    "AggregateResponse",
    "RecordPage",
    "parse_instant",
]
