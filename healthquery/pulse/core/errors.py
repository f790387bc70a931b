"""
Query error taxonomy

Every failure the query engine surfaces is a QueryError. The category tells a
malformed request apart from a transient store failure, so callers can decide
whether retrying makes sense.
"""

from typing import Any, Dict, Optional


class ErrorCategory:
    MALFORMED_REQUEST = "malformed_request"
    SOURCE_FAILURE = "source_failure"
    INTERNAL = "internal"


class QueryError(Exception):
    """Base class for all query engine errors"""

    code = "query_error"
    category = ErrorCategory.INTERNAL

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        return self.category == ErrorCategory.SOURCE_FAILURE

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "category": self.category,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidArgument(QueryError):
    """Request parameter is malformed (granularity, time zone, limit, ...)"""

    code = "invalid_argument"
    category = ErrorCategory.MALFORMED_REQUEST


class InvalidRange(InvalidArgument):
    """start >= end, or an instant that cannot be parsed"""

    code = "invalid_range"


class UnknownMetricType(InvalidArgument):
    """Metric type is not in the classification table"""

    code = "unknown_metric_type"

    def __init__(self, metric_type: str):
        super().__init__(f"Unknown metric type: {metric_type!r}", {"metric_type": metric_type})
        self.metric_type = metric_type


class InvalidCursor(InvalidArgument):
    """Cursor cannot be decoded or was issued for a different query; restart without a cursor"""

    code = "invalid_cursor"


class SourceUnavailable(QueryError):
    """The record source failed or timed out; nothing partial is returned"""

    code = "source_unavailable"
    category = ErrorCategory.SOURCE_FAILURE


class EmptyGranularity(QueryError):
    """Records arrived but no bucket exists to hold them"""

    code = "empty_granularity"
    category = ErrorCategory.INTERNAL
