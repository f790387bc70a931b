"""
Query module

Bucketing, aggregation, cursor pagination and the service exposing them.
"""

from .aggregator import Aggregator, aggregate
from .bucketer import MAX_BUCKETS, build_buckets, floor_boundary, next_boundary, resolve_timezone
from .cursor import CursorCodec, CursorPayload, query_fingerprint
from .paginator import Paginator
from .service import HealthQueryService
from .sources import InMemoryRecordSource, PgSQLRecordSource, RecordSourceProtocol, SourcePage

__all__ = [
    "Aggregator",
    "aggregate",
    "MAX_BUCKETS",
    "build_buckets",
    "floor_boundary",
    "next_boundary",
    "resolve_timezone",
    "CursorCodec",
    "CursorPayload",
    "query_fingerprint",
    "Paginator",
    "HealthQueryService",
    "InMemoryRecordSource",
    "PgSQLRecordSource",
    "RecordSourceProtocol",
    "SourcePage",
]
