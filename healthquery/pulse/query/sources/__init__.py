from .base import RecordSourceProtocol, SourcePage
from .memory import InMemoryRecordSource
from .pgsql import PgSQLRecordSource

__all__ = [
    "RecordSourceProtocol",
    "SourcePage",
    "InMemoryRecordSource",
    "PgSQLRecordSource",
]
