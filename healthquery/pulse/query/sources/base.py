"""
Record source interface

The store that actually holds the records is an external collaborator. The
query engine only needs keyset reads ordered by (start_time, uuid).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from ...core.models import HealthRecord, TimeRange


@dataclass(frozen=True)
class SourcePage:
    """
    One batch read from a record source

    has_more must be True only if at least one further record exists after
    the last one in `records` for the same query.
    """
    records: List[HealthRecord] = field(default_factory=list)
    has_more: bool = False


@runtime_checkable
class RecordSourceProtocol(Protocol):
    """Ordered, keyset-paginated reads from a record store"""

    # Largest `limit` a single query() call honours
    max_page_size: int

    async def query(
            self,
            metric_type: str,
            time_range: TimeRange,
            sort_after: Optional[Tuple[datetime, str]],
            limit: int,
    ) -> SourcePage:
        """
        Records of `metric_type` whose start_time lies in [start, end), strictly
        after `sort_after` in (start_time, uuid) order, at most `limit` of them
        """
        ...

    async def is_available(self) -> bool:
        ...
