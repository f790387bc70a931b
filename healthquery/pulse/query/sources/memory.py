"""
List-backed record source for tests and local runs
"""

import asyncio
from bisect import bisect_left, bisect_right
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ...core.constants import PageConfig
from ...core.models import HealthRecord, TimeRange
from .base import SourcePage


class InMemoryRecordSource:
    """
    Keeps each metric's records sorted by (start_time, uuid)

    insert() may be called between pages, which is how read-committed-per-page
    enumeration is observed in tests.
    """

    def __init__(
            self,
            records: Optional[Iterable[HealthRecord]] = None,
            max_page_size: int = PageConfig.MAX_PAGE_SIZE,
            available: bool = True,
    ):
        if max_page_size <= 0:
            raise ValueError("max_page_size must be positive")

        self.max_page_size = max_page_size
        self.available = available
        self.query_count = 0

        self._keys: Dict[str, List[Tuple[datetime, str]]] = defaultdict(list)
        self._records: Dict[str, List[HealthRecord]] = defaultdict(list)

        for record in records or []:
            self.insert(record)

    def insert(self, record: HealthRecord):
        keys = self._keys[record.metric_type]
        index = bisect_left(keys, record.sort_key)
        if index < len(keys) and keys[index] == record.sort_key:
            raise ValueError(f"Duplicate record: {record.metric_type} {record.uuid}")

        keys.insert(index, record.sort_key)
        self._records[record.metric_type].insert(index, record)

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())

    async def query(
            self,
            metric_type: str,
            time_range: TimeRange,
            sort_after: Optional[Tuple[datetime, str]],
            limit: int,
    ) -> SourcePage:
        self.query_count += 1
        # Suspend once so cancellation and interleaving behave as with a real store
        await asyncio.sleep(0)

        keys = self._keys.get(metric_type, [])
        records = self._records.get(metric_type, [])

        index = bisect_left(keys, (time_range.start, ""))
        if sort_after is not None:
            index = max(index, bisect_right(keys, sort_after))

        limit = min(limit, self.max_page_size)

        # One record past the limit tells whether more exist
        selected = []
        while index < len(records) and len(selected) <= limit:
            record = records[index]
            if record.start_time >= time_range.end:
                break
            selected.append(record)
            index += 1

        return SourcePage(records=selected[:limit], has_more=len(selected) > limit)

    async def is_available(self) -> bool:
        return self.available
