"""
Paginator

Wraps the record source with a stable cursor over the sort key
(start_time, uuid) ascending.

    Start    no cursor: first page of the query
    Resume   cursor: records strictly after the cursor's sort key
    Exhausted the source reported nothing more: next_cursor is None

Callers must check next_cursor, not the record count, to detect the end.
"""

import logging
from collections.abc import AsyncIterator
from typing import List, Optional, Tuple

from ..core.constants import PageConfig
from ..core.errors import InvalidArgument, QueryError, SourceUnavailable
from ..core.models import HealthRecord, RecordPage, TimeRange
from .cursor import CursorCodec, SortKey, query_fingerprint
from .sources.base import RecordSourceProtocol


class Paginator:
    """Request-scoped page fetching over a RecordSourceProtocol; holds no per-query state"""

    def __init__(
            self,
            source: RecordSourceProtocol,
            codec: Optional[CursorCodec] = None,
            default_page_size: int = PageConfig.DEFAULT_PAGE_SIZE,
            max_page_size: int = PageConfig.MAX_PAGE_SIZE,
    ):
        if default_page_size <= 0 or max_page_size <= 0:
            raise ValueError("page sizes must be positive")

        self.source = source
        self.codec = codec or CursorCodec()
        self.max_page_size = max_page_size
        self.default_page_size = min(default_page_size, max_page_size)

    # ========== Page size ==========

    def page_size(self, limit: int) -> int:
        """0 selects the default page size; anything above the maximum is capped"""
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
            raise InvalidArgument(f"limit must be a non-negative integer: {limit!r}", {"limit": limit})
        if limit == 0:
            return self.default_page_size
        return min(limit, self.max_page_size)

    def _source_chunk(self, size: int) -> int:
        source_max = getattr(self.source, "max_page_size", None)
        if isinstance(source_max, int) and source_max > 0:
            return min(size, source_max)
        return size

    # ========== Source access ==========

    async def _fetch(
            self,
            time_range: TimeRange,
            metric_type: str,
            sort_after: Optional[SortKey],
            size: int,
    ) -> Tuple[List[HealthRecord], bool]:
        """
        Collect up to `size` records after `sort_after`, chunking calls to the
        source's own page limit. Returns (records, has_more).
        """
        records: List[HealthRecord] = []
        after = sort_after
        has_more = True

        while len(records) < size:
            want = self._source_chunk(size - len(records))

            try:
                page = await self.source.query(metric_type, time_range, after, want)
            except QueryError:
                raise
            except Exception as e:
                logging.error(
                    f"Record source query failed: {e}",
                    extra={"metric_type": metric_type, "source": type(self.source).__name__},
                )
                raise SourceUnavailable(
                    f"Record source failed: {e}",
                    {"metric_type": metric_type},
                ) from e

            fresh = page.records
            if after is not None:
                # Keep the enumeration strictly increasing even if the source is inclusive
                fresh = [record for record in fresh if record.sort_key > after]
                if len(fresh) != len(page.records):
                    logging.warning(
                        f"Source returned {len(page.records) - len(fresh)} records at or before the cursor",
                        extra={"metric_type": metric_type},
                    )

            taken = fresh[:want]
            records.extend(taken)
            has_more = bool(page.has_more) or len(fresh) > want

            if not has_more:
                break

            if not taken:
                logging.warning(
                    "Source reported more records but returned none; treating as exhausted",
                    extra={"metric_type": metric_type},
                )
                has_more = False
                break

            after = taken[-1].sort_key

        return records, has_more

    # ========== Manual pagination ==========

    def resolve_cursor(
            self,
            time_range: TimeRange,
            metric_type: str,
            limit: int = 0,
            cursor: Optional[str] = None,
    ) -> Optional[SortKey]:
        """Sort key to resume after, or None to start; checks the cursor belongs to this query"""
        if not cursor:
            return None
        return self.codec.verify(cursor, query_fingerprint(metric_type, time_range, limit)).sort_key

    async def fetch_page(
            self,
            time_range: TimeRange,
            metric_type: str,
            limit: int = 0,
            cursor: Optional[str] = None,
    ) -> RecordPage:
        """
        One page of the query plus the cursor for the next one

        Args:
            time_range: Query range
            metric_type: Metric type to enumerate
            limit: Page size, 0 for the default
            cursor: Token from the previous page of this same query, or None to start

        Raises:
            InvalidArgument: negative limit
            InvalidCursor: undecodable cursor, or one issued for another query
            SourceUnavailable: the record source failed
        """
        size = self.page_size(limit)
        fingerprint = query_fingerprint(metric_type, time_range, limit)

        sort_after = self.resolve_cursor(time_range, metric_type, limit, cursor)

        records, has_more = await self._fetch(time_range, metric_type, sort_after, size)

        next_cursor = None
        if has_more and records:
            next_cursor = self.codec.encode(records[-1].sort_key, fingerprint)

        return RecordPage(records=records, next_cursor=next_cursor)

    # ========== Auto pagination ==========

    async def iter_pages(
            self,
            time_range: TimeRange,
            metric_type: str,
            limit: int = 0,
    ) -> AsyncIterator[List[HealthRecord]]:
        """
        Yield successive pages until the source is exhausted

        Each page reflects the store as of that page's fetch (read-committed per
        page): a record written behind the cursor mid-enumeration is not seen, one
        written ahead of it is. Cancelling the consuming task cancels the
        in-flight source call and no further pages are requested.
        """
        size = self.page_size(limit)
        sort_after: Optional[SortKey] = None

        while True:
            records, has_more = await self._fetch(time_range, metric_type, sort_after, size)
            if records:
                yield records

            if not has_more or not records:
                return

            sort_after = records[-1].sort_key

    async def iter_records(
            self,
            time_range: TimeRange,
            metric_type: str,
            limit: int = 0,
    ) -> AsyncIterator[HealthRecord]:
        async for records in self.iter_pages(time_range, metric_type, limit):
            for record in records:
                yield record

    async def fetch_all(
            self,
            time_range: TimeRange,
            metric_type: str,
            limit: int = 0,
    ) -> RecordPage:
        """Every record of the query in order; next_cursor is always None"""
        records: List[HealthRecord] = []
        pages = 0
        async for page in self.iter_pages(time_range, metric_type, limit):
            records.extend(page)
            pages += 1

        logging.debug(
            f"Auto-paginated {len(records)} records in {pages} pages",
            extra={"metric_type": metric_type},
        )
        return RecordPage(records=records)
