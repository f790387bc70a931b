"""
Health query service

Public read operations over the record store:

- aggregate: calendar-aligned buckets reduced to one value each
- query_page: one page of raw records plus a cursor
- query_all: every record, auto-paginated
- query_multiple: several metric types at once, paged or auto-paginated

Arguments are validated in a fixed order (range, metric type, cursor) and
always before the source is touched. Every failure is a QueryError.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import tzinfo
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ...utils.config import Config
from ..core.constants import DEFAULT_TIMEZONE, DEFAULT_WEEK_START, Granularity, PageConfig, WeekStart
from ..core.errors import InvalidArgument, InvalidRange, SourceUnavailable
from ..core.indicators_info import MetricClassifier
from ..core.models import AggregateResponse, RecordPage, TimeRange
from .aggregator import Aggregator
from .bucketer import build_buckets, resolve_timezone
from .cursor import CursorCodec
from .paginator import Paginator
from .sources.base import RecordSourceProtocol


class HealthQueryService:
    """Stateless between calls; safe to share across concurrent requests"""

    def __init__(
            self,
            source: RecordSourceProtocol,
            classifier: Optional[MetricClassifier] = None,
            timezone: "str | tzinfo" = DEFAULT_TIMEZONE,
            week_start: "WeekStart | str | int" = DEFAULT_WEEK_START,
            default_page_size: int = PageConfig.DEFAULT_PAGE_SIZE,
            max_page_size: int = PageConfig.MAX_PAGE_SIZE,
            cursor_secret_key: str = "",
            timeout: Optional[float] = None,
    ):
        self.source = source
        self.classifier = classifier or MetricClassifier()
        self.timezone = resolve_timezone(timezone)
        self.week_start = WeekStart.parse(week_start)
        self.timeout = timeout if timeout and timeout > 0 else None

        self.paginator = Paginator(
            source,
            codec=CursorCodec(cursor_secret_key),
            default_page_size=default_page_size,
            max_page_size=max_page_size,
        )

    @classmethod
    def from_config(cls, config: Config, source: RecordSourceProtocol, classifier: Optional[MetricClassifier] = None) -> "HealthQueryService":
        query_config = config.query
        return cls(
            source,
            classifier=classifier,
            timezone=query_config.timezone,
            week_start=query_config.week_start,
            default_page_size=query_config.default_page_size,
            max_page_size=query_config.max_page_size,
            cursor_secret_key=query_config.cursor_secret_key,
            timeout=query_config.timeout,
        )

    # ========== Helpers ==========

    def _validate(self, metric_type: str, start: Any, end: Any) -> TimeRange:
        time_range = start if isinstance(start, TimeRange) and end is None else TimeRange.of(start, end)
        if time_range.is_empty:
            raise InvalidRange(
                f"start must be before end: {time_range.start.isoformat()}",
                {"start": time_range.start.isoformat(), "end": time_range.end.isoformat()},
            )

        self.classifier.classify(metric_type)
        return time_range

    @asynccontextmanager
    async def _deadline(self, operation: str, metric_type: str):
        start_time = time.time()
        try:
            async with asyncio.timeout(self.timeout):
                yield
        except TimeoutError as e:
            raise SourceUnavailable(
                f"{operation} timed out after {self.timeout}s",
                {"metric_type": metric_type, "timeout": self.timeout},
            ) from e
        finally:
            logging.info(
                f"{operation} {metric_type}",
                extra={"time_cost": round((time.time() - start_time) * 1e3, 2)},
            )

    # ========== Aggregation path ==========

    async def aggregate(
            self,
            metric_type: str,
            start: Any,
            end: Any = None,
            granularity: "Granularity | str | None" = None,
            timezone: "str | tzinfo | None" = None,
    ) -> AggregateResponse:
        """
        Reduce a metric over calendar-aligned buckets

        Args:
            metric_type: Metric type, must be in the classification table
            start: Range start (datetime, ISO-8601 string or epoch ms), or a TimeRange
            end: Range end, exclusive
            granularity: hour/day/week/month, default day
            timezone: IANA zone the calendar is evaluated in, default the service's

        Raises:
            InvalidRange, UnknownMetricType, InvalidArgument, SourceUnavailable
        """
        time_range = self._validate(metric_type, start, end)
        kind = self.classifier.classify(metric_type)

        zone = resolve_timezone(timezone) if timezone else self.timezone
        try:
            granularity = Granularity.parse(granularity)
        except ValueError as e:
            raise InvalidArgument(str(e), {"granularity": str(granularity)}) from e

        buckets = build_buckets(
            time_range,
            granularity,
            zone,
            self.week_start,
            unit=self.classifier.unit_for(metric_type),
        )

        # Bucket state lives only in this call; a failure discards it.
        aggregator = Aggregator(buckets, kind)
        async with self._deadline("aggregate", metric_type):
            async for page in self.paginator.iter_pages(time_range, metric_type):
                aggregator.add_page(page)

        return AggregateResponse(
            metric_type=metric_type,
            granularity=granularity.value,
            aggregates=aggregator.finish(),
            skipped_count=aggregator.skipped_count,
        )

    # ========== Raw path ==========

    async def query_page(
            self,
            metric_type: str,
            start: Any,
            end: Any = None,
            limit: int = 0,
            cursor: Optional[str] = None,
    ) -> RecordPage:
        """
        One page of records ordered by (start_time, uuid)

        Pass the returned next_cursor back with identical metric_type, range and
        limit to continue; a None next_cursor means the enumeration is complete.

        Raises:
            InvalidRange, UnknownMetricType, InvalidArgument, InvalidCursor, SourceUnavailable
        """
        time_range = self._validate(metric_type, start, end)

        async with self._deadline("query_page", metric_type):
            return await self.paginator.fetch_page(time_range, metric_type, limit, cursor)

    async def query_all(
            self,
            metric_type: str,
            start: Any,
            end: Any = None,
            limit: int = 0,
    ) -> RecordPage:
        """Every record in the range; `limit` only sets the internal page size"""
        time_range = self._validate(metric_type, start, end)
        self.paginator.page_size(limit)

        async with self._deadline("query_all", metric_type):
            return await self.paginator.fetch_all(time_range, metric_type, limit)

    async def query_multiple(
            self,
            metric_types: Sequence[str],
            start: Any,
            end: Any = None,
            limit: int = 0,
            cursors: Optional[Mapping[str, Optional[str]]] = None,
    ) -> Dict[str, RecordPage]:
        """
        Records of several metric types, fetched concurrently

        Without `cursors` every record of each type is returned. With `cursors`
        (an empty mapping starts every type) one page per type is returned, each
        with its own next_cursor; a type missing from the mapping starts at its
        first page.

        All types and cursors are validated before any is fetched; if one fetch
        fails the others are cancelled and the error propagates.
        """
        if isinstance(metric_types, str) or not metric_types:
            raise InvalidArgument("metric_types must be a non-empty list", {"metric_types": metric_types})

        unique_types: List[str] = list(dict.fromkeys(metric_types))
        for metric_type in unique_types:
            time_range = self._validate(metric_type, start, end)
        self.paginator.page_size(limit)

        if cursors is not None:
            unexpected = sorted(set(cursors) - set(unique_types))
            if unexpected:
                raise InvalidArgument(
                    f"cursors given for metric types not queried: {', '.join(unexpected)}",
                    {"metric_types": unexpected},
                )
            for metric_type in unique_types:
                self.paginator.resolve_cursor(time_range, metric_type, limit, cursors.get(metric_type))

        async def fetch(metric_type: str) -> RecordPage:
            if cursors is None:
                return await self.paginator.fetch_all(time_range, metric_type, limit)
            return await self.paginator.fetch_page(time_range, metric_type, limit, cursors.get(metric_type) or None)

        tasks = [asyncio.create_task(fetch(metric_type)) for metric_type in unique_types]
        try:
            async with self._deadline("query_multiple", ",".join(unique_types)):
                pages = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        return dict(zip(unique_types, pages))

    async def is_available(self) -> bool:
        try:
            return bool(await self.source.is_available())
        except Exception as e:
            logging.warning(f"Record source availability check failed: {e}")
            return False
