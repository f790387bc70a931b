"""
Aggregator

Single pass over a record stream: each record is placed in the bucket whose
[start_time, end_time) contains the record's start_time and folded into that
bucket's running sum (cumulative) or running sum and count (discrete).
Records may arrive in any order; only the buckets are held in memory.
"""

import logging
from bisect import bisect_right
from collections.abc import AsyncIterable, Iterable
from typing import List, Optional, Sequence

from ..core.constants import MetricKind
from ..core.errors import EmptyGranularity
from ..core.models import Bucket, HealthRecord


class Aggregator:
    """
    Accumulates records into a fixed, ordered bucket sequence

    Records outside every bucket (source clock skew) are dropped and counted
    in `skipped_count`; they are never folded into a neighbouring bucket.
    """

    def __init__(self, buckets: Sequence[Bucket], kind: MetricKind):
        self.kind = MetricKind(kind)

        self._buckets = list(buckets)
        self._starts = [bucket.start_time for bucket in self._buckets]
        self._sums = [0.0] * len(self._buckets)
        self._counts = [0] * len(self._buckets)

        self.skipped_count = 0
        self.record_count = 0

    def _locate(self, record: HealthRecord) -> Optional[int]:
        if not self._buckets:
            raise EmptyGranularity(
                "Received records but no buckets exist to hold them",
                {"metric_type": record.metric_type},
            )

        index = bisect_right(self._starts, record.start_time) - 1
        if index >= 0 and record.start_time < self._buckets[index].end_time:
            return index
        return None

    def _fold(self, index: Optional[int], record: HealthRecord) -> bool:
        self.record_count += 1
        if index is None:
            self.skipped_count += 1
            return False

        self._sums[index] += record.value
        self._counts[index] += 1
        return True

    def add(self, record: HealthRecord) -> bool:
        """Fold one record; returns False if it fell outside every bucket"""
        return self._fold(self._locate(record), record)

    def add_page(self, records: Sequence[HealthRecord]) -> int:
        """Fold a whole page; lookups finish before any bucket changes. Returns records folded."""
        indexes = [self._locate(record) for record in records]
        return sum(1 for index, record in zip(indexes, records) if self._fold(index, record))

    def finish(self) -> List[Bucket]:
        results = []
        for bucket, total, count in zip(self._buckets, self._sums, self._counts):
            if self.kind == MetricKind.CUMULATIVE:
                value = total
            else:
                value = total / count if count else 0.0

            results.append(bucket.model_copy(update={"value": value, "sample_count": count}))

        if self.skipped_count:
            logging.info(
                f"Dropped {self.skipped_count} of {self.record_count} records outside all buckets",
                extra={"skipped_count": self.skipped_count, "record_count": self.record_count},
            )

        return results


async def aggregate(
        records: "Iterable[HealthRecord] | AsyncIterable[HealthRecord]",
        buckets: Sequence[Bucket],
        kind: MetricKind,
) -> List[Bucket]:
    """
    Reduce a record stream into the given buckets

    Consumes sync or async iterables incrementally; nothing is returned if the
    stream raises part-way.
    """
    aggregator = Aggregator(buckets, kind)

    if isinstance(records, AsyncIterable):
        async for record in records:
            aggregator.add(record)
    else:
        for record in records:
            aggregator.add(record)

    return aggregator.finish()
