"""
PostgreSQL record source

Reads health records through the shared SQLAlchemy async engine
(healthquery.utils.db.execute_query). Expected table layout:

    id           uuid / text   stable record id
    metric_type  text
    start_time   timestamptz
    end_time     timestamptz
    value        double precision
    unit         text
    source_id    text
    source       text
    device       jsonb, nullable

An index on (metric_type, start_time, id) keeps the keyset query cheap.
"""

import json
import logging
import re
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ....utils import execute_query, get_req_ctx
from ...core.constants import PageConfig
from ...core.errors import SourceUnavailable
from ...core.models import DeviceInformation, HealthRecord, TimeRange
from .base import SourcePage

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")

Executor = Callable[..., Awaitable[Any]]


class PgSQLRecordSource:
    """Keyset-paginated reads ordered by (start_time, id)"""

    def __init__(
            self,
            table: str = "health_records",
            db_config: str = "",
            max_page_size: int = PageConfig.MAX_PAGE_SIZE,
            executor: Optional[Executor] = None,
    ):
        if not _TABLE_NAME.match(table or ""):
            raise ValueError(f"Invalid table name: {table!r}")
        if max_page_size <= 0:
            raise ValueError("max_page_size must be positive")

        self.table = table
        self.db_config = db_config
        self.max_page_size = max_page_size
        self._execute = executor or execute_query

    def _build_query(self, sort_after: Optional[Tuple[datetime, str]]) -> str:
        # ids compare in code-point order, the same order the paginator uses for cursors
        keyset = ""
        if sort_after is not None:
            keyset = 'AND (start_time, id::text COLLATE "C") > (:after_time, :after_id)'

        return f"""
        SELECT id::text AS id, metric_type, start_time, end_time, value,
               unit, source_id, source, device
        FROM {self.table}
        WHERE metric_type = :metric_type
          AND start_time >= :start_time
          AND start_time < :end_time
          {keyset}
        ORDER BY start_time ASC, id::text COLLATE "C" ASC
        LIMIT :limit
        """

    @staticmethod
    def _to_record(row: Dict[str, Any]) -> HealthRecord:
        device = row.get("device")
        if isinstance(device, str):
            device = json.loads(device) if device else None

        return HealthRecord(
            uuid=str(row["id"]),
            metric_type=row["metric_type"],
            start_time=row["start_time"],
            end_time=row.get("end_time") or row["start_time"],
            value=float(row["value"]),
            unit=row.get("unit") or "",
            source_id=row.get("source_id") or "",
            source=row.get("source") or "",
            device=DeviceInformation.model_validate(device) if device else None,
        )

    async def query(
            self,
            metric_type: str,
            time_range: TimeRange,
            sort_after: Optional[Tuple[datetime, str]],
            limit: int,
    ) -> SourcePage:
        limit = min(limit, self.max_page_size)
        params: Dict[str, Any] = {
            "metric_type": metric_type,
            "start_time": time_range.start,
            "end_time": time_range.end,
            # One extra row tells whether more exist
            "limit": limit + 1,
        }
        if sort_after is not None:
            params["after_time"], params["after_id"] = sort_after

        trace_id = get_req_ctx("trace_id", "")

        try:
            rows = await self._execute(
                self._build_query(sort_after),
                params,
                db_config=self.db_config,
                trace_id=trace_id,
            )
        except Exception as e:
            raise SourceUnavailable(
                f"Failed to read {metric_type} records: {e}",
                {"metric_type": metric_type, "table": self.table},
            ) from e

        rows = rows if isinstance(rows, list) else []

        try:
            records: List[HealthRecord] = [self._to_record(row) for row in rows[:limit]]
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logging.error(f"Malformed row in {self.table}: {e}", extra={"metric_type": metric_type})
            raise SourceUnavailable(
                f"Record store returned a malformed {metric_type} row",
                {"metric_type": metric_type, "table": self.table},
            ) from e

        return SourcePage(records=records, has_more=len(rows) > limit)

    async def is_available(self) -> bool:
        try:
            await self._execute("SELECT 1", {}, db_config=self.db_config)
            return True
        except Exception as e:
            logging.warning(f"Record store is not reachable: {e}", extra={"table": self.table})
            return False
