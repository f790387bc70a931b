"""
Core data models module

Defines the records read from the store, the time range a query covers, and
the bucket/page shapes returned to callers. Field aliases follow the camelCase
names mobile clients already send and expect.
"""

import math
from datetime import date, datetime, timezone
from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from .errors import InvalidRange


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: Any, field: str = "instant") -> datetime:
    """
    Parse a caller-supplied instant into an aware UTC datetime

    Accepts datetime/date objects, ISO-8601 strings (a trailing 'Z' is fine)
    and epoch milliseconds.

    Raises:
        InvalidRange: unparseable or non-finite value
    """
    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            raise InvalidRange(f"{field} is not finite: {value!r}")
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidRange(f"{field} is out of range: {value!r}") from e

    if isinstance(value, str) and value.strip():
        try:
            return to_utc(datetime.fromisoformat(value.strip()))
        except ValueError as e:
            raise InvalidRange(f"{field} is not an ISO-8601 instant: {value!r}") from e

    raise InvalidRange(f"{field} is missing or not an instant: {value!r}")


# ============================================================================
# REQUEST-SIDE MODELS
# ============================================================================

class TimeRange(BaseModel):
    """
    Half-open interval [start, end) in UTC

    start == end is an empty range (zero buckets, zero records); start > end
    is rejected with InvalidRange.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse(cls, value: Any, info) -> datetime:
        return parse_instant(value, info.field_name)

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.start > self.end:
            raise InvalidRange(
                f"start must not be after end: {self.start.isoformat()} > {self.end.isoformat()}",
                {"start": self.start.isoformat(), "end": self.end.isoformat()},
            )
        return self

    @classmethod
    def of(cls, start: Any, end: Any) -> "TimeRange":
        return cls(start=start, end=end)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


# ============================================================================
# RECORD MODELS
# ============================================================================

class DeviceInformation(BaseModel):
    """Device a record was captured on"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: Optional[str] = Field(default=None, description="Device name")
    manufacturer: Optional[str] = Field(default=None, description="Manufacturer")
    model: Optional[str] = Field(default=None, description="Model")
    hardware_version: Optional[str] = Field(default=None, alias="hardwareVersion", description="Hardware version")
    software_version: Optional[str] = Field(default=None, alias="softwareVersion", description="Software version")


class HealthRecord(BaseModel):
    """One measurement read from the record store; read-only to the query engine"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    metric_type: str = Field(..., alias="metricType", description="Metric type identifier, e.g. 'stepCount'")
    uuid: str = Field(..., description="Stable record id, tie-breaker of the sort key")
    start_time: datetime = Field(..., alias="startDate", description="Measurement start (UTC)")
    end_time: datetime = Field(..., alias="endDate", description="Measurement end (UTC)")
    value: float = Field(..., description="Numeric value")
    unit: str = Field(default="", alias="unitName", description="Unit as reported by the source")
    source_id: str = Field(default="", alias="sourceBundleId", description="Opaque origin identifier")
    source: str = Field(default="", description="Origin display name")
    device: Optional[DeviceInformation] = Field(default=None, description="Capturing device")

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)

    @field_validator("value", mode="after")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("value must be finite")
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "HealthRecord":
        if self.end_time < self.start_time:
            raise ValueError("end_time must not precede start_time")
        return self

    @computed_field
    @property
    def duration(self) -> float:
        """Seconds between start and end"""
        return (self.end_time - self.start_time).total_seconds()

    @property
    def sort_key(self) -> Tuple[datetime, str]:
        return self.start_time, self.uuid


# ============================================================================
# RESPONSE MODELS
# ============================================================================

class Bucket(BaseModel):
    """Calendar-aligned window reduced to one value"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    value: float = Field(default=0.0, description="Sum or mean; 0 when no records fell in the window")
    unit: str = Field(default="")
    sample_count: int = Field(default=0, alias="sampleCount")


class AggregateResponse(BaseModel):
    """Aggregated data grouped by time period"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    metric_type: str = Field(..., alias="sampleName")
    granularity: str = Field(..., alias="groupBy")
    aggregates: List[Bucket] = Field(default_factory=list)
    skipped_count: int = Field(default=0, alias="skippedCount", description="Records outside every bucket (diagnostic)")


class RecordPage(BaseModel):
    """One page of an ordered record enumeration"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    records: List[HealthRecord] = Field(default_factory=list, alias="resultData")
    next_cursor: Optional[str] = Field(default=None, alias="nextPageToken")

    @computed_field(alias="countReturn")
    @property
    def count_return(self) -> int:
        return len(self.records)

    @property
    def exhausted(self) -> bool:
        return self.next_cursor is None

    def to_output(self) -> dict:
        """Wire shape: countReturn, resultData and nextPageToken only when present"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
