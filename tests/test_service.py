import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from healthquery.pulse.core import (
    InvalidArgument,
    InvalidCursor,
    InvalidRange,
    SourceUnavailable,
    UnknownMetricType,
)
from healthquery.pulse.query import HealthQueryService, InMemoryRecordSource, SourcePage
from healthquery.utils.config import Config

UTC = timezone.utc
START = "2024-03-01T00:00:00Z"
END = "2024-03-01T03:00:00Z"


@pytest.mark.asyncio
async def test_aggregate_hourly_steps(service):
    result = await service.aggregate("stepCount", START, END, granularity="hour")

    assert result.granularity == "hour"
    assert [bucket.value for bucket in result.aggregates] == [300, 50, 0]
    assert all(bucket.unit == "count" for bucket in result.aggregates)
    assert result.skipped_count == 0

    dumped = result.model_dump(mode="json", by_alias=True)
    assert dumped["sampleName"] == "stepCount"
    assert dumped["aggregates"][0]["sampleCount"] == 2


@pytest.mark.asyncio
async def test_aggregate_discrete_daily(service, heart_rates):
    result = await service.aggregate("heartRate", START, "2024-03-03T00:00:00Z")

    expected = sum(record.value for record in heart_rates) / len(heart_rates)
    assert result.aggregates[0].value == pytest.approx(expected)
    assert result.aggregates[1].value == 0
    assert result.aggregates[1].sample_count == 0


@pytest.mark.asyncio
async def test_aggregate_in_another_time_zone(service):
    # Tokyo day 2024-03-01 ends at 15:00 UTC, so all records fall into it
    result = await service.aggregate(
        "stepCount", "2024-02-29T15:00:00Z", "2024-03-02T15:00:00Z", timezone="Asia/Tokyo"
    )
    assert [bucket.value for bucket in result.aggregates] == [350, 0]


@pytest.mark.asyncio
async def test_aggregate_is_idempotent(service):
    first = await service.aggregate("stepCount", START, END, granularity="hour")
    second = await service.aggregate("stepCount", START, END, granularity="hour")
    assert first == second


@pytest.mark.asyncio
async def test_query_page_walks_all_records(service, heart_rates):
    seen, cursor = [], None
    while True:
        page = await service.query_page("heartRate", START, "2024-03-02T00:00:00Z", limit=4, cursor=cursor)
        seen.extend(page.records)
        cursor = page.next_cursor
        if cursor is None:
            break

    assert seen == heart_rates


@pytest.mark.asyncio
async def test_query_all(service, heart_rates):
    page = await service.query_all("heartRate", START, "2024-03-02T00:00:00Z")
    assert page.records == heart_rates
    assert page.next_cursor is None


@pytest.mark.asyncio
async def test_query_multiple(service, heart_rates, day_of_steps):
    pages = await service.query_multiple(["heartRate", "stepCount", "heartRate"], START, "2024-03-02T00:00:00Z")

    assert list(pages) == ["heartRate", "stepCount"]
    assert pages["heartRate"].records == heart_rates
    assert pages["stepCount"].records == day_of_steps


@pytest.mark.asyncio
async def test_query_multiple_rejects_unknown_type_before_fetching(service, source):
    with pytest.raises(UnknownMetricType):
        await service.query_multiple(["heartRate", "moodScore"], START, END)
    assert source.query_count == 0

    with pytest.raises(InvalidArgument):
        await service.query_multiple([], START, END)


@pytest.mark.asyncio
@pytest.mark.parametrize("call, error", [
    (lambda s: s.aggregate("stepCount", END, START), InvalidRange),
    (lambda s: s.aggregate("stepCount", START, START), InvalidRange),
    (lambda s: s.query_page("stepCount", "soon", END), InvalidRange),
    (lambda s: s.aggregate("moodScore", START, END), UnknownMetricType),
    (lambda s: s.aggregate("stepCount", START, END, granularity="minute"), InvalidArgument),
    (lambda s: s.aggregate("stepCount", START, END, timezone="Nowhere/Land"), InvalidArgument),
    (lambda s: s.query_page("stepCount", START, END, cursor="bogus"), InvalidCursor),
    (lambda s: s.query_page("stepCount", START, END, limit=-5), InvalidArgument),
    (lambda s: s.query_all("stepCount", START, END, limit=-5), InvalidArgument),
])
async def test_validation_happens_before_the_source_is_touched(service, source, call, error):
    with pytest.raises(error):
        await call(service)
    assert source.query_count == 0


@pytest.mark.asyncio
async def test_range_is_checked_before_metric_type(service):
    with pytest.raises(InvalidRange):
        await service.query_page("moodScore", END, START)


@pytest.mark.asyncio
async def test_metric_type_is_checked_before_cursor(service):
    with pytest.raises(UnknownMetricType):
        await service.query_page("moodScore", START, END, cursor="bogus")


class BrokenSource:
    max_page_size = 100

    async def query(self, metric_type, time_range, sort_after, limit):
        raise OSError("disk on fire")

    async def is_available(self):
        raise OSError("disk on fire")


@pytest.mark.asyncio
async def test_source_failure_propagates_from_aggregate():
    service = HealthQueryService(BrokenSource())
    with pytest.raises(SourceUnavailable):
        await service.aggregate("stepCount", START, END)

    assert not await service.is_available()


class HangingSource:
    max_page_size = 100

    async def query(self, metric_type, time_range, sort_after, limit):
        await asyncio.sleep(60)
        return SourcePage()

    async def is_available(self):
        return True


@pytest.mark.asyncio
async def test_timeout_surfaces_as_source_unavailable():
    service = HealthQueryService(HangingSource(), timeout=0.05)
    with pytest.raises(SourceUnavailable) as exc_info:
        await service.query_all("stepCount", START, END)
    assert exc_info.value.details["timeout"] == 0.05


@pytest.mark.asyncio
async def test_is_available(source):
    assert await HealthQueryService(source).is_available()
    assert not await HealthQueryService(InMemoryRecordSource(available=False)).is_available()


@pytest.mark.asyncio
async def test_from_config(source, monkeypatch):
    monkeypatch.setenv("QUERY_TIMEZONE", "Asia/Tokyo")
    monkeypatch.setenv("QUERY_WEEK_START", "sunday")
    monkeypatch.setenv("QUERY_DEFAULT_PAGE_SIZE", "3")
    monkeypatch.setenv("QUERY_TIMEOUT", "2.5")

    service = HealthQueryService.from_config(Config(), source)

    assert str(service.timezone) == "Asia/Tokyo"
    assert service.week_start.name == "SUNDAY"
    assert service.timeout == 2.5

    page = await service.query_page("heartRate", START, "2024-03-02T00:00:00Z")
    assert page.count_return == 3


@pytest.mark.asyncio
async def test_daily_steps_over_three_days(make_record):
    day1 = datetime(2025, 10, 20, tzinfo=UTC)
    source = InMemoryRecordSource([
        make_record("stepCount", day1 + timedelta(hours=8), 100),
        make_record("stepCount", day1 + timedelta(hours=17), 200),
        make_record("stepCount", day1 + timedelta(days=1, hours=12), 50),
    ])

    result = await HealthQueryService(source).aggregate(
        "stepCount", "2025-10-20T00:00:00Z", "2025-10-23T00:00:00Z", granularity="day"
    )

    assert [bucket.start_time.day for bucket in result.aggregates] == [20, 21, 22]
    assert [bucket.value for bucket in result.aggregates] == [300, 50, 0]
    assert [bucket.sample_count for bucket in result.aggregates] == [2, 1, 0]


class FailsAfterFirstPage(InMemoryRecordSource):

    async def query(self, metric_type, time_range, sort_after, limit):
        if self.query_count >= 1:
            raise ConnectionError("connection reset by peer")
        return await super().query(metric_type, time_range, sort_after, limit)


@pytest.mark.asyncio
async def test_failure_on_second_page_returns_no_buckets(heart_rates):
    source = FailsAfterFirstPage(heart_rates)
    service = HealthQueryService(source, default_page_size=2)

    with pytest.raises(SourceUnavailable):
        await service.aggregate("heartRate", START, "2024-03-02T00:00:00Z")
    assert source.query_count == 1


@pytest.mark.asyncio
async def test_query_multiple_pages_each_type_with_its_own_cursor(service, heart_rates, day_of_steps):
    end = "2024-03-02T00:00:00Z"

    pages = await service.query_multiple(["heartRate", "stepCount"], START, end, cursors={})
    assert pages["heartRate"].count_return == 10
    assert pages["heartRate"].next_cursor is not None
    assert pages["stepCount"].records == day_of_steps
    assert pages["stepCount"].next_cursor is None

    seen = list(pages["heartRate"].records)
    cursors = {"heartRate": pages["heartRate"].next_cursor}
    while cursors:
        pages = await service.query_multiple(list(cursors), START, end, cursors=cursors)
        seen.extend(pages["heartRate"].records)
        cursors = {name: page.next_cursor for name, page in pages.items() if page.next_cursor}

    assert seen == heart_rates


@pytest.mark.asyncio
async def test_query_multiple_checks_cursors_before_fetching(service, source):
    end = "2024-03-02T00:00:00Z"
    steps = await service.query_multiple(["stepCount"], START, end, limit=1, cursors={})
    steps_cursor = steps["stepCount"].next_cursor
    queries_before = source.query_count

    with pytest.raises(InvalidCursor):
        await service.query_multiple(
            ["stepCount", "heartRate"], START, end, limit=1,
            cursors={"stepCount": steps_cursor, "heartRate": steps_cursor},
        )
    with pytest.raises(InvalidArgument):
        await service.query_multiple(["stepCount"], START, end, cursors={"heartRate": None})

    assert source.query_count == queries_before
