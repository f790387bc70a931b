from datetime import datetime, timedelta, timezone

import pytest

from healthquery.pulse.core import SourceUnavailable, TimeRange
from healthquery.pulse.query import Paginator, PgSQLRecordSource
from healthquery.utils import set_req_ctx

UTC = timezone.utc
BASE = datetime(2024, 3, 1, tzinfo=UTC)
RANGE = TimeRange.of(BASE, BASE + timedelta(days=1))


def row(i, **overrides):
    data = {
        "id": f"00000000-0000-0000-0000-{i:012d}",
        "metric_type": "heartRate",
        "start_time": BASE + timedelta(minutes=i),
        "end_time": BASE + timedelta(minutes=i, seconds=30),
        "value": 60 + i,
        "unit": "bpm",
        "source_id": "com.apple.health",
        "source": "Apple Watch",
        "device": None,
    }
    data.update(overrides)
    return data


class FakeExecutor:

    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []

    async def __call__(self, query, params=None, db_config="", trace_id=""):
        self.calls.append({"query": query, "params": params, "db_config": db_config, "trace_id": trace_id})
        if self.error:
            raise self.error
        return self.rows


@pytest.mark.asyncio
async def test_first_page_query():
    executor = FakeExecutor([row(i) for i in range(3)])
    source = PgSQLRecordSource(table="health.records", executor=executor)

    page = await source.query("heartRate", RANGE, None, 5)

    assert [record.value for record in page.records] == [60, 61, 62]
    assert not page.has_more

    call = executor.calls[0]
    assert "FROM health.records" in call["query"]
    assert ":after_time" not in call["query"]
    assert call["params"]["limit"] == 6
    assert call["params"]["start_time"] == RANGE.start


@pytest.mark.asyncio
async def test_extra_row_means_more():
    executor = FakeExecutor([row(i) for i in range(3)])
    page = await PgSQLRecordSource(executor=executor).query("heartRate", RANGE, None, 2)

    assert len(page.records) == 2
    assert page.has_more


@pytest.mark.asyncio
async def test_keyset_parameters_and_trace_id():
    executor = FakeExecutor([])
    sort_after = (BASE + timedelta(minutes=5), "abc")

    with set_req_ctx({"trace_id": "t-1"}):
        await PgSQLRecordSource(executor=executor).query("heartRate", RANGE, sort_after, 10)

    call = executor.calls[0]
    assert '(start_time, id::text COLLATE "C") > (:after_time, :after_id)' in call["query"]
    assert call["params"]["after_time"] == sort_after[0]
    assert call["params"]["after_id"] == "abc"
    assert call["trace_id"] == "t-1"


@pytest.mark.asyncio
async def test_limit_capped_to_max_page_size():
    executor = FakeExecutor([])
    await PgSQLRecordSource(max_page_size=100, executor=executor).query("heartRate", RANGE, None, 1000)
    assert executor.calls[0]["params"]["limit"] == 101


@pytest.mark.asyncio
async def test_device_json_is_parsed():
    executor = FakeExecutor([row(1, device='{"name": "Watch", "hardwareVersion": "7"}')])
    page = await PgSQLRecordSource(executor=executor).query("heartRate", RANGE, None, 5)

    assert page.records[0].device.name == "Watch"
    assert page.records[0].device.hardware_version == "7"


@pytest.mark.asyncio
async def test_store_errors_become_source_unavailable():
    source = PgSQLRecordSource(executor=FakeExecutor(error=RuntimeError("connection refused")))
    with pytest.raises(SourceUnavailable):
        await source.query("heartRate", RANGE, None, 5)
    assert not await source.is_available()


@pytest.mark.asyncio
async def test_malformed_rows_become_source_unavailable():
    source = PgSQLRecordSource(executor=FakeExecutor([row(1, value=None)]))
    with pytest.raises(SourceUnavailable):
        await source.query("heartRate", RANGE, None, 5)


@pytest.mark.asyncio
async def test_is_available():
    assert await PgSQLRecordSource(executor=FakeExecutor([{"?column?": 1}])).is_available()


class KeysetExecutor(FakeExecutor):
    """Applies the keyset predicate, code-point ordering and LIMIT the way the SQL asks for"""

    async def __call__(self, query, params=None, db_config="", trace_id=""):
        self.calls.append({"query": query, "params": params, "db_config": db_config, "trace_id": trace_id})

        rows = sorted(self.rows, key=lambda r: (r["start_time"], r["id"]))
        if "after_time" in params:
            after = (params["after_time"], params["after_id"])
            rows = [r for r in rows if (r["start_time"], r["id"]) > after]
        return rows[:params["limit"]]


@pytest.mark.asyncio
async def test_mixed_case_ids_paginate_without_gaps():
    ids = ["A", "b", "C", "d"]
    executor = KeysetExecutor([row(0, id=i) for i in ids])
    paginator = Paginator(PgSQLRecordSource(max_page_size=2, executor=executor), default_page_size=2)

    page = await paginator.fetch_all(RANGE, "heartRate")

    assert [record.uuid for record in page.records] == sorted(ids)
    for call in executor.calls:
        assert 'ORDER BY start_time ASC, id::text COLLATE "C" ASC' in call["query"]


@pytest.mark.parametrize("table", ["", "records; drop table x", "a.b.c", "1table"])
def test_table_name_validated(table):
    with pytest.raises(ValueError):
        PgSQLRecordSource(table=table)
