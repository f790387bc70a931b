import itertools
from datetime import datetime, timedelta, timezone

import pytest

from healthquery.pulse.core import HealthRecord
from healthquery.pulse.query import HealthQueryService, InMemoryRecordSource

UTC = timezone.utc


@pytest.fixture
def make_record():
    counter = itertools.count()

    def _make(metric_type: str, start: datetime, value: float, uuid: str | None = None, minutes: int = 0):
        return HealthRecord(
            metric_type=metric_type,
            uuid=uuid or f"rec-{next(counter):06d}",
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            value=value,
        )

    return _make


@pytest.fixture
def day_of_steps(make_record):
    """Three hours of stepCount on 2024-03-01 UTC: 300 in hour 0, 50 in hour 1, none in hour 2"""
    base = datetime(2024, 3, 1, tzinfo=UTC)
    return [
        make_record("stepCount", base + timedelta(minutes=5), 100),
        make_record("stepCount", base + timedelta(minutes=20), 200),
        make_record("stepCount", base + timedelta(hours=1, minutes=10), 50),
    ]


@pytest.fixture
def heart_rates(make_record):
    base = datetime(2024, 3, 1, tzinfo=UTC)
    return [
        make_record("heartRate", base + timedelta(minutes=i * 7), 60 + i)
        for i in range(25)
    ]


@pytest.fixture
def source(day_of_steps, heart_rates):
    return InMemoryRecordSource(day_of_steps + heart_rates)


@pytest.fixture
def service(source):
    return HealthQueryService(source, default_page_size=10, max_page_size=50)
