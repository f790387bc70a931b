import json
import logging
from datetime import datetime, timezone

from healthquery.pulse.core import Granularity
from healthquery.utils import set_req_ctx
from healthquery.utils.log import JsonEncoder, JsonFormatter


def make_record(msg="hello", **extra):
    record = logging.LogRecord("test", logging.WARNING, "/app/module.py", 12, msg, None, None, func="handler")
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_one_json_object():
    line = JsonFormatter({"service": "healthquery"}).format(make_record(metric_type="stepCount"))
    document = json.loads(line)

    assert document["level"] == "WARNING"
    assert document["msg"] == "hello"
    assert document["function"] == "handler"
    assert document["metric_type"] == "stepCount"
    assert document["service"] == "healthquery"


def test_formatter_adds_trace_id_from_request_context():
    with set_req_ctx({"trace_id": "abc123"}):
        document = json.loads(JsonFormatter().format(make_record()))
    assert document["trace_id"] == "abc123"

    assert "trace_id" not in json.loads(JsonFormatter().format(make_record()))


def test_encoder_handles_dates_enums_and_sets():
    encoded = json.loads(json.dumps(
        {"at": datetime(2024, 3, 1, tzinfo=timezone.utc), "granularity": Granularity.HOUR, "ids": {"a"}},
        cls=JsonEncoder,
    ))
    assert encoded == {"at": "2024-03-01T00:00:00+00:00", "granularity": "hour", "ids": ["a"]}


def test_formatter_fills_url_and_method_unless_record_has_them():
    with set_req_ctx({"trace_id": "t1", "path": "/health-query/query", "method": "POST"}):
        filled = json.loads(JsonFormatter().format(make_record()))
        explicit = json.loads(JsonFormatter().format(make_record(url="/other")))

    assert filled["url"] == "/health-query/query"
    assert filled["method"] == "POST"
    assert explicit["url"] == "/other"
