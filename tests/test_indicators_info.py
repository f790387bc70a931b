import pytest

from healthquery.pulse.core import (
    DEFAULT_METRIC_TABLE,
    MetricClassifier,
    MetricInfo,
    MetricKind,
    StandardMetric,
    UnknownMetricType,
    get_all_metrics_info,
)
from healthquery.pulse.core.indicators_info import Categories, build_metric_table


def test_default_table_covers_every_standard_metric():
    assert len(DEFAULT_METRIC_TABLE) == 20
    assert set(DEFAULT_METRIC_TABLE) == {metric.identifier for metric in StandardMetric}


@pytest.mark.parametrize("metric_type", ["stepCount", "activeEnergyBurned", "distanceCycling", "sleepAnalysis"])
def test_cumulative_metrics(metric_type):
    assert MetricClassifier().classify(metric_type) == MetricKind.CUMULATIVE


@pytest.mark.parametrize("metric_type", ["heartRate", "weight", "bloodGlucose", "oxygenSaturation"])
def test_discrete_metrics(metric_type):
    assert MetricClassifier().classify(metric_type) == MetricKind.DISCRETE


def test_unknown_metric_type_raises():
    classifier = MetricClassifier()
    with pytest.raises(UnknownMetricType) as exc_info:
        classifier.classify("moodScore")
    assert exc_info.value.metric_type == "moodScore"
    assert exc_info.value.code == "unknown_metric_type"


def test_unit_for():
    classifier = MetricClassifier()
    assert classifier.unit_for("stepCount") == "count"
    assert classifier.unit_for("heartRate") == "bpm"
    assert classifier.unit_for("moodScore") == ""


def test_table_is_read_only():
    with pytest.raises(TypeError):
        DEFAULT_METRIC_TABLE["moodScore"] = DEFAULT_METRIC_TABLE["stepCount"]


def test_injected_table():
    mood = MetricInfo(name="moodScore", kind=MetricKind.DISCRETE, category=Categories.VITAL_SIGNS.value, standard_unit="pt")
    classifier = MetricClassifier({"moodScore": mood})

    assert classifier.classify("moodScore") == MetricKind.DISCRETE
    assert classifier.metric_types() == ["moodScore"]
    assert not classifier.is_known("stepCount")


def test_duplicate_definitions_rejected():
    info = StandardMetric.STEP_COUNT.value
    with pytest.raises(ValueError):
        build_metric_table([info, info])


def test_get_all_metrics_info():
    info = get_all_metrics_info()
    assert info["stepCount"]["kind"] == "cumulative"
    assert info["heartRate"]["unit"] == "bpm"
    assert len(info) == 20
