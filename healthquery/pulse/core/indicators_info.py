"""
Health Metric Definitions

Static classification table for every queryable metric type: how its records
reduce over a period (sum or average) and which unit the reduced value is
reported in. The table is built once at import time and is read-only.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .constants import MetricKind
from .errors import UnknownMetricType


# ============================================================================
# CORE ENUMS AND DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class CategoryInfo:
    """Category information"""
    name: str


@dataclass(frozen=True)
class MetricInfo:
    """Metric information"""
    name: str  # lowerCamelCase sample name, e.g. "stepCount"
    kind: MetricKind
    category: CategoryInfo
    standard_unit: str = ""
    description: str = ""


class Categories(Enum):
    """Health metric categories"""

    VITAL_SIGNS = CategoryInfo(name="Vital Signs")
    BODY_COMPOSITION = CategoryInfo(name="Body Composition")
    ACTIVITY = CategoryInfo(name="Activity Metrics")
    METABOLIC = CategoryInfo(name="Metabolic Metrics")
    SLEEP = CategoryInfo(name="Sleep Metrics")


class StandardMetric(Enum):
    """Every metric type the query engine knows how to reduce"""

    # ------------------------------------------------------------------
    # Cumulative: summed per bucket
    # ------------------------------------------------------------------

    STEP_COUNT = MetricInfo(
        name="stepCount",
        kind=MetricKind.CUMULATIVE,
        category=Categories.ACTIVITY.value,
        standard_unit="count",
        description="Walking step count",
    )
    FLIGHTS_CLIMBED = MetricInfo(
        name="flightsClimbed",
        kind=MetricKind.CUMULATIVE,
        category=Categories.ACTIVITY.value,
        standard_unit="count",
        description="Floors climbed",
    )
    APPLE_EXERCISE_TIME = MetricInfo(
        name="appleExerciseTime",
        kind=MetricKind.CUMULATIVE,
        category=Categories.ACTIVITY.value,
        standard_unit="min",
        description="Minutes of brisk activity",
    )
    ACTIVE_ENERGY_BURNED = MetricInfo(
        name="activeEnergyBurned",
        kind=MetricKind.CUMULATIVE,
        category=Categories.METABOLIC.value,
        standard_unit="kcal",
        description="Energy burned through activity",
    )
    BASAL_ENERGY_BURNED = MetricInfo(
        name="basalEnergyBurned",
        kind=MetricKind.CUMULATIVE,
        category=Categories.METABOLIC.value,
        standard_unit="kcal",
        description="Resting energy expenditure",
    )
    DISTANCE_WALKING_RUNNING = MetricInfo(
        name="distanceWalkingRunning",
        kind=MetricKind.CUMULATIVE,
        category=Categories.ACTIVITY.value,
        standard_unit="m",
        description="Distance covered on foot",
    )
    DISTANCE_CYCLING = MetricInfo(
        name="distanceCycling",
        kind=MetricKind.CUMULATIVE,
        category=Categories.ACTIVITY.value,
        standard_unit="m",
        description="Distance covered by bicycle",
    )
    SLEEP_ANALYSIS = MetricInfo(
        name="sleepAnalysis",
        kind=MetricKind.CUMULATIVE,
        category=Categories.SLEEP.value,
        standard_unit="min",
        description="Time spent in a sleep state",
    )
    WORKOUT_TYPE = MetricInfo(
        name="workoutType",
        kind=MetricKind.CUMULATIVE,
        category=Categories.ACTIVITY.value,
        standard_unit="min",
        description="Workout duration",
    )

    # ------------------------------------------------------------------
    # Discrete: averaged per bucket
    # ------------------------------------------------------------------

    BLOOD_GLUCOSE = MetricInfo(
        name="bloodGlucose",
        kind=MetricKind.DISCRETE,
        category=Categories.METABOLIC.value,
        standard_unit="mg/dL",
    )
    WEIGHT = MetricInfo(
        name="weight",
        kind=MetricKind.DISCRETE,
        category=Categories.BODY_COMPOSITION.value,
        standard_unit="kg",
    )
    HEART_RATE = MetricInfo(
        name="heartRate",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="bpm",
        description="Number of heartbeats per minute",
    )
    RESTING_HEART_RATE = MetricInfo(
        name="restingHeartRate",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="bpm",
        description="Heart rate at rest",
    )
    RESPIRATORY_RATE = MetricInfo(
        name="respiratoryRate",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="breaths/min",
    )
    BODY_FAT = MetricInfo(
        name="bodyFat",
        kind=MetricKind.DISCRETE,
        category=Categories.BODY_COMPOSITION.value,
        standard_unit="%",
    )
    OXYGEN_SATURATION = MetricInfo(
        name="oxygenSaturation",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="%",
    )
    BASAL_BODY_TEMPERATURE = MetricInfo(
        name="basalBodyTemperature",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="°C",
    )
    BODY_TEMPERATURE = MetricInfo(
        name="bodyTemperature",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="°C",
    )
    BLOOD_PRESSURE_SYSTOLIC = MetricInfo(
        name="bloodPressureSystolic",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="mmHg",
    )
    BLOOD_PRESSURE_DIASTOLIC = MetricInfo(
        name="bloodPressureDiastolic",
        kind=MetricKind.DISCRETE,
        category=Categories.VITAL_SIGNS.value,
        standard_unit="mmHg",
    )

    @property
    def identifier(self) -> str:
        return self.value.name


# ============================================================================
# CLASSIFICATION TABLE
# ============================================================================

def build_metric_table(metrics: Iterable[MetricInfo]) -> Mapping[str, MetricInfo]:
    """Freeze metric definitions into a read-only name -> MetricInfo mapping"""
    table: Dict[str, MetricInfo] = {}
    for info in metrics:
        if info.name in table:
            raise ValueError(f"Duplicate metric type: {info.name}")
        table[info.name] = info
    return MappingProxyType(table)


DEFAULT_METRIC_TABLE: Mapping[str, MetricInfo] = build_metric_table(
    metric.value for metric in StandardMetric
)


class MetricClassifier:
    """
    Maps a metric type to its reduction kind and display unit.

    The table is passed in rather than read from module state, so tests and
    deployments can inject their own.
    """

    def __init__(self, table: Optional[Mapping[str, MetricInfo]] = None):
        if table is None:
            self._table = DEFAULT_METRIC_TABLE
        elif isinstance(table, MappingProxyType):
            self._table = table
        else:
            self._table = build_metric_table(table.values())

    def classify(self, metric_type: str) -> MetricKind:
        return self.get_info(metric_type).kind

    def unit_for(self, metric_type: str) -> str:
        """Unit is informational only, so an undocumented type yields ''"""
        info = self._table.get(metric_type)
        if info is None:
            logging.debug(f"No unit documented for metric type {metric_type!r}")
            return ""
        return info.standard_unit

    def get_info(self, metric_type: str) -> MetricInfo:
        info = self._table.get(metric_type) if isinstance(metric_type, str) else None
        if info is None:
            raise UnknownMetricType(metric_type)
        return info

    def is_known(self, metric_type: str) -> bool:
        return isinstance(metric_type, str) and metric_type in self._table

    def metric_types(self) -> List[str]:
        return list(self._table.keys())


def get_all_metrics_info(classifier: Optional[MetricClassifier] = None) -> Dict[str, Any]:
    """
    Get all metric information (for clients listing supported sample names)

    Returns:
        Dictionary keyed by metric type
    """
    classifier = classifier or MetricClassifier()
    result = {}
    for metric_type in classifier.metric_types():
        info = classifier.get_info(metric_type)
        result[metric_type] = {
            "kind": info.kind.value,
            "unit": info.standard_unit,
            "category": info.category.name,
            "description": info.description,
        }
    return result
