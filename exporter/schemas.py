from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class MetricKind(str, Enum):
    COUNTER = 'counter'
    GAUGE = 'gauge'
    HISTOGRAM = 'histogram'


class Metric(BaseModel):
    """Common shape of every measurement a collector emits.

    ``kind`` is an open string so collectors may emit kinds the exporter does
    not know yet. Mappers drop those instead of failing.
    """

    model_config = {'frozen': True}

    name: str = Field(min_length=1)
    labels: dict[str, str] = Field(default_factory=dict)
    kind: str


class CounterMetric(Metric):
    kind: Literal[MetricKind.COUNTER] = MetricKind.COUNTER
    value: float


class GaugeMetric(Metric):
    kind: Literal[MetricKind.GAUGE] = MetricKind.GAUGE
    value: float


class Bucket(BaseModel):
    model_config = {'frozen': True}

    upper_bound: float
    cumulative_count: int


class HistogramMetric(Metric):
    kind: Literal[MetricKind.HISTOGRAM] = MetricKind.HISTOGRAM
    sample_count: int
    sample_sum: float
    buckets: tuple[Bucket, ...] = ()


Snapshot = Sequence[Metric]


class BackendRecord(BaseModel):
    model_config = {'frozen': True}

    metric_name: str
    numeric_value: float
    dimensions: tuple[tuple[str, str], ...]
    timestamp: datetime
    kind: str
