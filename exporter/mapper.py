from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime
import logging
import math

from exporter.schemas import BackendRecord, HistogramMetric, Metric, MetricKind

logger = logging.getLogger(__name__)

Dimensions = tuple[tuple[str, str], ...]
MappingRule = Callable[[Metric, Dimensions, datetime], list[BackendRecord]]
# Kinds missing from a table are not supported by that backend and get dropped.
CapabilityTable = Mapping[str, MappingRule]


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def format_bound(bound: float) -> str:
    if bound == float('inf'):
        return '+Inf'
    if bound == float('-inf'):
        return '-Inf'
    if bound.is_integer() and abs(bound) < 1e21:
        return str(int(bound))
    return repr(bound)


def scalar(
    metric: Metric, dimensions: Dimensions, timestamp: datetime
) -> list[BackendRecord]:
    value = getattr(metric, 'value', None)
    if value is None:
        logger.debug(
            'Scalar metric without value dropped',
            extra={'metric_name': metric.name, 'kind': metric.kind},
        )
        return []
    return [
        BackendRecord(
            metric_name=metric.name,
            numeric_value=float(value),
            dimensions=dimensions,
            timestamp=timestamp,
            kind=metric.kind,
        )
    ]


def finite_scalar(
    metric: Metric, dimensions: Dimensions, timestamp: datetime
) -> list[BackendRecord]:
    """Like ``scalar``, but drops NaN and infinite values the backend rejects."""
    records = scalar(metric, dimensions, timestamp)
    if records and not math.isfinite(records[0].numeric_value):
        logger.debug(
            'Non-finite value dropped',
            extra={'metric_name': metric.name, 'value': records[0].numeric_value},
        )
        return []
    return records


def histogram_buckets(
    metric: Metric, dimensions: Dimensions, timestamp: datetime
) -> list[BackendRecord]:
    """Expand a histogram into cumulative bucket, count and sum records.

    Every bucket becomes ``<name>_bucket`` with an extra ``le`` dimension
    holding the upper bound, followed by ``<name>_count`` and ``<name>_sum``.
    """
    if not isinstance(metric, HistogramMetric):
        return []
    records = [
        BackendRecord(
            metric_name=f'{metric.name}_bucket',
            numeric_value=float(bucket.cumulative_count),
            dimensions=(*dimensions, ('le', format_bound(bucket.upper_bound))),
            timestamp=timestamp,
            kind=MetricKind.COUNTER,
        )
        for bucket in metric.buckets
    ]
    records.append(
        BackendRecord(
            metric_name=f'{metric.name}_count',
            numeric_value=float(metric.sample_count),
            dimensions=dimensions,
            timestamp=timestamp,
            kind=MetricKind.COUNTER,
        )
    )
    records.append(
        BackendRecord(
            metric_name=f'{metric.name}_sum',
            numeric_value=metric.sample_sum,
            dimensions=dimensions,
            timestamp=timestamp,
            kind=MetricKind.COUNTER,
        )
    )
    return records


class PayloadMapper:
    def __init__(
        self,
        capabilities: CapabilityTable,
        base_dimensions: Iterable[tuple[str, str]] = (),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.capabilities = capabilities
        self.base_dimensions: Dimensions = tuple(base_dimensions)
        self._clock = clock

    def supports(self, kind: str) -> bool:
        return kind in self.capabilities

    def map_metric(
        self, metric: Metric, timestamp: datetime | None = None
    ) -> list[BackendRecord]:
        rule = self.capabilities.get(metric.kind)
        if rule is None:
            logger.debug(
                'Unsupported metric kind dropped',
                extra={'metric_name': metric.name, 'kind': metric.kind},
            )
            return []
        dimensions = (*self.base_dimensions, *metric.labels.items())
        return rule(metric, dimensions, timestamp or self._clock())

    def map_snapshot(self, snapshot: Sequence[Metric]) -> list[BackendRecord]:
        timestamp = self._clock()
        records: list[BackendRecord] = []
        for metric in snapshot:
            records.extend(self.map_metric(metric, timestamp))
        return records
