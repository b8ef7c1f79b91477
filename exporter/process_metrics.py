import asyncio
import gc
import time

import psutil

from exporter.schemas import CounterMetric, GaugeMetric, Metric


def _asyncio_task_count() -> int | None:
    try:
        return len(asyncio.all_tasks())
    except RuntimeError:
        return None


class ProcessMetrics:
    """Metrics about the exporter process itself."""

    def __init__(self, process: psutil.Process | None = None) -> None:
        self._process = process or psutil.Process()
        self._started = time.monotonic()

    def collect(self) -> list[Metric]:
        with self._process.oneshot():
            cpu = self._process.cpu_times()
            rss = self._process.memory_info().rss
            threads = self._process.num_threads()

        metrics: list[Metric] = [
            GaugeMetric(
                name='process_uptime_seconds', value=time.monotonic() - self._started
            ),
            GaugeMetric(name='process_threads', value=threads),
            GaugeMetric(name='process_resident_memory_bytes', value=rss),
            CounterMetric(
                name='process_cpu_seconds_total', value=cpu.user + cpu.system
            ),
        ]
        for generation, stats in enumerate(gc.get_stats()):
            labels = {'generation': str(generation)}
            metrics.append(
                CounterMetric(
                    name='python_gc_objects_collected_total',
                    labels=labels,
                    value=stats['collected'],
                )
            )
            metrics.append(
                CounterMetric(
                    name='python_gc_collections_total',
                    labels=labels,
                    value=stats['collections'],
                )
            )

        tasks = _asyncio_task_count()
        if tasks is not None:
            metrics.append(GaugeMetric(name='asyncio_tasks', value=tasks))
        return metrics
