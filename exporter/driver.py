from abc import ABC, abstractmethod
import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime
from enum import Enum
import logging

from pydantic import BaseModel

from exporter.batching import chunked
from exporter.collector import MetricsCollector
from exporter.errors import CollectionError
from exporter.mapper import PayloadMapper
from exporter.schemas import BackendRecord, Metric

logger = logging.getLogger(__name__)


class DriverState(str, Enum):
    CREATED = 'created'
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


class DriverStatus(BaseModel):
    driver: str
    state: DriverState
    cycles: int
    failed_cycles: int
    consecutive_failures: int
    last_success: datetime | None


class ExportClient(ABC):
    """Write side of one backend. One ``send`` is exactly one backend call."""

    backend: str

    @abstractmethod
    async def send(self, namespace: str, records: Sequence[BackendRecord]) -> None:
        """Write one chunk. Failures are raised as ``BackendError``, never retried."""

    async def close(self) -> None:
        return None


class MetricsDriver(ABC):
    name: str

    @property
    @abstractmethod
    def state(self) -> DriverState: ...

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    def status(self) -> DriverStatus: ...


def remaining_delay(interval: float, elapsed: float) -> float:
    return max(0.0, interval - elapsed)


class PeriodicExportDriver(MetricsDriver):
    """Pushes collector snapshots to one backend on a fixed interval.

    Each cycle pulls a snapshot, maps it to backend records, splits the
    records into chunks and sends them one by one. A failing cycle is logged
    and abandoned; the next cycle starts on schedule regardless. The interval
    is measured from the start of one pull to the start of the next.

    ``close`` lets the current cycle finish for up to ``shutdown_timeout``
    seconds and cancels the loop after that. Concurrent callers all wait on
    the same shutdown and return once the driver is stopped.
    """

    def __init__(
        self,
        name: str,
        collector: MetricsCollector,
        mapper: PayloadMapper,
        client: ExportClient,
        namespace: str,
        interval_seconds: float,
        max_chunk_size: int,
        shutdown_timeout: float = 10.0,
        failure_warning_threshold: int = 5,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(
                f'interval_seconds must be positive, got {interval_seconds}'
            )
        self.name = name
        self.collector = collector
        self.mapper = mapper
        self.client = client
        self.namespace = namespace
        self.interval_seconds = interval_seconds
        self.max_chunk_size = max_chunk_size
        self.shutdown_timeout = shutdown_timeout
        self.failure_warning_threshold = failure_warning_threshold

        self._state = DriverState.CREATED
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._closing: asyncio.Task[None] | None = None

        self._cycles = 0
        self._failed_cycles = 0
        self._consecutive_failures = 0
        self._last_success: datetime | None = None

    @property
    def state(self) -> DriverState:
        return self._state

    def status(self) -> DriverStatus:
        return DriverStatus(
            driver=self.name,
            state=self._state,
            cycles=self._cycles,
            failed_cycles=self._failed_cycles,
            consecutive_failures=self._consecutive_failures,
            last_success=self._last_success,
        )

    def initialize(self) -> None:
        if self._state is not DriverState.CREATED:
            raise RuntimeError(
                f'Driver {self.name} cannot be initialized while {self._state.value}'
            )
        self._task = asyncio.create_task(self._run(), name=f'{self.name}-export-loop')
        self._state = DriverState.RUNNING

    async def close(self) -> None:
        if self._closing is None:
            self._state = DriverState.STOPPING
            self._stop_event.set()
            self._closing = asyncio.create_task(
                self._shutdown(), name=f'{self.name}-shutdown'
            )
        await asyncio.shield(self._closing)

    async def _shutdown(self) -> None:
        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=self.shutdown_timeout)
            except TimeoutError:
                logger.warning(
                    'Export loop did not stop in time, cancelling...',
                    extra={'driver': self.name, 'timeout': self.shutdown_timeout},
                )
                self._task.cancel()
                await asyncio.gather(self._task, return_exceptions=True)

        try:
            await self.client.close()
        except Exception:
            logger.exception(
                'Failed to close export client', extra={'driver': self.name}
            )

        self._state = DriverState.STOPPED
        logger.info(
            f'Driver {self.name} stopped after {self._cycles} export cycles',
            extra={'driver': self.name, 'failed_cycles': self._failed_cycles},
        )

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        logger.info(
            'Export loop started',
            extra={'driver': self.name, 'interval_seconds': self.interval_seconds},
        )
        try:
            while not self._stop_event.is_set():
                started = loop.time()
                await self.run_cycle()
                await self._sleep(
                    remaining_delay(self.interval_seconds, loop.time() - started)
                )
        except asyncio.CancelledError:
            logger.info('Export loop cancelled', extra={'driver': self.name})
            raise

    async def _sleep(self, delay: float) -> None:
        if delay <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass

    async def run_cycle(self) -> bool:
        """Run one pull, map, batch and send pass. Returns whether it succeeded."""
        self._cycles += 1
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            snapshot = await self._pull()
            records = self.mapper.map_snapshot(snapshot)
            chunks = chunked(records, self.max_chunk_size)
            for chunk in chunks:
                await self.client.send(self.namespace, chunk)
        except Exception as e:
            self._record_failure(e)
            return False

        self._consecutive_failures = 0
        self._last_success = datetime.now(UTC)
        logger.debug(
            'Export cycle completed',
            extra={
                'driver': self.name,
                'cycle': self._cycles,
                'metrics': len(snapshot),
                'records': len(records),
                'chunks': len(chunks),
                'elapsed_seconds': round(loop.time() - started, 3),
            },
        )
        return True

    async def _pull(self) -> list[Metric]:
        try:
            return list(await self.collector.collect())
        except CollectionError:
            raise
        except Exception as e:
            raise CollectionError(str(e)) from e

    def _record_failure(self, error: Exception) -> None:
        self._failed_cycles += 1
        self._consecutive_failures += 1
        logger.exception(
            f'An error occurred whilst exporting metrics with {self.name}',
            extra={
                'driver': self.name,
                'cycle': self._cycles,
                'error_type': type(error).__name__,
                'error': str(error),
            },
        )
        if self._consecutive_failures == self.failure_warning_threshold:
            logger.warning(
                'Export keeps failing',
                extra={
                    'driver': self.name,
                    'consecutive_failures': self._consecutive_failures,
                },
            )
