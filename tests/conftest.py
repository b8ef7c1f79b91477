import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime

import pytest

from exporter.driver import ExportClient
from exporter.errors import BackendError
from exporter.schemas import BackendRecord, Metric

FROZEN_NOW = datetime(2024, 5, 17, 12, 30, 0, tzinfo=UTC)


def frozen_clock() -> datetime:
    return FROZEN_NOW


class FakeCollector:
    """Returns the same snapshot on every pull; fails on the listed pull numbers."""

    def __init__(
        self,
        snapshot: Sequence[Metric] = (),
        fail_on: set[int] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.snapshot = list(snapshot)
        self.fail_on = fail_on or set()
        self.delay = delay
        self.calls = 0
        self.pull_times: list[float] = []

    async def collect(self) -> list[Metric]:
        self.calls += 1
        self.pull_times.append(asyncio.get_running_loop().time())
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.calls in self.fail_on:
            raise RuntimeError(f'collector broke on pull {self.calls}')
        return self.snapshot


class RecordingClient(ExportClient):
    backend = 'fake'

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, list[BackendRecord]]] = []
        self.send_calls = 0
        self.closed = False

    async def send(self, namespace: str, records: Sequence[BackendRecord]) -> None:
        self.send_calls += 1
        if self.fail:
            raise BackendError(self.backend, 'backend unavailable')
        self.sent.append((namespace, list(records)))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()
