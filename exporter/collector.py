from collections.abc import Awaitable, Iterable
import inspect
import logging
from typing import Protocol

from exporter.errors import CollectionError
from exporter.schemas import Metric

logger = logging.getLogger(__name__)


class MetricsCollector(Protocol):
    """Anything a driver can pull a snapshot from."""

    async def collect(self) -> list[Metric]: ...


class MetricCollection(Protocol):
    """A source of metrics registered on the manager. ``collect`` may be async."""

    def collect(self) -> Iterable[Metric] | Awaitable[Iterable[Metric]]: ...


class MetricsManager:
    """Builds snapshots from every registered collection.

    Holds no per-call state, so several drivers may pull concurrently.
    """

    def __init__(self) -> None:
        self._collections: list[MetricCollection] = []

    @property
    def collections(self) -> tuple[MetricCollection, ...]:
        return tuple(self._collections)

    def register_collection(self, collection: MetricCollection) -> None:
        if collection in self._collections:
            logger.debug(
                'Collection already registered',
                extra={'collection': type(collection).__name__},
            )
            return
        self._collections.append(collection)
        logger.info(
            'Collection registered', extra={'collection': type(collection).__name__}
        )

    def unregister_collection(self, collection: MetricCollection) -> None:
        if collection in self._collections:
            self._collections.remove(collection)

    async def collect(self) -> list[Metric]:
        snapshot: list[Metric] = []
        for collection in tuple(self._collections):
            name = type(collection).__name__
            try:
                result = collection.collect()
                if inspect.isawaitable(result):
                    result = await result
                snapshot.extend(result)
            except Exception as e:
                raise CollectionError(f'Collection {name} failed: {e}') from e
        return snapshot
