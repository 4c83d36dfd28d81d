"""
Data Loader

Resolves the GeoJSON of a source (remote URL, JSON string or object),
normalises polygon winding, builds the source's index and installs it in the
source registry. Parsing, rewinding and index construction run in a thread
pool so the event loop keeps serving tile requests while a source loads.

A load either installs a complete index or raises; on failure the previously
installed index of the source stays in place.
"""

import asyncio
import copy
import functools
import inspect
import json
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import requests
import structlog

from .fetch import fetch_json
from .winding import rewind
from ..indexing.base import TileIndex
from ..indexing.index_builder import IndexBuilder
from ..monitoring.metrics import MetricsCollector
from ..params import SourceParams
from ..retrieval.source_registry import SourceRegistry
from ..utils.config import Config
from ..utils.exceptions import InputError


INVALID_GEOJSON_MESSAGE = "Input data is not a valid GeoJSON object."

GeoJSONResolver = Callable[[SourceParams], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class LoadResult:
    """Outcome of a successful load."""
    source: str
    index: TileIndex
    generation: int
    installed: bool

    @property
    def mode(self) -> str:
        return self.index.mode


class DataLoader:
    """
    Loads GeoJSON sources into a SourceRegistry.

    Loads of different sources run independently. When two loads of the same
    source overlap, the one that started last wins regardless of which
    finishes first.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        builder: Optional[IndexBuilder] = None,
        config: Optional[Config] = None,
        metrics: Optional[MetricsCollector] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        load_geojson: Optional[GeoJSONResolver] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            registry: Registry receiving the built indexes
            builder: Index builder, a default one if omitted
            config: Runtime configuration
            metrics: Metrics collector
            executor: Thread pool for blocking work; one is created (and
                owned) if omitted
            load_geojson: Replacement for the default GeoJSON resolution,
                called with the SourceParams, may be a coroutine function
            session: HTTP session used for ``url`` sources
        """
        self.registry = registry
        self.builder = builder or IndexBuilder()
        self.config = config or Config()
        self.metrics = metrics or MetricsCollector(enabled=False)
        self.session = session

        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="geojson-loader"
        )

        if load_geojson is not None:
            self.load_geojson = load_geojson

        self.logger = structlog.get_logger(component="DataLoader")

    async def _run_blocking(self, func: Callable[..., Any], *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(func, *args))

    async def load(self, params: Union[SourceParams, Mapping[str, Any]]) -> LoadResult:
        """
        Load a source and install its index.

        Args:
            params: Source parameters or a request mapping

        Returns:
            The built index and whether it was installed (False only when a
            newer load of the same source completed first)

        Raises:
            InputError: Missing source, missing or conflicting url/data, or
                data that is not a GeoJSON object
            ConfigError: Invalid index options or aggregates
            CollaboratorError: Fetch or index construction failed
        """
        params = SourceParams.from_dict(params)
        generation = self.registry.begin_load(params.source)
        mode = "cluster" if params.cluster else "tiled"
        log = self.logger.bind(source=params.source, generation=generation, mode=mode)
        start_time = time.perf_counter()

        log.info("Starting source load", from_url=bool(params.url))

        try:
            data = await self._resolve(params)
            if not isinstance(data, dict):
                raise InputError(INVALID_GEOJSON_MESSAGE)
            index = await self._run_blocking(self._index_data, data, params)

        except asyncio.CancelledError:
            self.registry.abandon_load(params.source, generation)
            log.warning("Source load cancelled")
            raise

        except Exception as e:
            self.registry.abandon_load(params.source, generation)
            self.metrics.increment_counter('source_loads_total', labels={'mode': mode, 'status': 'failure'})
            log.error(
                "Source load failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=time.perf_counter() - start_time
            )
            raise

        installed = self.registry.install(params.source, index, generation)
        duration = time.perf_counter() - start_time

        if installed:
            self.metrics.increment_counter('source_loads_total', labels={'mode': mode, 'status': 'success'})
        else:
            self.metrics.increment_counter('stale_loads_total')
            log.warning("Newer load already installed, result discarded")

        self.metrics.record_histogram('source_load_duration_seconds', duration, labels={'mode': mode})
        self.metrics.set_gauge('registered_sources', len(self.registry))

        log.info("Source load completed", installed=installed, duration_seconds=duration)
        return LoadResult(source=params.source, index=index, generation=generation, installed=installed)

    async def _resolve(self, params: SourceParams) -> Any:
        result = self.load_geojson(params)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def load_geojson(self, params: SourceParams) -> Any:
        """
        Fetch or parse the GeoJSON named by ``params``.

        ``url`` is fetched over HTTP; a string ``data`` is parsed as JSON; an
        object ``data`` is used as is (copied, so rewinding never touches the
        caller's object).

        Raises:
            InputError: If neither or both of url/data are given, or the
                string is not valid JSON
            FetchError: If the URL cannot be fetched
        """
        params.validate_data_reference()

        if params.url:
            return await self._run_blocking(fetch_json, params.url, self.config.fetch_timeout, self.session)

        if isinstance(params.data, str):
            try:
                return await self._run_blocking(json.loads, params.data)
            except ValueError as e:
                raise InputError(INVALID_GEOJSON_MESSAGE) from e

        if isinstance(params.data, Mapping):
            return await self._run_blocking(copy.deepcopy, dict(params.data))

        raise InputError(INVALID_GEOJSON_MESSAGE)

    def _index_data(self, data: dict, params: SourceParams) -> TileIndex:
        rewind(data, True)
        return self.builder.build(data, params)

    def close(self) -> None:
        """Shut down the thread pool if this loader created it."""
        if self._owns_executor:
            self.executor.shutdown(wait=False)
