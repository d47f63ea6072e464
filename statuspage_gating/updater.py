"""
Metrics updater: the periodic engine.

Each tick builds a fresh snapshot for every configured source. Sources
are processed concurrently and in isolation: a source that fails (or
runs past its timeout) gets a SourceError recorded, the others still
commit. Ticks never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from statuspage_gating import notifier
from statuspage_gating.builder import build_snapshot
from statuspage_gating.client import StatusPageClient
from statuspage_gating.config import SourceRegistry
from statuspage_gating.metrics import MetricsStore
from statuspage_gating.models import GatingSettings, Snapshot, Source, SourceError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Source], StatusPageClient]

ERROR_MESSAGE = "Failed obtaining metrics from source"


def default_client_factory(settings: GatingSettings) -> ClientFactory:
    """Create real HTTP clients honouring the configured request timeout."""

    def factory(source: Source) -> StatusPageClient:
        return StatusPageClient.for_source(source, timeout=settings.request_timeout)

    return factory


class MetricsUpdater:
    """
    Periodically refreshes the MetricsStore from every configured source.

    Attributes:
        registry: The active sources, read afresh at each tick.
        store: Where snapshots and errors are published.
        settings: Global settings (schema, interval, timeouts).
    """

    def __init__(
        self,
        registry: SourceRegistry,
        store: MetricsStore,
        settings: GatingSettings,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.settings = settings
        self._client_factory = client_factory or default_client_factory(settings)
        self._tick_lock = asyncio.Lock()
        self.ticks = 0

    async def start(self) -> None:
        """
        Run ticks forever, waiting ``update_interval`` seconds between the
        end of one tick and the start of the next. Stops when cancelled.
        """
        notifier.print_updater_start(len(self.registry.sources), self.settings.update_interval)
        while True:
            await self.tick()
            await asyncio.sleep(self.settings.update_interval)

    async def tick(self) -> None:
        """Refresh every source once."""
        async with self._tick_lock:
            sources = self.registry.sources
            self.store.retain(s.label for s in sources)
            results = await asyncio.gather(*(self._update_source(s) for s in sources))
            self.ticks += 1

        failed = results.count(False)
        notifier.print_tick_summary(len(sources) - failed, failed)

    async def _update_source(self, source: Source) -> bool:
        """Build and publish one source. Returns False when it failed."""
        try:
            snapshot = await asyncio.wait_for(
                self._build(source), timeout=self.settings.source_timeout
            )
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self._report(source, TimeoutError(
                f"Timed out after {self.settings.source_timeout}s"
            ))
            return False
        except Exception as exc:
            self._report(source, exc)
            return False

        self.store.commit(snapshot)
        if logger.isEnabledFor(logging.DEBUG):
            notifier.print_snapshot(snapshot)
        return True

    async def _build(self, source: Source) -> Snapshot:
        async with self._client_factory(source) as client:
            return await build_snapshot(source, client, self.settings.schema)

    def _report(self, source: Source, cause: BaseException) -> None:
        logger.warning("%s %s", ERROR_MESSAGE, source, exc_info=cause)
        notifier.print_error(source.label, str(cause))
        self.store.report_error(SourceError(source.label, ERROR_MESSAGE, cause))

