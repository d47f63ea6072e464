"""
Main entry point: the GatingService orchestrator.

Wires the source registry, the metrics store and the updater together,
runs the updater loop next to a small read API for the gating engine,
and handles graceful shutdown on Ctrl+C.

Usage:
    python -m statuspage_gating
    statuspage-gating
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional

from aiohttp import web

import statuspage_gating
from statuspage_gating import notifier
from statuspage_gating.config import SourceRegistry, load_config
from statuspage_gating.metrics import MetricsStore
from statuspage_gating.models import GatingSettings
from statuspage_gating.updater import ClientFactory, MetricsUpdater, default_client_factory
from statuspage_gating.validation import check_connection, check_connection_params

logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey("store", MetricsStore)
REGISTRY_KEY = web.AppKey("registry", SourceRegistry)
FACTORY_KEY = web.AppKey("client_factory", object)


# ─── Read API ─────────────────────────────────────────────────


async def _index(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "running",
        "message": "Statuspage gating is active",
        "version": statuspage_gating.__version__,
        "sources": request.app[REGISTRY_KEY].labels,
    })


async def _health(request: web.Request) -> web.Response:
    return web.json_response({"status": "healthy"})


async def _snapshots(request: web.Request) -> web.Response:
    snapshots = request.app[STORE_KEY].get_snapshots()
    return web.json_response({label: snap.to_dict() for label, snap in snapshots.items()})


async def _errors(request: web.Request) -> web.Response:
    errors = request.app[STORE_KEY].get_errors()
    return web.json_response({label: err.to_dict() for label, err in errors.items()})


async def _resources(request: web.Request) -> web.Response:
    statuses = request.app[STORE_KEY].get_status_of_all_resources()
    return web.json_response({rid: status.value for rid, status in statuses.items()})


async def _check(request: web.Request) -> web.Response:
    label = request.match_info["label"]
    source = request.app[REGISTRY_KEY].get(label)
    if source is None:
        raise web.HTTPNotFound(text=f"Unknown source {label!r}")
    result = await check_connection(source, request.app[FACTORY_KEY])
    return web.json_response(result.to_dict(), status=200 if result.ok else 502)


async def _check_params(request: web.Request) -> web.Response:
    """Check an unsaved configuration posted as a form or as JSON."""
    if request.content_type == "application/json":
        try:
            data = await request.json()
        except ValueError:
            raise web.HTTPBadRequest(text="Malformed JSON body")
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(text="Expected a JSON object")
    else:
        data = await request.post()

    result = await check_connection_params(
        data.get("pages") or "",
        data.get("url"),
        data.get("api_key") or None,
        request.app[FACTORY_KEY],
    )
    return web.json_response(result.to_dict(), status=200 if result.ok else 502)


def create_app(
    store: MetricsStore,
    registry: SourceRegistry,
    client_factory: ClientFactory,
) -> web.Application:
    """Build the read API served to the gating engine."""
    app = web.Application()
    app[STORE_KEY] = store
    app[REGISTRY_KEY] = registry
    app[FACTORY_KEY] = client_factory
    app.router.add_get("/", _index)
    app.router.add_get("/health", _health)
    app.router.add_get("/snapshots", _snapshots)
    app.router.add_get("/errors", _errors)
    app.router.add_get("/resources", _resources)
    app.router.add_get("/sources/{label}/check", _check)
    app.router.add_post("/check", _check_params)
    return app


# ─── Orchestrator ─────────────────────────────────────────────


class GatingService:
    """
    Top-level orchestrator.

    Owns the lifecycle of the metrics store, the updater task and the
    read API server.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        settings: GatingSettings,
        store: Optional[MetricsStore] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.store = store or MetricsStore()
        self.client_factory = client_factory or default_client_factory(settings)
        self.updater = MetricsUpdater(registry, self.store, settings, self.client_factory)
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        """Serve the read API and run the updater until cancelled."""
        notifier.print_banner()

        runner = web.AppRunner(create_app(self.store, self.registry, self.client_factory))
        await runner.setup()
        site = web.TCPSite(runner, "0.0.0.0", self.settings.port)
        await site.start()
        notifier.print_serving(self.settings.port)

        self._task = asyncio.create_task(self.updater.start(), name="metrics-updater")
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            await runner.cleanup()

    def shutdown(self) -> None:
        """Cancel the updater; in-flight fetches are abandoned."""
        if self._task is not None:
            self._task.cancel()


def _handle_signals(service: GatingService, loop: asyncio.AbstractEventLoop) -> None:
    """Register signal handlers for graceful shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: _do_shutdown(service))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


def _do_shutdown(service: GatingService) -> None:
    notifier.print_shutdown()
    service.shutdown()


async def async_main(config_path: Optional[str] = None) -> None:
    """Async entry point."""
    sources, settings = load_config(config_path)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    service = GatingService(SourceRegistry(sources), settings)

    _handle_signals(service, asyncio.get_running_loop())
    await service.run()


def main() -> None:
    """Sync entry point."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        asyncio.run(async_main(config_path))
    except KeyboardInterrupt:
        # Signal handler already printed shutdown message
        sys.exit(0)


if __name__ == "__main__":
    main()
