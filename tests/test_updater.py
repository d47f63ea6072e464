"""
Tests for the metrics updater: end-to-end ticks against fake clients,
fault isolation between sources, timeouts and the last-good policy.
"""

import asyncio
import logging

from statuspage_gating.client import FetchError
from statuspage_gating.config import SourceRegistry
from statuspage_gating.metrics import MetricsStore
from statuspage_gating.models import (
    ComponentStatus as S,
    GatingSettings,
    Resource,
    SchemaVersion,
    Source,
)
from statuspage_gating.updater import ERROR_MESSAGE, MetricsUpdater


def _updater(sources, client_factory, **settings):
    settings = GatingSettings(**settings)
    store = MetricsStore()
    return MetricsUpdater(SourceRegistry(sources), store, settings, client_factory), store


def _tick(updater):
    asyncio.run(updater.tick())


# ─── Scenarios ────────────────────────────────────────────────


class TestUpdate:
    def test_two_sources_flat(self, declared_sources, shared_fixture_client):
        updater, store = _updater(
            declared_sources, lambda s: shared_fixture_client, schema=SchemaVersion.FLAT
        )
        _tick(updater)

        snapshots = store.get_snapshots()
        assert set(snapshots) == {"one", "Second One"}
        assert dict(snapshots["one"].resources) == {
            "one/Component #1": Resource("one/Component #1", S.OPERATIONAL, "Some desc"),
        }
        assert snapshots["Second One"].statuses == {
            "Second One/down-component": S.MAJOR_OUTAGE,
            "Second One/some-other-component": S.DEGRADED_PERFORMANCE,
            "Second One/Squirrel": S.MAJOR_OUTAGE,
        }
        assert len(store.get_status_of_all_resources()) == 4
        assert store.get_errors() == {}

    def test_two_sources_grouped(self, declared_sources, shared_fixture_client):
        updater, store = _updater(declared_sources, lambda s: shared_fixture_client)
        _tick(updater)

        assert store.get_status_of_all_resources() == {
            "one/oneName/Component #1": S.OPERATIONAL,
            "Second One/twoName/down-component": S.MAJOR_OUTAGE,
            "Second One/twoName/some-other-component": S.DEGRADED_PERFORMANCE,
            "Second One/twoName/Squirrel": S.MAJOR_OUTAGE,
        }

    def test_remote_failure(self, declared_sources, fake_client_cls, caplog):
        client = fake_client_cls(error=IOError("Can't do"))
        updater, store = _updater(declared_sources, lambda s: client)

        with caplog.at_level(logging.WARNING, logger="statuspage_gating.updater"):
            _tick(updater)

        assert store.get_status_of_all_resources() == {}
        errors = store.get_errors()
        assert set(errors) == {"one", "Second One"}
        assert errors["one"].cause_message == "Can't do"
        assert errors["Second One"].cause_message == "Can't do"
        assert errors["one"].message == ERROR_MESSAGE
        assert ERROR_MESSAGE in caplog.text

    def test_repeated_ticks_are_idempotent(self, declared_sources, shared_fixture_client):
        updater, store = _updater(declared_sources, lambda s: shared_fixture_client)
        _tick(updater)
        first = store.get_snapshots()
        _tick(updater)
        second = store.get_snapshots()
        assert first == second
        assert first["one"] is not second["one"]
        assert updater.ticks == 2


# ─── Isolation ────────────────────────────────────────────────


class TestFaultIsolation:
    def test_one_failing_source(self, declared_sources, fake_client_cls, shared_fixture_client):
        broken = fake_client_cls(error=FetchError("u", "Status code 503 accessing u", 503))
        factory = {"one": broken, "Second One": shared_fixture_client}

        updater, store = _updater(declared_sources, lambda s: factory[s.label])
        _tick(updater)

        assert list(store.get_errors()) == ["one"]
        assert list(store.get_snapshots()) == ["Second One"]

    def test_unexpected_exception_is_contained(self, declared_sources, shared_fixture_client):
        def factory(source):
            if source.label == "one":
                raise RuntimeError("factory blew up")
            return shared_fixture_client

        updater, store = _updater(declared_sources, factory)
        _tick(updater)

        assert store.get_errors()["one"].cause_message == "factory blew up"
        assert "Second One" in store.get_snapshots()

    def test_failed_tick_keeps_last_good(self, declared_sources, shared_fixture_client):
        client = shared_fixture_client
        updater, store = _updater(declared_sources, lambda s: client)
        _tick(updater)
        before = store.get_status_of_all_resources()

        client.error = IOError("Can't do")
        _tick(updater)

        assert store.get_status_of_all_resources() == before
        assert set(store.get_errors()) == {"one", "Second One"}

    def test_recovery_clears_error(self, declared_sources, shared_fixture_client):
        client = shared_fixture_client
        client.error = IOError("Can't do")
        updater, store = _updater(declared_sources, lambda s: client)
        _tick(updater)
        assert len(store.get_errors()) == 2

        client.error = None
        _tick(updater)
        assert store.get_errors() == {}
        assert len(store.get_status_of_all_resources()) == 4


# ─── Resources and timing ─────────────────────────────────────


class TestResources:
    def test_clients_closed(self, declared_sources, fake_client_cls):
        ok = fake_client_cls()
        broken = fake_client_cls(error=IOError("Can't do"))
        clients = {"one": ok, "Second One": broken}

        updater, _ = _updater(declared_sources, lambda s: clients[s.label])
        _tick(updater)

        assert (ok.entered, ok.closed) == (1, 1)
        assert (broken.entered, broken.closed) == (1, 1)

    def test_slow_source_times_out(self, declared_sources, fake_client_cls, shared_fixture_client):
        slow = fake_client_cls(pages=shared_fixture_client.pages, delay=5)
        clients = {"one": slow, "Second One": shared_fixture_client}

        updater, store = _updater(
            declared_sources, lambda s: clients[s.label], source_timeout=0.05
        )
        _tick(updater)

        assert "Timed out" in store.get_errors()["one"].cause_message
        assert slow.closed == 1
        assert "Second One" in store.get_snapshots()

    def test_ticks_do_not_overlap(self, fake_client_cls, shared_fixture_client):
        client = fake_client_cls(pages=shared_fixture_client.pages, delay=0.01)
        updater, store = _updater([Source("one", ("oneName",))], lambda s: client)

        async def two_ticks():
            await asyncio.gather(updater.tick(), updater.tick())

        asyncio.run(two_ticks())
        assert client.max_active == 1
        assert updater.ticks == 2

    def test_removed_source_is_forgotten(self, declared_sources, shared_fixture_client):
        updater, store = _updater(declared_sources, lambda s: shared_fixture_client)
        _tick(updater)

        updater.registry.replace([declared_sources[1]])
        _tick(updater)

        assert list(store.get_snapshots()) == ["Second One"]

    def test_start_loops_until_cancelled(self, declared_sources, shared_fixture_client):
        updater, store = _updater(
            declared_sources, lambda s: shared_fixture_client, update_interval=0.01
        )

        async def run_briefly():
            task = asyncio.create_task(updater.start())
            await asyncio.sleep(0.1)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        asyncio.run(run_briefly())
        assert updater.ticks >= 2
        assert len(store.get_snapshots()) == 2

    def test_cancel_mid_fetch(self, declared_sources, fake_client_cls, shared_fixture_client):
        client = fake_client_cls(pages=shared_fixture_client.pages, delay=5)
        updater, store = _updater(declared_sources, lambda s: client)

        async def cancel_while_fetching():
            task = asyncio.create_task(updater.start())
            while client.entered < 2:
                await asyncio.sleep(0.01)
            loop = asyncio.get_running_loop()
            started = loop.time()
            task.cancel()
            try:
                await asyncio.wait_for(task, 1)
            except asyncio.CancelledError:
                pass
            return loop.time() - started

        elapsed = asyncio.run(cancel_while_fetching())
        assert elapsed < 1
        assert client.closed == 2
        assert client.active == 0
        assert store.get_snapshots() == {}
        assert store.get_errors() == {}
