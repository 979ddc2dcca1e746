"""
Tests for health checks and the Prometheus exposition
"""

import pytest

from database.database import MemoryBlobStore
from errors.exceptions import NetworkError, StorageError
from monitoring.health import HealthStatus, SyncHealthMonitor
from network.rate_limiter import RateLimiter
from network.read_client import ReadCallClient
from wallet.transaction_tracker import TransactionKind, TransactionTracker

from conftest import FakeTransport


class BrokenStore(MemoryBlobStore):
    async def set_item(self, key, value):
        raise StorageError("read-only filesystem")


def make_monitor(clock, store=None, transport=None, tracker=None, max_requests=40):
    limiter = RateLimiter(max_requests=max_requests, clock=clock, sleep=clock.sleep)
    client = None
    if transport is not None:
        client = ReadCallClient(transport, limiter, "ST1VQMZKSFRW25H34XQS2KVDQ3FQEBFPWC2XM0ZYC", "Sonichain")
    return SyncHealthMonitor(store or MemoryBlobStore(), limiter, client=client, tracker=tracker)


@pytest.mark.asyncio
async def test_all_healthy(clock):
    monitor = make_monitor(clock, transport=FakeTransport({"get-story-counter": 2}))

    health = await monitor.get_health_status()

    assert set(health) == {"storage", "rate_limiter", "network"}
    assert all(c.status == HealthStatus.HEALTHY for c in health.values())
    assert monitor.get_overall_health() == HealthStatus.HEALTHY


@pytest.mark.asyncio
async def test_storage_probe_is_cleaned_up(clock):
    store = MemoryBlobStore()
    monitor = make_monitor(clock, store=store)
    result = await monitor.check_storage_health()
    assert result.status == HealthStatus.HEALTHY
    assert store.data == {}


@pytest.mark.asyncio
async def test_storage_failure(clock):
    monitor = make_monitor(clock, store=BrokenStore())
    result = await monitor.check_storage_health()
    assert result.status == HealthStatus.UNHEALTHY
    assert "read-only filesystem" in result.message


@pytest.mark.asyncio
async def test_network_failure_makes_overall_unhealthy(clock):
    transport = FakeTransport({"get-story-counter": NetworkError("Cannot connect to host")})
    monitor = make_monitor(clock, transport=transport)

    health = await monitor.get_health_status()

    assert health["network"].status == HealthStatus.UNHEALTHY
    assert monitor.get_overall_health() == HealthStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_missing_client(clock):
    monitor = make_monitor(clock)
    assert (await monitor.check_network_health()).status == HealthStatus.UNHEALTHY


@pytest.mark.asyncio
async def test_exhausted_window_is_degraded(clock):
    transport = FakeTransport({"get-story-counter": 1})
    monitor = make_monitor(clock, transport=transport, max_requests=1)
    await monitor.client.call("get-story-counter")

    health = await monitor.get_health_status(include_network=False)

    assert health["rate_limiter"].status == HealthStatus.DEGRADED
    assert monitor.get_overall_health() == HealthStatus.DEGRADED


@pytest.mark.asyncio
async def test_summary_and_metrics(store, clock):
    tracker = TransactionTracker(store, clock=clock)
    await tracker.record("0x1", TransactionKind.VOTE)
    monitor = make_monitor(clock, store=store, tracker=tracker)

    assert monitor.get_overall_health() == HealthStatus.UNHEALTHY
    await monitor.get_health_status(include_network=False)
    summary = monitor.get_health_summary()

    assert summary["status"] == "healthy"
    assert summary["pending_transactions"] == 1
    assert set(summary["components"]) == {"storage", "rate_limiter"}

    body, content_type = monitor.metrics_text()
    assert b"sonichain_pending_transactions 1.0" in body
    assert b"sonichain_health_check_status" in body
    assert content_type.startswith("text/plain")
