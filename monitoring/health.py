"""
Health monitoring for the ledger sync core
"""

import asyncio
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from config.config import CONTRACT_ADDRESS, CONTRACT_NAME, FN_GET_STORY_COUNTER, NETWORK
from log_utils import get_logger
from monitoring.metrics import health_check_status, sync_info

logger = get_logger(__name__)

HEALTH_PROBE_KEY = "@sonichain_health_probe"
SLOW_STORAGE_SECONDS = 1.0
SLOW_NETWORK_SECONDS = 5.0
LONG_QUEUE = 20


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


STATUS_VALUES = {
    HealthStatus.HEALTHY: 1.0,
    HealthStatus.DEGRADED: 0.5,
    HealthStatus.UNHEALTHY: 0.0,
}


@dataclass
class ComponentHealth:
    status: HealthStatus
    message: str
    last_check: float
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "last_check": self.last_check,
            "details": self.details,
        }


def _result(component: str, status: HealthStatus, message: str, details=None) -> ComponentHealth:
    health_check_status.labels(component=component).set(STATUS_VALUES[status])
    return ComponentHealth(status=status, message=message, last_check=time.time(), details=details)


class SyncHealthMonitor:
    """Health of the blob store, the shared limiter and the ledger API"""

    def __init__(self, store, rate_limiter, client=None, tracker=None):
        self.store = store
        self.rate_limiter = rate_limiter
        self.client = client
        self.tracker = tracker
        self.components: Dict[str, ComponentHealth] = {}
        self.start_time = time.time()
        sync_info.info({
            'contract': f"{CONTRACT_ADDRESS}.{CONTRACT_NAME}",
            'network': NETWORK,
            'host': os.environ.get('HOSTNAME', 'unknown'),
        })

    async def check_storage_health(self) -> ComponentHealth:
        """Round-trip a probe value through the blob store"""
        try:
            start_time = time.time()
            probe = str(start_time)
            await self.store.set_item(HEALTH_PROBE_KEY, probe)
            read_back = await self.store.get_item(HEALTH_PROBE_KEY)
            await self.store.remove_item(HEALTH_PROBE_KEY)
            duration = time.time() - start_time

            if read_back != probe:
                return _result('storage', HealthStatus.UNHEALTHY, "Storage returned stale data")
            if duration > SLOW_STORAGE_SECONDS:
                return _result(
                    'storage', HealthStatus.DEGRADED, f"Storage slow: {duration:.2f}s",
                    {"response_time": duration},
                )
            return _result('storage', HealthStatus.HEALTHY, "Storage operational", {"response_time": duration})

        except Exception as e:
            logger.error(f"Storage health check failed: {str(e)}")
            return _result('storage', HealthStatus.UNHEALTHY, f"Storage error: {str(e)}")

    async def check_rate_limiter_health(self) -> ComponentHealth:
        status = self.rate_limiter.get_status()
        if status["queue_length"] > LONG_QUEUE:
            return _result(
                'rate_limiter', HealthStatus.DEGRADED,
                f"Long request queue: {status['queue_length']} waiting", status,
            )
        if not status["can_make_request"]:
            return _result('rate_limiter', HealthStatus.DEGRADED, "Request window exhausted", status)
        return _result('rate_limiter', HealthStatus.HEALTHY, "Request budget available", status)

    async def check_network_health(self) -> ComponentHealth:
        """One read-only call through the shared limiter"""
        if self.client is None:
            return _result('network', HealthStatus.UNHEALTHY, "Read client not available")
        try:
            start_time = time.time()
            await self.client.call(FN_GET_STORY_COUNTER)
            duration = time.time() - start_time
            if duration > SLOW_NETWORK_SECONDS:
                return _result(
                    'network', HealthStatus.DEGRADED, f"Ledger API slow: {duration:.2f}s",
                    {"response_time": duration},
                )
            return _result('network', HealthStatus.HEALTHY, "Ledger API reachable", {"response_time": duration})
        except Exception as e:
            logger.error(f"Network health check failed: {str(e)}")
            return _result('network', HealthStatus.UNHEALTHY, f"Network error: {str(e)}")

    async def get_health_status(self, include_network: bool = True) -> Dict[str, ComponentHealth]:
        """Run all health checks"""
        checks = {
            "storage": self.check_storage_health(),
            "rate_limiter": self.check_rate_limiter_health(),
        }
        if include_network:
            checks["network"] = self.check_network_health()

        results = await asyncio.gather(*checks.values(), return_exceptions=True)

        health = {}
        for component, result in zip(checks.keys(), results):
            if isinstance(result, Exception):
                health[component] = _result(
                    component, HealthStatus.UNHEALTHY, f"Health check failed: {str(result)}"
                )
            else:
                health[component] = result

        self.components = health
        return health

    def get_overall_health(self) -> HealthStatus:
        """Worst status across the last round of checks; unhealthy before any check has run"""
        if not self.components:
            return HealthStatus.UNHEALTHY
        return min((c.status for c in self.components.values()), key=STATUS_VALUES.get)

    def get_health_summary(self) -> Dict[str, Any]:
        now = time.time()
        summary = {
            "status": self.get_overall_health().value,
            "uptime": now - self.start_time,
            "timestamp": now,
            "components": {name: comp.to_dict() for name, comp in self.components.items()},
        }
        if self.tracker is not None:
            summary["pending_transactions"] = len(self.tracker.pending())
        return summary

    def metrics_text(self) -> tuple[bytes, str]:
        """Prometheus exposition of every registered metric"""
        return generate_latest(), CONTENT_TYPE_LATEST
