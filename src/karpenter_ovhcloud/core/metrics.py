# src/karpenter_ovhcloud/core/metrics.py
"""
Metrics sink injected into the clients and the orchestrator.

The core only ever writes metrics. The default sink discards everything, so
components can be built without an exporter and tests get isolated state.
The process-wide sink records through OpenTelemetry (see `core.telemetry`).
"""

import threading
from collections import Counter
from typing import Dict


class MetricsSink:
    """No-op sink. Every method is a write-only hook."""

    def record_node_provisioning(self, flavor: str, zone: str, status: str) -> None:
        pass

    def record_node_provisioning_duration(self, flavor: str, zone: str, seconds: float) -> None:
        pass

    def record_node_deletion(self, status: str) -> None:
        pass

    def record_node_deletion_duration(self, seconds: float) -> None:
        pass

    def record_pool_operation(self, operation: str, status: str) -> None:
        pass

    def set_pools_active(self, count: int) -> None:
        pass

    def record_api_retry(self, operation: str) -> None:
        pass

    def set_instance_types_available(self, count: int) -> None:
        pass

    def record_pricing_cache_hit(self) -> None:
        pass

    def record_pricing_cache_miss(self) -> None:
        pass

    def record_pricing_cache_refresh(self) -> None:
        pass

    def record_drift_detection(self, reason: str) -> None:
        pass


class InMemoryMetricsSink(MetricsSink):
    """Keeps counters and gauges in memory. Used by tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.counters: Counter = Counter()
        self.gauges: Dict[str, float] = {}
        self.durations: Dict[str, list] = {}

    def _inc(self, name: str, *labels: str) -> None:
        with self._lock:
            self.counters[(name,) + labels] += 1

    def _observe(self, name: str, seconds: float) -> None:
        with self._lock:
            self.durations.setdefault(name, []).append(seconds)

    def _set(self, name: str, value: float) -> None:
        with self._lock:
            self.gauges[name] = value

    def record_node_provisioning(self, flavor, zone, status):
        self._inc("node_provisioning_total", flavor, zone, status)

    def record_node_provisioning_duration(self, flavor, zone, seconds):
        self._observe("node_provisioning_duration_seconds", seconds)

    def record_node_deletion(self, status):
        self._inc("node_deletion_total", status)

    def record_node_deletion_duration(self, seconds):
        self._observe("node_deletion_duration_seconds", seconds)

    def record_pool_operation(self, operation, status):
        self._inc("pool_operations_total", operation, status)

    def set_pools_active(self, count):
        self._set("pools_active", count)

    def record_api_retry(self, operation):
        self._inc("api_retries_total", operation)

    def set_instance_types_available(self, count):
        self._set("instance_types_available", count)

    def record_pricing_cache_hit(self):
        self._inc("pricing_cache_hits_total")

    def record_pricing_cache_miss(self):
        self._inc("pricing_cache_misses_total")

    def record_pricing_cache_refresh(self):
        self._inc("pricing_cache_refreshes_total")

    def record_drift_detection(self, reason):
        self._inc("drift_detection_total", reason)

    def count(self, name: str, *labels: str) -> int:
        return self.counters[(name,) + labels]
