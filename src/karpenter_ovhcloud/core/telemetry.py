# src/karpenter_ovhcloud/core/telemetry.py
"""OpenTelemetry meter setup and the metrics sink that records through it."""

import logging
import threading
from typing import Dict, Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

from .config import config
from .metrics import MetricsSink

logger = logging.getLogger(__name__)

METER_NAME = "karpenter_ovhcloud"
PREFIX = "karpenter_ovhcloud_"


def initialize_telemetry(endpoint: Optional[str] = None) -> bool:
    """
    Installs a MeterProvider exporting over OTLP/HTTP to `endpoint`
    (default: OTEL_EXPORTER_OTLP_ENDPOINT).

    Returns False and leaves the no-op global provider in place when no
    endpoint is configured.
    """
    endpoint = endpoint or config.OTEL_EXPORTER_OTLP_ENDPOINT
    if not endpoint:
        logger.debug("No OTLP endpoint configured, metrics are not exported.")
        return False

    resource = Resource(attributes={SERVICE_NAME: config.OTEL_SERVICE_NAME})
    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    logger.info("OpenTelemetry metrics initialized. Exporting to: %s", endpoint)
    return True


class OpenTelemetryMetricsSink(MetricsSink):
    """
    Records provisioning, pool, API and pricing metrics on an OpenTelemetry meter.

    Gauges are up-down counters fed with the difference to the last value set.
    """

    def __init__(self, meter: Optional[metrics.Meter] = None):
        self.meter = meter or metrics.get_meter(METER_NAME)
        self._lock = threading.Lock()
        self._gauge_values: Dict[str, float] = {}

        self.node_provisioning = self.meter.create_counter(
            PREFIX + "node_provisioning_total", description="Total number of node provisioning attempts"
        )
        self.node_provisioning_duration = self.meter.create_histogram(
            PREFIX + "node_provisioning_duration_seconds",
            unit="s",
            description="Time taken to provision a node (including MKS bootstrap)",
        )
        self.node_deletion = self.meter.create_counter(
            PREFIX + "node_deletion_total", description="Total number of node deletion attempts"
        )
        self.node_deletion_duration = self.meter.create_histogram(
            PREFIX + "node_deletion_duration_seconds", unit="s", description="Time taken to delete a node"
        )
        self.pool_operations = self.meter.create_counter(
            PREFIX + "pool_operations_total", description="Total number of pool operations"
        )
        self.pools_active = self.meter.create_up_down_counter(
            PREFIX + "pools_active", description="Number of active Karpenter-managed pools"
        )
        self.api_retries = self.meter.create_counter(
            PREFIX + "api_retries_total", description="Total number of API call retries"
        )
        self.instance_types_available = self.meter.create_up_down_counter(
            PREFIX + "instance_types_available", description="Number of available instance types"
        )
        self.pricing_cache_hits = self.meter.create_counter(
            PREFIX + "pricing_cache_hits_total", description="Total number of pricing cache hits"
        )
        self.pricing_cache_misses = self.meter.create_counter(
            PREFIX + "pricing_cache_misses_total", description="Total number of pricing cache misses"
        )
        self.pricing_cache_refreshes = self.meter.create_counter(
            PREFIX + "pricing_cache_refreshes_total", description="Total number of pricing cache refreshes"
        )
        self.drift_detection = self.meter.create_counter(
            PREFIX + "drift_detection_total", description="Total number of drifted node claims"
        )

    def _set(self, instrument, name: str, value: float) -> None:
        with self._lock:
            delta = value - self._gauge_values.get(name, 0)
            self._gauge_values[name] = value
        if delta:
            instrument.add(delta)

    def record_node_provisioning(self, flavor, zone, status):
        self.node_provisioning.add(1, {"flavor": flavor, "zone": zone, "status": status})

    def record_node_provisioning_duration(self, flavor, zone, seconds):
        self.node_provisioning_duration.record(seconds, {"flavor": flavor, "zone": zone})

    def record_node_deletion(self, status):
        self.node_deletion.add(1, {"status": status})

    def record_node_deletion_duration(self, seconds):
        self.node_deletion_duration.record(seconds)

    def record_pool_operation(self, operation, status):
        self.pool_operations.add(1, {"operation": operation, "status": status})

    def set_pools_active(self, count):
        self._set(self.pools_active, "pools_active", count)

    def record_api_retry(self, operation):
        self.api_retries.add(1, {"operation": operation})

    def set_instance_types_available(self, count):
        self._set(self.instance_types_available, "instance_types_available", count)

    def record_pricing_cache_hit(self):
        self.pricing_cache_hits.add(1)

    def record_pricing_cache_miss(self):
        self.pricing_cache_misses.add(1)

    def record_pricing_cache_refresh(self):
        self.pricing_cache_refreshes.add(1)

    def record_drift_detection(self, reason):
        self.drift_detection.add(1, {"reason": reason})
