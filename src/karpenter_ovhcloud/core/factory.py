# src/karpenter_ovhcloud/core/factory.py
"""
Factory functions building the OVH clients and the pool orchestrator from
the environment configuration.
"""

import logging
from functools import lru_cache
from typing import Optional

from ..clients.ovh_client import OVHClient
from ..clients.pricing_client import PricingClient
from ..core.config import config
from ..models.ovh import Credentials
from .metrics import MetricsSink
from .node_class import KubeNodeClassResolver, NodeClassResolver
from .orchestrator import PoolOrchestrator
from .retry import RetryConfig
from .telemetry import OpenTelemetryMetricsSink, initialize_telemetry

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_metrics_sink() -> MetricsSink:
    """
    Process-wide metrics sink recording through OpenTelemetry.
    Uses lru_cache to act as a singleton, so the OTLP exporter is set up once.
    """
    initialize_telemetry()
    return OpenTelemetryMetricsSink()


@lru_cache(maxsize=1)
def get_ovh_client() -> OVHClient:
    """
    Builds the authenticated OVH client from config.

    Raises:
        ConfigurationError: When credentials or cluster identity are missing.
    """
    config.validate_credentials()
    credentials = Credentials(
        endpoint=config.OVH_ENDPOINT,
        application_key=config.OVH_APPLICATION_KEY,
        application_secret=config.OVH_APPLICATION_SECRET,
        consumer_key=config.OVH_CONSUMER_KEY,
    )
    logger.info("Initializing OVH client for project %s, cluster %s", config.OVH_SERVICE_NAME, config.OVH_KUBE_ID)
    return OVHClient(
        credentials,
        service_name=config.OVH_SERVICE_NAME,
        kube_id=config.OVH_KUBE_ID,
        region=config.OVH_REGION,
        retry_config=RetryConfig.from_config(),
        metrics=get_metrics_sink(),
    )


@lru_cache(maxsize=1)
def get_pricing_client() -> PricingClient:
    return PricingClient(metrics=get_metrics_sink())


async def build_orchestrator(
    node_class_resolver: Optional[NodeClassResolver] = None,
    with_pricing: bool = True,
) -> PoolOrchestrator:
    """
    Returns an orchestrator with its region resolved and instance types loaded.
    """
    ovh_client = get_ovh_client()
    await ovh_client.ensure_region()

    orchestrator = PoolOrchestrator(
        ovh_client,
        node_class_resolver or KubeNodeClassResolver(),
        metrics=get_metrics_sink(),
    )
    await orchestrator.refresh_instance_types(get_pricing_client() if with_pricing else None)
    return orchestrator
