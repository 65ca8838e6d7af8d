# src/karpenter_ovhcloud/core/instance_types.py
"""
Builds the instance-type catalog offered to the scheduler from OVH flavors.

The capabilities endpoint is preferred. When it fails or returns nothing the
cluster-scoped flavor endpoint is used instead. The two report RAM in
different units, which `NormalizedFlavor` keeps as an explicit tag.
"""

import logging
from typing import Iterable, List, Optional

from ..clients.ovh_client import OVHClient
from ..clients.pricing_client import PricingClient
from ..data.flavor_prices import estimate_from_resources
from ..models.instance_type import InstanceType, NormalizedFlavor, Offering, Requirement
from ..models.labels import (
    ARCH_AMD64,
    CAPACITY_TYPE_ON_DEMAND,
    LABEL_ARCH,
    LABEL_CAPACITY_TYPE,
    LABEL_INSTANCE_CATEGORY,
    LABEL_INSTANCE_TYPE,
    LABEL_OS,
    LABEL_TOPOLOGY_ZONE,
    OS_LINUX,
    RESOURCE_CPU,
    RESOURCE_EPHEMERAL_STORAGE,
    RESOURCE_GPU,
    RESOURCE_MEMORY,
    RESOURCE_PODS,
)
from ..models.ovh import CapabilityFlavor, ClusterFlavor

logger = logging.getLogger(__name__)

MAX_PODS = "110"
KUBE_RESERVED = {RESOURCE_CPU: "100m", RESOURCE_MEMORY: "100Mi"}
ZONE_SUFFIXES = ("a", "b", "c")
CAPABILITY_STATE_AVAILABLE = "available"


def zones_for_region(region: str) -> List[str]:
    """OVHcloud availability zones follow the pattern {region}-a/b/c."""
    region_lower = region.lower()
    return [f"{region_lower}-{suffix}" for suffix in ZONE_SUFFIXES]


def estimate_flavor_price(flavor: NormalizedFlavor) -> float:
    """Rough hourly price from the flavor's vCPU, RAM and GPU counts."""
    return estimate_from_resources(flavor.vcpus, flavor.memory_gib, flavor.gpus)


def build_requirements(flavor: NormalizedFlavor) -> List[Requirement]:
    return [
        Requirement(key=LABEL_INSTANCE_TYPE, values=[flavor.name]),
        Requirement(key=LABEL_ARCH, values=[ARCH_AMD64]),
        Requirement(key=LABEL_OS, values=[OS_LINUX]),
        Requirement(key=LABEL_CAPACITY_TYPE, values=[CAPACITY_TYPE_ON_DEMAND]),
        Requirement(key=LABEL_INSTANCE_CATEGORY, values=[flavor.category]),
    ]


def build_capacity(flavor: NormalizedFlavor) -> dict:
    capacity = {
        RESOURCE_CPU: str(flavor.vcpus),
        RESOURCE_MEMORY: flavor.memory_quantity,
        RESOURCE_PODS: MAX_PODS,
        RESOURCE_EPHEMERAL_STORAGE: f"{flavor.disk_gib}Gi",
    }
    if flavor.gpus > 0:
        capacity[RESOURCE_GPU] = str(flavor.gpus)
    return capacity


async def build_offerings(
    flavor: NormalizedFlavor, region: str, pricing_client: Optional[PricingClient] = None
) -> List[Offering]:
    """One on-demand offering per synthesized zone of `region`."""
    if pricing_client is None:
        price = estimate_flavor_price(flavor)
    else:
        try:
            price = await pricing_client.get_flavor_price(flavor.name, region, flavor)
        except Exception as e:
            logger.warning("Price lookup failed for %s, using estimate: %s", flavor.name, e)
            price = estimate_flavor_price(flavor)

    return [
        Offering(
            requirements=[
                Requirement(key=LABEL_CAPACITY_TYPE, values=[CAPACITY_TYPE_ON_DEMAND]),
                Requirement(key=LABEL_TOPOLOGY_ZONE, values=[zone]),
            ],
            price=price,
            available=True,
        )
        for zone in zones_for_region(region)
    ]


async def build_instance_type(
    flavor: NormalizedFlavor, region: str, pricing_client: Optional[PricingClient] = None
) -> InstanceType:
    return InstanceType(
        name=flavor.name,
        requirements=build_requirements(flavor),
        capacity=build_capacity(flavor),
        kube_reserved=dict(KUBE_RESERVED),
        offerings=await build_offerings(flavor, region, pricing_client),
    )


def normalize_capability_flavors(flavors: Iterable[CapabilityFlavor]) -> List[NormalizedFlavor]:
    return [
        NormalizedFlavor.from_capability(f)
        for f in flavors
        if f.state == CAPABILITY_STATE_AVAILABLE and f.vcpus > 0
    ]


def normalize_cluster_flavors(flavors: Iterable[ClusterFlavor]) -> List[NormalizedFlavor]:
    return [NormalizedFlavor.from_cluster(f) for f in flavors if f.vcpus > 0]


async def construct_instance_types(
    ovh_client: OVHClient, pricing_client: Optional[PricingClient] = None
) -> List[InstanceType]:
    """
    Builds one instance type per usable flavor in the client's region.

    Raises:
        Exception: Whatever the cluster flavor endpoint raised when both
        endpoints are unusable.
    """
    region = ovh_client.region

    flavors: List[NormalizedFlavor] = []
    try:
        capability_flavors = await ovh_client.list_kube_flavors(region)
        if capability_flavors:
            logger.info("Retrieved %d flavors from the capabilities API (region %s)", len(capability_flavors), region)
            flavors = normalize_capability_flavors(capability_flavors)
        else:
            logger.info("Capabilities API returned no flavors for region %s; using cluster flavors", region)
    except Exception as e:
        logger.info("Capabilities API unavailable, falling back to cluster flavors: %s", e)
        capability_flavors = []

    if not capability_flavors:
        cluster_flavors = await ovh_client.list_flavors()
        logger.info("Retrieved %d flavors from the cluster API", len(cluster_flavors))
        flavors = normalize_cluster_flavors(cluster_flavors)

    return [await build_instance_type(flavor, region, pricing_client) for flavor in flavors]
