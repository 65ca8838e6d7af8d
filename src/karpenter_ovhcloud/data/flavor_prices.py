# src/karpenter_ovhcloud/data/flavor_prices.py

"""
Static hourly price estimates for OVHcloud Public Cloud flavors.

Used whenever the public pricing catalog is unreachable or does not list a
flavor, so that pricing never blocks provisioning. Values are approximate
EUR/hour on-demand prices.

OVH flavor naming: {category}{generation}-{size}, e.g. b3-8, c2-15, r2-30.
"""

from typing import Dict

ESTIMATED_FLAVOR_PRICES: Dict[str, float] = {
    # B2 General Purpose
    "b2-7": 0.0283,
    "b2-15": 0.0567,
    "b2-30": 0.1134,
    "b2-60": 0.2268,
    "b2-120": 0.4536,
    # B3 General Purpose (newer gen)
    "b3-8": 0.0340,
    "b3-16": 0.0680,
    "b3-32": 0.1360,
    "b3-64": 0.2720,
    "b3-128": 0.5440,
    # C2 Compute Optimized
    "c2-7": 0.0340,
    "c2-15": 0.0680,
    "c2-30": 0.1360,
    "c2-60": 0.2720,
    "c2-120": 0.5440,
    # C3 Compute Optimized (newer gen)
    "c3-8": 0.0408,
    "c3-16": 0.0816,
    "c3-32": 0.1632,
    "c3-64": 0.3264,
    "c3-128": 0.6528,
    # R2 Memory Optimized
    "r2-15": 0.0567,
    "r2-30": 0.0850,
    "r2-60": 0.1700,
    "r2-120": 0.3400,
    "r2-240": 0.6800,
    # R3 Memory Optimized (newer gen)
    "r3-16": 0.0680,
    "r3-32": 0.1020,
    "r3-64": 0.2040,
    "r3-128": 0.4080,
    "r3-256": 0.8160,
    # GPU instances (T series)
    "t1-45": 0.90,
    "t1-90": 1.80,
    "t1-180": 3.60,
    "t2-45": 1.10,
    "t2-90": 2.20,
    "t2-180": 4.40,
}

PRICE_PER_VCPU = 0.02
PRICE_PER_GIB = 0.005
PRICE_PER_GPU = 0.50
# Roughly a 4 vCPU flavor, for names we know nothing about.
DEFAULT_HOURLY_PRICE = 0.10


def estimate_from_resources(vcpus: int, memory_gib: float, gpus: int = 0) -> float:
    """Generic estimate: per-vCPU plus per-GiB plus per-GPU hourly rates."""
    return vcpus * PRICE_PER_VCPU + memory_gib * PRICE_PER_GIB + gpus * PRICE_PER_GPU


def estimate_price(flavor_name: str, vcpus: int = 0, memory_gib: float = 0.0, gpus: int = 0) -> float:
    """
    Returns an estimated hourly price for a flavor.

    The hand-tuned table wins; otherwise the declared resources are priced,
    and a flat default is used when nothing is known about the flavor.
    """
    price = ESTIMATED_FLAVOR_PRICES.get(flavor_name)
    if price is not None:
        return price
    if vcpus > 0:
        return estimate_from_resources(vcpus, memory_gib, gpus)
    return DEFAULT_HOURLY_PRICE
