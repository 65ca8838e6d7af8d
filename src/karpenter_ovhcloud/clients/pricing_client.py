# src/karpenter_ovhcloud/clients/pricing_client.py
"""
Hourly price lookup backed by the OVHcloud public pricing catalog.

The catalog is fetched in bulk and cached for `cache_ttl` seconds. Lookups
never fail: when the catalog cannot be fetched or does not list a flavor, a
static estimate is returned instead.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from ..core.config import config
from ..core.metrics import MetricsSink
from ..data.flavor_prices import estimate_price
from ..models.instance_type import NormalizedFlavor
from ..models.pricing import PricingCatalog
from ..utils.http_client import get_pricing_http_client

logger = logging.getLogger(__name__)

# Catalog prices are fixed-point integers; this converts them to EUR.
PRICE_UNIT_DIVISOR = 100_000_000.0
PLAN_CODE_PREFIX = "instance-"


@dataclass(frozen=True)
class PriceSnapshot:
    """One fetched catalog and the prices derived from it. Never mutated."""

    catalog: PricingCatalog
    fetched_at: float
    prices: Dict[str, float] = field(default_factory=dict)


def extract_flavor_from_plan_code(plan_code: str) -> str:
    """'instance-b3-8.gra7.hour.consumption' -> 'b3-8'"""
    plan_code = plan_code.lower()
    if plan_code.startswith(PLAN_CODE_PREFIX):
        plan_code = plan_code[len(PLAN_CODE_PREFIX) :]
    return plan_code.split(".")[0]


def extract_flavor_prices(catalog: PricingCatalog) -> Dict[str, float]:
    """
    Builds the lookup map from a catalog.

    Only addons whose plan code denotes a compute instance and that carry an
    hourly consumption price are kept. Each price is stored under the bare
    flavor name and under the full plan code.
    """
    prices: Dict[str, float] = {}
    for addon in catalog.addons:
        plan_code = addon.plan_code.lower()
        if "instance" not in plan_code:
            continue

        for pricing in addon.pricings:
            is_hourly = "P1H" in pricing.duration or "hour" in pricing.description or pricing.interval == 1
            has_consumption = "consumption" in pricing.capacities
            if not (is_hourly and has_consumption and pricing.price > 0):
                continue

            flavor_name = extract_flavor_from_plan_code(plan_code)
            if not flavor_name:
                continue
            price = pricing.price / PRICE_UNIT_DIVISOR
            prices[flavor_name] = price
            prices[plan_code] = price
    return prices


class PricingClient:
    """
    Caches the OVH public cloud price catalog and answers hourly price lookups.

    Readers use the current snapshot without locking. A refresh takes the
    refresh lock and re-checks staleness once it holds it, so concurrent
    callers that all saw a stale snapshot trigger a single fetch.
    """

    def __init__(
        self,
        subsidiary: Optional[str] = None,
        base_url: Optional[str] = None,
        cache_ttl: Optional[float] = None,
        timeout: float = 30.0,
        metrics: Optional[MetricsSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.subsidiary = subsidiary or config.OVH_PRICING_SUBSIDIARY or "FR"
        self.base_url = base_url or config.PRICING_CATALOG_URL
        self.cache_ttl = cache_ttl if cache_ttl is not None else config.PRICING_CACHE_TTL_HOURS * 3600
        self.timeout = timeout
        self.metrics = metrics or MetricsSink()
        self._clock = clock
        self._snapshot: Optional[PriceSnapshot] = None
        self._refresh_lock = asyncio.Lock()

    def _is_stale(self, snapshot: Optional[PriceSnapshot]) -> bool:
        return snapshot is None or self._clock() - snapshot.fetched_at > self.cache_ttl

    async def get_flavor_price(self, flavor_name: str, region: str, flavor: Optional[NormalizedFlavor] = None) -> float:
        """
        Returns the hourly price of `flavor_name` in EUR.

        Lookup order: exact flavor name, region-prefixed name, regional catalog
        plan code, global catalog plan code. `flavor` only feeds the estimate.
        """
        try:
            await self.refresh_if_needed()
        except Exception as e:
            logger.warning("Pricing catalog refresh failed, using estimated price for %s: %s", flavor_name, e)
            self.metrics.record_pricing_cache_miss()
            return self._estimate(flavor_name, flavor)

        prices = self._snapshot.prices
        region_lower = (region or "").lower()
        candidates = (
            flavor_name,
            f"{region_lower}.{flavor_name}",
            f"{PLAN_CODE_PREFIX}{flavor_name}.{region_lower}.hour.consumption",
            f"{PLAN_CODE_PREFIX}{flavor_name}.hour.consumption",
        )
        for key in candidates:
            price = prices.get(key)
            if price is not None:
                self.metrics.record_pricing_cache_hit()
                return price

        logger.debug("No catalog price for flavor %s in region %s; estimating", flavor_name, region)
        self.metrics.record_pricing_cache_miss()
        return self._estimate(flavor_name, flavor)

    @staticmethod
    def _estimate(flavor_name: str, flavor: Optional[NormalizedFlavor]) -> float:
        if flavor is None:
            return estimate_price(flavor_name)
        return estimate_price(flavor_name, flavor.vcpus, flavor.memory_gib, flavor.gpus)

    async def refresh_if_needed(self) -> None:
        if not self._is_stale(self._snapshot):
            return
        await self._refresh()

    async def _refresh(self) -> None:
        async with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            if not self._is_stale(self._snapshot):
                return

            catalog = await self._fetch_catalog()
            prices = extract_flavor_prices(catalog)
            self._snapshot = PriceSnapshot(catalog=catalog, fetched_at=self._clock(), prices=prices)
            self.metrics.record_pricing_cache_refresh()
            logger.info("Refreshed pricing catalog (%s): %d price keys", self.subsidiary, len(prices))

    async def _fetch_catalog(self) -> PricingCatalog:
        async with get_pricing_http_client(self.subsidiary, read_timeout=self.timeout) as client:
            response = await client.get(self.base_url)
            response.raise_for_status()
            try:
                return PricingCatalog.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                logger.debug("Raw pricing catalog response: %s", response.text[:500])
                raise httpx.DecodingError(f"Invalid pricing catalog: {e}") from e

    async def force_refresh(self) -> None:
        """Drops the current snapshot and fetches the catalog again."""
        self._snapshot = None
        await self._refresh()

    def cached_prices(self) -> Dict[str, float]:
        """Returns a copy of the cached price map (empty before the first refresh)."""
        snapshot = self._snapshot
        if snapshot is None:
            return {}
        return dict(snapshot.prices)
