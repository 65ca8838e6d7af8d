# src/karpenter_ovhcloud/core/orchestrator.py
"""
The pool orchestrator turns node claims into OVH MKS node pool operations.

One node pool exists per (flavor, zone) pair. Provisioning a node scales the
matching pool up by one, creating it on first use; deleting a node scales the
pool down, or removes it when it holds the last node. Pools are found again
after a restart through their deterministic names.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Set, Tuple

import ovh.exceptions

from ..clients.ovh_client import OVHClient
from ..clients.pricing_client import PricingClient
from ..models.instance_type import InstanceType, RepairPolicy
from ..models.labels import (
    ANNOTATION_NODE_ID,
    ANNOTATION_NODE_NAME,
    ANNOTATION_POOL_ID,
    ARCH_AMD64,
    CAPACITY_TYPE_ON_DEMAND,
    DEFAULT_DESIRED_NODES,
    LABEL_ARCH,
    LABEL_CAPACITY_TYPE,
    LABEL_INSTANCE_TYPE,
    LABEL_MANAGED_BY,
    LABEL_NODEPOOL,
    LABEL_OS,
    LABEL_REGISTERED,
    LABEL_TOPOLOGY_ZONE,
    MANAGED_BY_VALUE,
    NODE_STATUS_READY,
    OS_LINUX,
    POOL_NAME_PREFIX,
    PROVIDER_ID_PREFIX,
)
from ..models.node_class import OVHNodeClass
from ..models.nodeclaim import NodeClaim
from ..models.ovh import (
    CreateNodePoolRequest,
    Node,
    NodePool,
    NodePoolTemplate,
    NodePoolTemplateMetadata,
    NodePoolTemplateSpec,
    UpdateNodePoolRequest,
)
from .config import config
from .exceptions import (
    ConfigurationError,
    InsufficientCapacityError,
    NodeClaimNotFoundError,
    NodeClassNotFoundError,
    NodeClassNotReadyError,
    NodeWaitTimeoutError,
)
from .instance_types import construct_instance_types
from .metrics import MetricsSink
from .node_class import NodeClassResolver

logger = logging.getLogger(__name__)

PROVIDER_NAME = "ovhcloud"
DRIFT_MONTHLY_BILLING = "MonthlyBillingChanged"
DRIFT_ANTI_AFFINITY = "AntiAffinityChanged"
NO_DRIFT = ""
REPAIR_TOLERATION_SECONDS = 600


def sanitize_flavor(flavor: str) -> str:
    return flavor.replace(".", "-")


def pool_name(flavor: str, zone: Optional[str] = None) -> str:
    """karpenter-{flavor}[-{zone}], with '.' in the flavor replaced by '-'."""
    name = f"{POOL_NAME_PREFIX}{sanitize_flavor(flavor)}"
    if zone:
        return f"{name}-{zone}"
    return name


def is_managed_pool(pool: NodePool) -> bool:
    return pool.name.startswith(POOL_NAME_PREFIX)


class PoolOrchestrator:
    """
    Implements create, delete, get, list and drift detection for node claims.

    The orchestrator owns a pool name -> pool ID cache. The cache is only a
    hint: a cached ID is always re-read from the API before it is used. One
    lock guards the cache and every read-modify-write of a pool's desired
    count, including the remote create/scale/delete call, so concurrent
    claims never create two pools or lose a scale step.

    Nodes handed out to a claim are remembered per pool until the claim is
    deleted, so two claims waiting on the same pool never get the same node.
    """

    def __init__(
        self,
        ovh_client: OVHClient,
        node_class_resolver: NodeClassResolver,
        instance_types: Optional[List[InstanceType]] = None,
        metrics: Optional[MetricsSink] = None,
        poll_interval: Optional[float] = None,
        node_wait_timeout: Optional[float] = None,
    ):
        self.ovh_client = ovh_client
        self.node_class_resolver = node_class_resolver
        self.instance_types: List[InstanceType] = list(instance_types or [])
        self.metrics = metrics or MetricsSink()
        self.poll_interval = poll_interval if poll_interval is not None else config.NODE_POLL_INTERVAL_SECONDS
        self.node_wait_timeout = (
            node_wait_timeout if node_wait_timeout is not None else config.NODE_WAIT_TIMEOUT_SECONDS
        )
        self.pool_cache: Dict[str, str] = {}
        self.assigned_nodes: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def repair_policies(self) -> List[RepairPolicy]:
        """Nodes not Ready for ten minutes are considered unhealthy."""
        return [
            RepairPolicy(condition_type="Ready", condition_status="False", toleration_seconds=REPAIR_TOLERATION_SECONDS),
            RepairPolicy(
                condition_type="Ready", condition_status="Unknown", toleration_seconds=REPAIR_TOLERATION_SECONDS
            ),
        ]

    # --- Instance types ---

    def get_instance_types(self) -> List[InstanceType]:
        self.metrics.set_instance_types_available(len(self.instance_types))
        return list(self.instance_types)

    async def refresh_instance_types(self, pricing_client: Optional[PricingClient] = None) -> List[InstanceType]:
        """Rebuilds the instance-type catalog from the OVH API."""
        self.instance_types = await construct_instance_types(self.ovh_client, pricing_client)
        self.metrics.set_instance_types_available(len(self.instance_types))
        logger.info("Loaded %d instance types", len(self.instance_types))
        return list(self.instance_types)

    def find_instance_type(self, name: str) -> Optional[InstanceType]:
        for instance_type in self.instance_types:
            if instance_type.name == name:
                return instance_type
        return None

    # --- Selection ---

    def select_flavor(self, node_claim: NodeClaim) -> str:
        values = node_claim.requirement_values(LABEL_INSTANCE_TYPE)
        if not values:
            raise ConfigurationError(f"node claim {node_claim.name!r} has no instance type requirement")
        return values[0]

    def default_zone(self) -> str:
        return f"{self.ovh_client.region.lower()}-a"

    def select_zone(self, node_claim: NodeClaim) -> str:
        values = node_claim.requirement_values(LABEL_TOPOLOGY_ZONE)
        if values:
            return values[0]
        return self.default_zone()

    # --- Create ---

    async def create(self, node_claim: NodeClaim) -> NodeClaim:
        """
        Provisions one node for `node_claim` and returns the launched claim.

        Raises:
            InsufficientCapacityError: The referenced node class does not exist.
            NodeClassNotReadyError: The node class reports Ready=False.
            ConfigurationError: The claim has no instance type requirement.
            NodeWaitTimeoutError: No ready node appeared before the deadline.
        """
        start = time.monotonic()

        try:
            node_class = await self.node_class_resolver.resolve(node_claim)
        except NodeClassNotFoundError as e:
            self.metrics.record_node_provisioning("unknown", "unknown", "error")
            raise InsufficientCapacityError(f"resolving node class: {e}") from e

        if not node_class.is_ready():
            self.metrics.record_node_provisioning("unknown", "unknown", "nodeclass_not_ready")
            condition = node_class.ready_condition()
            raise NodeClassNotReadyError(condition.message or f"node class {node_class.name!r} is not ready")

        try:
            flavor = self.select_flavor(node_claim)
        except ConfigurationError:
            self.metrics.record_node_provisioning("unknown", "unknown", "no_flavor")
            raise

        zone = self.select_zone(node_claim)
        name = pool_name(flavor, zone)
        logger.info("Creating node: flavor=%s zone=%s pool=%s", flavor, zone, name)

        try:
            pool, known_node_ids = await self._get_or_create_pool(name, flavor, zone, node_class, node_claim)
        except Exception:
            self.metrics.record_node_provisioning(flavor, zone, "pool_error")
            raise

        try:
            node = await self._wait_for_new_node(pool.id, known_node_ids)
        except NodeWaitTimeoutError:
            self.metrics.record_node_provisioning(flavor, zone, "timeout")
            raise

        duration = time.monotonic() - start
        self.metrics.record_node_provisioning(flavor, zone, "success")
        self.metrics.record_node_provisioning_duration(flavor, zone, duration)
        logger.info("Node %s (%s) ready in pool %s after %.1fs", node.name, node.id, pool.id, duration)

        created = node_claim.model_copy(deep=True)
        created.status.provider_id = f"{PROVIDER_ID_PREFIX}{node.instance_id}"
        created.status.node_name = node.name
        instance_type = self.find_instance_type(flavor)
        if instance_type is not None:
            created.status.capacity = dict(instance_type.capacity)
            created.status.allocatable = instance_type.allocatable()
        created.annotations[ANNOTATION_POOL_ID] = pool.id
        created.annotations[ANNOTATION_NODE_ID] = node.id
        created.annotations[ANNOTATION_NODE_NAME] = node.name
        created.labels[LABEL_INSTANCE_TYPE] = flavor
        created.labels[LABEL_TOPOLOGY_ZONE] = zone
        created.labels[LABEL_CAPACITY_TYPE] = CAPACITY_TYPE_ON_DEMAND
        return created

    async def _get_or_create_pool(
        self, name: str, flavor: str, zone: str, node_class: OVHNodeClass, node_claim: NodeClaim
    ) -> Tuple[NodePool, Set[str]]:
        """
        Scales the pool called `name` up by one, creating it when absent.

        Returns the pool and the IDs of the nodes it held before scaling.
        """
        async with self._lock:
            pool_id = self.pool_cache.get(name)
            if pool_id is not None:
                try:
                    pool = await self.ovh_client.get_node_pool(pool_id)
                except Exception as e:
                    logger.info("Cached pool %s (%s) is gone, evicting: %s", name, pool_id, e)
                    self.evict_pool(pool_id)
                else:
                    return await self._scale_up(pool)

            for pool in await self.ovh_client.list_node_pools():
                if pool.name == name:
                    self.pool_cache[name] = pool.id
                    return await self._scale_up(pool)

            request = self._build_create_request(name, flavor, zone, node_class, node_claim)
            try:
                pool = await self.ovh_client.create_node_pool(request)
            except Exception:
                self.metrics.record_pool_operation("create", "error")
                raise
            self.metrics.record_pool_operation("create", "success")
            self.pool_cache[name] = pool.id
            logger.info("Created pool %s (%s) with flavor %s", name, pool.id, flavor)
            return pool, set()

    async def _scale_up(self, pool: NodePool) -> Tuple[NodePool, Set[str]]:
        known_node_ids = await self._node_ids(pool.id)
        desired = pool.desired_nodes + 1
        try:
            await self.ovh_client.update_node_pool(pool.id, UpdateNodePoolRequest(desired_nodes=desired))
        except Exception:
            self.metrics.record_pool_operation("scale_up", "error")
            raise
        self.metrics.record_pool_operation("scale_up", "success")
        logger.info("Scaled pool %s (%s) up to %d nodes", pool.name, pool.id, desired)
        return pool.model_copy(update={"desired_nodes": desired}), known_node_ids

    async def _node_ids(self, pool_id: str) -> Set[str]:
        try:
            nodes = await self.ovh_client.list_pool_nodes(pool_id)
        except Exception as e:
            logger.debug("Could not list nodes of pool %s before scaling: %s", pool_id, e)
            return set()
        return {node.id for node in nodes}

    def _build_create_request(
        self, name: str, flavor: str, zone: str, node_class: OVHNodeClass, node_claim: NodeClaim
    ) -> CreateNodePoolRequest:
        labels = {
            LABEL_MANAGED_BY: MANAGED_BY_VALUE,
            LABEL_INSTANCE_TYPE: flavor,
            LABEL_TOPOLOGY_ZONE: zone,
            LABEL_CAPACITY_TYPE: CAPACITY_TYPE_ON_DEMAND,
            LABEL_ARCH: ARCH_AMD64,
            LABEL_OS: OS_LINUX,
            LABEL_REGISTERED: "true",
        }
        nodepool = node_claim.labels.get(LABEL_NODEPOOL)
        if nodepool:
            labels[LABEL_NODEPOOL] = nodepool
        labels.update(node_class.spec.tags)

        return CreateNodePoolRequest(
            name=name,
            flavor_name=flavor,
            desired_nodes=DEFAULT_DESIRED_NODES,
            autoscale=False,
            monthly_billed=node_class.spec.monthly_billed,
            anti_affinity=node_class.spec.anti_affinity,
            availability_zones=[zone] if zone else None,
            template=NodePoolTemplate(
                metadata=NodePoolTemplateMetadata(labels=labels),
                spec=NodePoolTemplateSpec(taints=list(node_claim.spec.taints)),
            ),
        )

    async def _wait_for_new_node(self, pool_id: str, known_node_ids: Optional[Set[str]] = None) -> Node:
        """
        Polls the pool until a ready node with an instance ID shows up.

        Nodes listed in `known_node_ids` existed before the scale-up and are
        ignored, as are nodes already assigned to another claim. A failed
        listing is retried on the next tick.
        """
        known_node_ids = known_node_ids or set()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.node_wait_timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise NodeWaitTimeoutError(
                    f"no ready node in pool {pool_id} after {self.node_wait_timeout}s"
                )
            await asyncio.sleep(min(self.poll_interval, remaining))

            try:
                nodes = await self.ovh_client.list_pool_nodes(pool_id)
            except Exception as e:
                logger.debug("Listing nodes of pool %s failed, retrying next tick: %s", pool_id, e)
                continue

            for node in nodes:
                if node.id in known_node_ids:
                    continue
                if node.status == NODE_STATUS_READY and node.instance_id and await self._assign_node(pool_id, node):
                    return node

    async def _assign_node(self, pool_id: str, node: Node) -> bool:
        """Marks `node` as taken. False when another claim already holds it."""
        async with self._lock:
            assigned = self.assigned_nodes.setdefault(pool_id, set())
            if node.id in assigned:
                return False
            assigned.add(node.id)
            return True

    # --- Delete ---

    async def delete(self, node_claim: NodeClaim) -> None:
        """
        Removes the node behind `node_claim`.

        Always ends with NodeClaimNotFoundError: either the pool binding is
        missing, the pool is already gone, or the instance was terminated.
        Other failures to read or resize the pool propagate so the caller
        retries.
        """
        start = time.monotonic()

        pool_id = node_claim.annotations.get(ANNOTATION_POOL_ID)
        if not pool_id:
            self.metrics.record_node_deletion("no_pool_id")
            raise NodeClaimNotFoundError("no pool ID annotation")

        async with self._lock:
            try:
                pool = await self.ovh_client.get_node_pool(pool_id)
            except ovh.exceptions.ResourceNotFoundError as e:
                self.metrics.record_node_deletion("pool_not_found")
                self.evict_pool(pool_id)
                raise NodeClaimNotFoundError(f"pool {pool_id} not found: {e}") from e

            logger.info("Deleting node from pool %s (desired=%d)", pool_id, pool.desired_nodes)

            if pool.desired_nodes <= 1:
                try:
                    await self.ovh_client.delete_node_pool(pool_id)
                except Exception:
                    self.metrics.record_node_deletion("delete_error")
                    self.metrics.record_pool_operation("delete", "error")
                    raise
                self.metrics.record_pool_operation("delete", "success")
                self.evict_pool(pool_id)
            else:
                try:
                    await self.ovh_client.update_node_pool(
                        pool_id, UpdateNodePoolRequest(desired_nodes=pool.desired_nodes - 1)
                    )
                except Exception:
                    self.metrics.record_node_deletion("scale_down_error")
                    self.metrics.record_pool_operation("scale_down", "error")
                    raise
                self.metrics.record_pool_operation("scale_down", "success")
                self.assigned_nodes.get(pool_id, set()).discard(node_claim.annotations.get(ANNOTATION_NODE_ID))

        self.metrics.record_node_deletion("success")
        self.metrics.record_node_deletion_duration(time.monotonic() - start)
        raise NodeClaimNotFoundError("instance terminated")

    def evict_pool(self, pool_id: str) -> None:
        """Forgets the cache entries and node assignments of `pool_id`. Caller holds the lock."""
        for name in [name for name, cached_id in self.pool_cache.items() if cached_id == pool_id]:
            del self.pool_cache[name]
        self.assigned_nodes.pop(pool_id, None)

    # --- Get / List ---

    async def get(self, provider_id: str) -> NodeClaim:
        """
        Finds the node claim for `provider_id` ("openstack:///{instanceId}").

        Raises:
            NodeClaimNotFoundError: The ID is malformed or no managed pool holds the node.
        """
        instance_id = provider_id[len(PROVIDER_ID_PREFIX) :] if provider_id.startswith(PROVIDER_ID_PREFIX) else ""
        if not instance_id:
            raise NodeClaimNotFoundError(f"invalid provider ID format: {provider_id}")

        try:
            pools = await self.ovh_client.list_node_pools()
        except Exception as e:
            raise NodeClaimNotFoundError(f"listing pools: {e}") from e

        for pool in pools:
            if not is_managed_pool(pool):
                continue
            try:
                nodes = await self.ovh_client.list_pool_nodes(pool.id)
            except Exception as e:
                logger.debug("Skipping pool %s: %s", pool.id, e)
                continue
            for node in nodes:
                if node.instance_id == instance_id:
                    return self._node_to_claim(node, pool)

        raise NodeClaimNotFoundError(f"node with instance ID {instance_id} not found")

    async def list(self) -> List[NodeClaim]:
        """All node claims of managed pools. Pools whose nodes cannot be listed are skipped."""
        pools = await self.ovh_client.list_node_pools()
        managed = [pool for pool in pools if is_managed_pool(pool)]
        self.metrics.set_pools_active(len(managed))

        claims = []
        for pool in managed:
            try:
                nodes = await self.ovh_client.list_pool_nodes(pool.id)
            except Exception as e:
                logger.debug("Skipping pool %s: %s", pool.id, e)
                continue
            claims.extend(self._node_to_claim(node, pool) for node in nodes)
        return claims

    def zone_for_pool(self, pool: NodePool) -> str:
        """The pool's availability zone, else the zone encoded in its name, else {region}-a."""
        if pool.zone:
            return pool.zone
        prefix = f"{POOL_NAME_PREFIX}{sanitize_flavor(pool.flavor)}-"
        if pool.flavor and pool.name.startswith(prefix) and len(pool.name) > len(prefix):
            return pool.name[len(prefix) :]
        return self.default_zone()

    def _node_to_claim(self, node: Node, pool: NodePool) -> NodeClaim:
        flavor = node.flavor or pool.flavor
        claim = NodeClaim(
            name=node.name,
            annotations={
                ANNOTATION_POOL_ID: pool.id,
                ANNOTATION_NODE_ID: node.id,
                ANNOTATION_NODE_NAME: node.name,
            },
            labels={
                LABEL_INSTANCE_TYPE: flavor,
                LABEL_TOPOLOGY_ZONE: self.zone_for_pool(pool),
                LABEL_CAPACITY_TYPE: CAPACITY_TYPE_ON_DEMAND,
                LABEL_ARCH: ARCH_AMD64,
                LABEL_OS: OS_LINUX,
            },
        )
        claim.status.node_name = node.name
        claim.status.provider_id = f"{PROVIDER_ID_PREFIX}{node.instance_id}"
        instance_type = self.find_instance_type(flavor)
        if instance_type is not None:
            claim.status.capacity = dict(instance_type.capacity)
            claim.status.allocatable = instance_type.allocatable()
        return claim

    # --- Drift ---

    async def is_drifted(self, node_claim: NodeClaim) -> str:
        """
        Returns the drift reason for `node_claim`, or "" when it has not drifted.

        Only the pool attributes that cannot change after creation are
        compared, billing first. Lookup failures report no drift.
        """
        try:
            node_class = await self.node_class_resolver.resolve(node_claim)
        except Exception as e:
            logger.debug("Cannot resolve node class for drift detection of %s: %s", node_claim.name, e)
            return NO_DRIFT

        pool_id = node_claim.annotations.get(ANNOTATION_POOL_ID)
        if not pool_id:
            logger.debug("No pool ID annotation for drift detection of %s", node_claim.name)
            return NO_DRIFT

        try:
            pool = await self.ovh_client.get_node_pool(pool_id)
        except Exception as e:
            logger.debug("Cannot get pool %s for drift detection: %s", pool_id, e)
            return NO_DRIFT

        if pool.monthly_billed != node_class.spec.monthly_billed:
            logger.info(
                "Drift detected for %s: pool %s monthlyBilled=%s, node class wants %s",
                node_claim.name,
                pool.name,
                pool.monthly_billed,
                node_class.spec.monthly_billed,
            )
            self.metrics.record_drift_detection(DRIFT_MONTHLY_BILLING)
            return DRIFT_MONTHLY_BILLING

        if pool.anti_affinity != node_class.spec.anti_affinity:
            logger.info(
                "Drift detected for %s: pool %s antiAffinity=%s, node class wants %s",
                node_claim.name,
                pool.name,
                pool.anti_affinity,
                node_class.spec.anti_affinity,
            )
            self.metrics.record_drift_detection(DRIFT_ANTI_AFFINITY)
            return DRIFT_ANTI_AFFINITY

        return NO_DRIFT
