# src/karpenter_ovhcloud/clients/ovh_client.py
"""
Typed access to the OVHcloud MKS node pool API.

Request signing is handled by the `ovh` SDK. Its client is blocking, so every
call runs in a worker thread and is wrapped by the retry executor under a
descriptive operation name.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Type, TypeVar

import ovh
from pydantic import BaseModel

from ..core.metrics import MetricsSink
from ..core.retry import DEFAULT_RETRY_CONFIG, RetryConfig, retryable_call
from ..models.ovh import (
    CapabilityFlavor,
    ClusterFlavor,
    CreateNodePoolRequest,
    Credentials,
    KubeCluster,
    Node,
    NodePool,
    UpdateNodePoolRequest,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _parse(model: Type[M], payload: Any) -> M:
    return model.model_validate(payload)


def _parse_list(model: Type[M], payload: Any) -> List[M]:
    return [model.model_validate(item) for item in payload or []]


class OVHClient:
    """Wraps the OVH API client for Managed Kubernetes operations."""

    def __init__(
        self,
        credentials: Optional[Credentials],
        service_name: str,
        kube_id: str,
        region: str = "",
        retry_config: RetryConfig = DEFAULT_RETRY_CONFIG,
        client: Optional[Any] = None,
        metrics: Optional[MetricsSink] = None,
    ):
        if client is None:
            if credentials is None:
                raise ValueError("credentials are required when no OVH client is supplied")
            client = ovh.Client(
                endpoint=credentials.endpoint,
                application_key=credentials.application_key,
                application_secret=credentials.application_secret,
                consumer_key=credentials.consumer_key,
            )
        self._client = client
        self.service_name = service_name
        self.kube_id = kube_id
        self._region = region or ""
        self.retry_config = retry_config
        self.metrics = metrics or MetricsSink()
        self._region_lock = asyncio.Lock()

    @property
    def region(self) -> str:
        return self._region

    @region.setter
    def region(self, value: str) -> None:
        self._region = value or ""

    def base_path(self) -> str:
        return f"/cloud/project/{self.service_name}/kube/{self.kube_id}"

    def capabilities_base_path(self) -> str:
        return f"/cloud/project/{self.service_name}/capabilities/kube"

    async def _call(self, operation: str, method: Callable[..., Any], path: str, **kwargs) -> Any:
        async def attempt():
            return await asyncio.to_thread(method, path, **kwargs)

        return await retryable_call(operation, attempt, self.retry_config, self.metrics)

    # --- Node pools ---

    async def list_node_pools(self) -> List[NodePool]:
        payload = await self._call("ListNodePools", self._client.get, f"{self.base_path()}/nodepool")
        return _parse_list(NodePool, payload)

    async def get_node_pool(self, pool_id: str) -> NodePool:
        payload = await self._call("GetNodePool", self._client.get, f"{self.base_path()}/nodepool/{pool_id}")
        return _parse(NodePool, payload)

    async def create_node_pool(self, request: CreateNodePoolRequest) -> NodePool:
        payload = await self._call(
            "CreateNodePool", self._client.post, f"{self.base_path()}/nodepool", **request.to_api()
        )
        return _parse(NodePool, payload)

    async def update_node_pool(self, pool_id: str, request: UpdateNodePoolRequest) -> Optional[NodePool]:
        """Updates a node pool, mainly to change its desired node count."""
        payload = await self._call(
            "UpdateNodePool", self._client.put, f"{self.base_path()}/nodepool/{pool_id}", **request.to_api()
        )
        # The API answers PUT with an empty body.
        return _parse(NodePool, payload) if payload else None

    async def delete_node_pool(self, pool_id: str) -> None:
        await self._call("DeleteNodePool", self._client.delete, f"{self.base_path()}/nodepool/{pool_id}")

    async def list_pool_nodes(self, pool_id: str) -> List[Node]:
        payload = await self._call(
            "ListPoolNodes", self._client.get, f"{self.base_path()}/nodepool/{pool_id}/nodes"
        )
        return _parse_list(Node, payload)

    async def delete_node(self, node_id: str) -> None:
        """Removes one specific node, as opposed to lowering a pool's desired count."""
        await self._call("DeleteNode", self._client.delete, f"{self.base_path()}/node/{node_id}")

    # --- Flavors and regions ---

    async def list_flavors(self) -> List[ClusterFlavor]:
        """Flavors from the cluster-scoped endpoint (RAM in MiB)."""
        payload = await self._call("ListFlavors", self._client.get, f"{self.base_path()}/flavors")
        return _parse_list(ClusterFlavor, payload)

    async def list_kube_regions(self) -> List[str]:
        payload = await self._call("ListKubeRegions", self._client.get, f"{self.capabilities_base_path()}/regions")
        return list(payload or [])

    async def list_kube_flavors(self, region: str) -> List[CapabilityFlavor]:
        """Flavors from the capabilities endpoint (RAM in GiB)."""
        payload = await self._call(
            "ListKubeFlavors", self._client.get, f"{self.capabilities_base_path()}/flavors", region=region
        )
        return _parse_list(CapabilityFlavor, payload)

    # --- Cluster ---

    async def get_cluster(self) -> KubeCluster:
        payload = await self._call("GetCluster", self._client.get, self.base_path())
        return _parse(KubeCluster, payload)

    async def auto_detect_region(self) -> str:
        """Fetches the cluster metadata and adopts its region."""
        cluster = await self.get_cluster()
        self._region = cluster.region
        logger.info("Auto-detected region %s from MKS cluster %s", cluster.region, self.kube_id)
        return cluster.region

    async def ensure_region(self) -> str:
        """Returns the configured region, detecting it once when none is set."""
        if self._region:
            return self._region
        async with self._region_lock:
            if not self._region:
                await self.auto_detect_region()
        return self._region
