# src/karpenter_ovhcloud/core/k8s_client.py
"""
Kubernetes access for the cluster-scoped OVHNodeClass custom resources
(`ovhnodeclasses.karpenter.ovhcloud.sh/v1alpha1`).
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from kubernetes_asyncio import client, config

from ..models.labels import GROUP, NODE_CLASS_PLURAL, NODE_CLASS_VERSION
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_config_lock = asyncio.Lock()
_config_loaded = False


async def load_kube_config() -> None:
    """
    Loads the in-cluster service account config, else the local kubeconfig,
    once per process.

    Raises:
        ConfigurationError: When neither is available.
    """
    global _config_loaded

    if _config_loaded:
        return

    async with _config_lock:
        if _config_loaded:
            return

        try:
            config.load_incluster_config()
            logger.info("Reading node classes with the in-cluster service account.")
            _config_loaded = True
            return
        except config.ConfigException:
            logger.debug("Not running in a cluster, trying kubeconfig.")

        try:
            await config.load_kube_config()
        except (config.ConfigException, OSError) as e:
            raise ConfigurationError(f"No Kubernetes configuration available to read node classes: {e}") from e
        logger.info("Reading node classes with the local kubeconfig.")
        _config_loaded = True


class NodeClassAPI:
    """Reads OVHNodeClass objects through the CustomObjectsApi."""

    def __init__(self, custom_objects_api: Optional[client.CustomObjectsApi] = None):
        self._api = custom_objects_api

    async def _custom_objects(self) -> client.CustomObjectsApi:
        if self._api is None:
            await load_kube_config()
            self._api = client.CustomObjectsApi()
        return self._api

    async def get(self, name: str) -> Dict[str, Any]:
        """Returns the raw node class object. Raises ApiException (404 when absent)."""
        api = await self._custom_objects()
        return await api.get_cluster_custom_object(
            group=GROUP,
            version=NODE_CLASS_VERSION,
            plural=NODE_CLASS_PLURAL,
            name=name,
        )
