# src/karpenter_ovhcloud/core/node_class.py
"""
Resolution of the OVHNodeClass referenced by a node claim.
"""

import logging
from typing import Dict, Optional

from kubernetes_asyncio.client.exceptions import ApiException

from ..models.node_class import OVHNodeClass
from ..models.nodeclaim import NodeClaim
from .exceptions import NodeClassNotFoundError
from .k8s_client import NodeClassAPI

logger = logging.getLogger(__name__)


def node_class_name(node_claim: NodeClaim) -> str:
    ref = node_claim.spec.node_class_ref
    if ref is None or not ref.name:
        raise NodeClassNotFoundError(f"node claim {node_claim.name!r} has no node class reference")
    return ref.name


class NodeClassResolver:
    """Base class. Subclasses look up the node class a claim refers to."""

    async def resolve(self, node_claim: NodeClaim) -> OVHNodeClass:
        """
        Raises:
            NodeClassNotFoundError: When the referenced node class does not exist.
        """
        raise NotImplementedError


class StaticNodeClassResolver(NodeClassResolver):
    """Resolves node classes from a fixed in-memory map."""

    def __init__(self, node_classes: Optional[Dict[str, OVHNodeClass]] = None):
        self.node_classes = dict(node_classes or {})

    async def resolve(self, node_claim: NodeClaim) -> OVHNodeClass:
        name = node_class_name(node_claim)
        node_class = self.node_classes.get(name)
        if node_class is None:
            raise NodeClassNotFoundError(f"node class {name!r} not found")
        return node_class


class KubeNodeClassResolver(NodeClassResolver):
    """Reads the cluster-scoped OVHNodeClass custom resource from the API server."""

    def __init__(self, api=None):
        self.node_classes = NodeClassAPI(api)

    async def resolve(self, node_claim: NodeClaim) -> OVHNodeClass:
        name = node_class_name(node_claim)
        try:
            resource = await self.node_classes.get(name)
        except ApiException as e:
            if e.status == 404:
                raise NodeClassNotFoundError(f"node class {name!r} not found") from e
            raise
        logger.debug("Resolved node class %s", name)
        return OVHNodeClass.from_resource(resource)
