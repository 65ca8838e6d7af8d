# tests/core/test_node_class.py

from unittest.mock import AsyncMock, MagicMock

import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from karpenter_ovhcloud.core.exceptions import NodeClassNotFoundError
from karpenter_ovhcloud.core.node_class import KubeNodeClassResolver, StaticNodeClassResolver
from karpenter_ovhcloud.models.nodeclaim import NodeClaim

NODE_CLASS_RESOURCE = {
    "apiVersion": "karpenter.ovhcloud.sh/v1alpha1",
    "kind": "OVHNodeClass",
    "metadata": {"name": "default"},
    "spec": {
        "serviceName": "proj-123",
        "kubeId": "kube-abc",
        "region": "GRA7",
        "credentialsSecretRef": {"name": "ovh-credentials", "namespace": "karpenter"},
        "monthlyBilled": True,
        "tags": {"team": "data"},
    },
    "status": {"conditions": [{"type": "Ready", "status": "True", "lastTransitionTime": "2025-01-01T00:00:00Z"}]},
}


@pytest.mark.asyncio
async def test_kube_resolver_reads_custom_resource(claim_factory):
    api = MagicMock()
    api.get_cluster_custom_object = AsyncMock(return_value=NODE_CLASS_RESOURCE)
    resolver = KubeNodeClassResolver(api=api)

    node_class = await resolver.resolve(claim_factory())

    api.get_cluster_custom_object.assert_awaited_once_with(
        group="karpenter.ovhcloud.sh", version="v1alpha1", plural="ovhnodeclasses", name="default"
    )
    assert node_class.name == "default"
    assert node_class.spec.service_name == "proj-123"
    assert node_class.spec.monthly_billed is True
    assert node_class.spec.anti_affinity is False
    assert node_class.spec.tags == {"team": "data"}
    assert node_class.is_ready()


@pytest.mark.asyncio
async def test_kube_resolver_maps_404_to_not_found(claim_factory):
    api = MagicMock()
    api.get_cluster_custom_object = AsyncMock(side_effect=ApiException(status=404, reason="Not Found"))
    resolver = KubeNodeClassResolver(api=api)

    with pytest.raises(NodeClassNotFoundError):
        await resolver.resolve(claim_factory())


@pytest.mark.asyncio
async def test_kube_resolver_propagates_other_api_errors(claim_factory):
    api = MagicMock()
    api.get_cluster_custom_object = AsyncMock(side_effect=ApiException(status=500, reason="Internal"))
    resolver = KubeNodeClassResolver(api=api)

    with pytest.raises(ApiException):
        await resolver.resolve(claim_factory())


@pytest.mark.asyncio
async def test_claim_without_node_class_ref():
    resolver = StaticNodeClassResolver()

    with pytest.raises(NodeClassNotFoundError):
        await resolver.resolve(NodeClaim(name="orphan"))


@pytest.mark.asyncio
async def test_static_resolver(claim_factory, node_class):
    resolver = StaticNodeClassResolver({"default": node_class})

    assert await resolver.resolve(claim_factory()) is node_class
    with pytest.raises(NodeClassNotFoundError):
        await resolver.resolve(claim_factory(node_class="other"))
