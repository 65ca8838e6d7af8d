# tests/models/test_node_class.py

import pytest
from pydantic import ValidationError

from karpenter_ovhcloud.models.node_class import OVHNodeClass, OVHNodeClassSpec

NODE_CLASS_SPEC = {
    "serviceName": "proj-123",
    "kubeId": "kube-abc",
    "region": "GRA7",
    "credentialsSecretRef": {"name": "ovh-credentials", "namespace": "karpenter"},
}


def test_optional_fields_default():
    spec = OVHNodeClassSpec.model_validate(NODE_CLASS_SPEC)

    assert spec.monthly_billed is False
    assert spec.anti_affinity is False
    assert spec.tags == {}


@pytest.mark.parametrize("missing", ["serviceName", "kubeId", "region", "credentialsSecretRef"])
def test_required_fields(missing):
    payload = {k: v for k, v in NODE_CLASS_SPEC.items() if k != missing}

    with pytest.raises(ValidationError):
        OVHNodeClassSpec.model_validate(payload)


@pytest.mark.parametrize(
    "conditions, ready",
    [
        ([], True),
        ([{"type": "Ready", "status": "True"}], True),
        ([{"type": "Ready", "status": "Unknown"}], True),
        ([{"type": "Ready", "status": "False", "message": "bad credentials"}], False),
        ([{"type": "CredentialsValid", "status": "False"}], True),
    ],
)
def test_readiness(conditions, ready):
    node_class = OVHNodeClass.from_resource(
        {"metadata": {"name": "default"}, "spec": NODE_CLASS_SPEC, "status": {"conditions": conditions}}
    )

    assert node_class.is_ready() is ready
