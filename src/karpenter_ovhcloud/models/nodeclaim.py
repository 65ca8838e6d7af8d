# src/karpenter_ovhcloud/models/nodeclaim.py
"""
Node claim records exchanged with the reconciliation framework.

A node claim is a request for one compute node. The orchestrator reads its
requirements and taints, and on success returns a copy carrying the
provider ID, capacity and the annotations binding it to an OVH pool/node.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Taint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    value: Optional[str] = None
    effect: str = Field(..., description="NoSchedule, PreferNoSchedule or NoExecute")


class NodeSelectorRequirement(BaseModel):
    key: str
    operator: str = "In"
    values: List[str] = Field(default_factory=list)


class NodeClassRef(BaseModel):
    group: str = ""
    kind: str = ""
    name: str


class NodeClaimSpec(BaseModel):
    requirements: List[NodeSelectorRequirement] = Field(default_factory=list)
    taints: List[Taint] = Field(default_factory=list)
    node_class_ref: Optional[NodeClassRef] = None


class NodeClaimStatus(BaseModel):
    provider_id: str = ""
    node_name: str = ""
    capacity: Dict[str, str] = Field(default_factory=dict)
    allocatable: Dict[str, str] = Field(default_factory=dict)


class NodeClaim(BaseModel):
    """The orchestrator's view of one provisioned (or requested) compute node."""

    name: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    spec: NodeClaimSpec = Field(default_factory=NodeClaimSpec)
    status: NodeClaimStatus = Field(default_factory=NodeClaimStatus)

    def requirement_values(self, key: str) -> List[str]:
        """Returns the allowed values of the first `In` requirement on `key`."""
        for requirement in self.spec.requirements:
            if requirement.key == key and requirement.values:
                return list(requirement.values)
        return []
