# src/karpenter_ovhcloud/models/node_class.py

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SecretReference(BaseModel):
    name: str = Field(..., min_length=1)
    namespace: str = Field(..., min_length=1)


class Condition(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    status: str = Field("Unknown", description="True, False or Unknown")
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[str] = Field(None, alias="lastTransitionTime")


class OVHNodeClassSpec(BaseModel):
    """
    Declarative configuration of the pools created for a node class.

    Attributes:
        service_name: OVHcloud Public Cloud project ID
        kube_id: MKS cluster ID
        region: OVHcloud region (e.g., 'GRA7', 'EU-WEST-PAR')
        credentials_secret_ref: Secret holding the OVH API credentials
        monthly_billed: Monthly billing for new pools; immutable once a pool exists
        anti_affinity: Spread nodes across hypervisors; immutable once a pool exists
        tags: Labels applied to every node of the created pools
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    service_name: str = Field(..., alias="serviceName", min_length=1)
    kube_id: str = Field(..., alias="kubeId", min_length=1)
    region: str = Field(..., min_length=1)
    credentials_secret_ref: SecretReference = Field(..., alias="credentialsSecretRef")
    monthly_billed: bool = Field(False, alias="monthlyBilled")
    anti_affinity: bool = Field(False, alias="antiAffinity")
    tags: Dict[str, str] = Field(default_factory=dict)


class OVHNodeClassStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    conditions: List[Condition] = Field(default_factory=list)
    discovered_flavors: List[str] = Field(default_factory=list, alias="discoveredFlavors")


class OVHNodeClass(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    spec: OVHNodeClassSpec
    status: OVHNodeClassStatus = Field(default_factory=OVHNodeClassStatus)

    @classmethod
    def from_resource(cls, resource: dict) -> "OVHNodeClass":
        """Builds a node class from a raw custom resource dict."""
        return cls(
            name=resource.get("metadata", {}).get("name", ""),
            spec=resource.get("spec", {}),
            status=resource.get("status") or {},
        )

    def ready_condition(self) -> Optional[Condition]:
        for condition in self.status.conditions:
            if condition.type == "Ready":
                return condition
        return None

    def is_ready(self) -> bool:
        """A node class is usable unless its Ready condition is explicitly False."""
        condition = self.ready_condition()
        return condition is None or condition.status != "False"
