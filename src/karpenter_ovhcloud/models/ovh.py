# src/karpenter_ovhcloud/models/ovh.py
"""
Pydantic models for the OVHcloud Managed Kubernetes (MKS) REST API.

Field names are snake_case in Python and mapped to the camelCase JSON used by
the API through aliases. Unknown fields returned by the API are ignored.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .nodeclaim import Taint


class OVHModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_api(self) -> dict:
        """Serializes the model to the JSON body expected by the API."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Credentials(BaseModel):
    """OVH API credentials used to sign authenticated requests."""

    endpoint: str = Field("ovh-eu", description="API endpoint name (ovh-eu, ovh-ca, ...) or URL")
    application_key: str = Field(..., description="Application key")
    application_secret: str = Field(..., description="Application secret")
    consumer_key: str = Field(..., description="Consumer key")


class NodePoolTemplateMetadata(OVHModel):
    labels: Dict[str, str] = Field(default_factory=dict)
    # The MKS API rejects templates without these two, even when empty.
    annotations: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)


class NodePoolTemplateSpec(OVHModel):
    taints: List[Taint] = Field(default_factory=list)
    unschedulable: bool = False


class NodePoolTemplate(OVHModel):
    metadata: NodePoolTemplateMetadata = Field(default_factory=NodePoolTemplateMetadata)
    spec: NodePoolTemplateSpec = Field(default_factory=NodePoolTemplateSpec)


class NodePool(OVHModel):
    """A group of homogeneous MKS nodes sharing one flavor."""

    id: str
    name: str
    flavor: str = Field("", description="Flavor name of the pool's nodes")
    desired_nodes: int = Field(0, alias="desiredNodes")
    current_nodes: int = Field(0, alias="currentNodes")
    min_nodes: int = Field(0, alias="minNodes")
    max_nodes: int = Field(0, alias="maxNodes")
    autoscale: bool = False
    monthly_billed: bool = Field(False, alias="monthlyBilled")
    anti_affinity: bool = Field(False, alias="antiAffinity")
    status: str = ""
    availability_zone: Optional[str] = Field(None, alias="availabilityZone")
    availability_zones: List[str] = Field(default_factory=list, alias="availabilityZones")
    template: Optional[NodePoolTemplate] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

    @property
    def zone(self) -> Optional[str]:
        if self.availability_zone:
            return self.availability_zone
        if self.availability_zones:
            return self.availability_zones[0]
        return None


class CreateNodePoolRequest(OVHModel):
    name: str
    flavor_name: str = Field(..., alias="flavorName")
    desired_nodes: int = Field(..., alias="desiredNodes")
    min_nodes: Optional[int] = Field(None, alias="minNodes")
    max_nodes: Optional[int] = Field(None, alias="maxNodes")
    autoscale: bool = False
    monthly_billed: bool = Field(False, alias="monthlyBilled")
    anti_affinity: bool = Field(False, alias="antiAffinity")
    availability_zones: Optional[List[str]] = Field(None, alias="availabilityZones")
    template: Optional[NodePoolTemplate] = None


class UpdateNodePoolRequest(OVHModel):
    desired_nodes: int = Field(..., alias="desiredNodes")


class Node(OVHModel):
    """A concrete instance inside a node pool."""

    id: str
    pool_id: str = Field("", alias="nodePoolId")
    instance_id: str = Field("", alias="instanceId")
    name: str = ""
    status: str = ""
    flavor: str = ""
    version: Optional[str] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    is_up_to_date: bool = Field(False, alias="isUpToDate")


class ClusterFlavor(OVHModel):
    """Flavor as returned by the cluster-scoped endpoint. RAM is in MiB."""

    name: str
    category: str = ""
    vcpus: int = 0
    ram: int = Field(0, description="Memory in MiB")
    disk: int = Field(0, description="Disk in GiB")
    gpus: int = 0
    available: bool = True
    state: str = ""


class CapabilityFlavor(OVHModel):
    """Flavor as returned by the capabilities endpoint. RAM is in GiB."""

    name: str
    category: str = ""
    vcpus: int = Field(0, alias="vCPUs")
    ram: int = Field(0, description="Memory in GiB")
    gpus: int = 0
    state: str = ""


class PrivateNetworkConfig(OVHModel):
    default_vrack_gateway: Optional[str] = Field(None, alias="defaultVrackGateway")
    private_network_routing_as_default: bool = Field(False, alias="privateNetworkRoutingAsDefault")


class KubeCluster(OVHModel):
    id: str
    name: str = ""
    region: str = Field("", description="Region of the cluster, e.g. 'EU-WEST-PAR'")
    version: str = ""
    status: str = ""
    control_plane_is_up_to_date: bool = Field(False, alias="controlPlaneIsUpToDate")
    is_up_to_date: bool = Field(False, alias="isUpToDate")
    next_upgrade_versions: List[str] = Field(default_factory=list, alias="nextUpgradeVersions")
    nodes_url: Optional[str] = Field(None, alias="nodesUrl")
    private_network_id: Optional[str] = Field(None, alias="privateNetworkId")
    private_network_configuration: Optional[PrivateNetworkConfig] = Field(None, alias="privateNetworkConfiguration")
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")
