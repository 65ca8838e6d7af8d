# src/karpenter_ovhcloud/models/instance_type.py
"""
Normalized instance-type records handed to the scheduler.

Flavors arrive from two endpoints that disagree on the memory unit. Both are
normalized into `NormalizedFlavor`, which keeps the unit as an explicit tag so
capacity is always rendered with the unit the endpoint actually used.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..utils.k8s_utils import subtract_resources
from .labels import LABEL_TOPOLOGY_ZONE
from .ovh import CapabilityFlavor, ClusterFlavor


class MemoryUnit(str, Enum):
    """Kubernetes quantity suffix matching the unit a flavor's RAM was reported in."""

    GIB = "Gi"
    MIB = "Mi"


class NormalizedFlavor(BaseModel):
    name: str
    category: str = ""
    vcpus: int
    memory: int = Field(..., description="Memory amount, expressed in `memory_unit`")
    memory_unit: MemoryUnit
    disk_gib: int = 0
    gpus: int = 0

    @classmethod
    def from_capability(cls, flavor: CapabilityFlavor) -> "NormalizedFlavor":
        return cls(
            name=flavor.name,
            category=flavor.category,
            vcpus=flavor.vcpus,
            memory=flavor.ram,
            memory_unit=MemoryUnit.GIB,
            gpus=flavor.gpus,
        )

    @classmethod
    def from_cluster(cls, flavor: ClusterFlavor) -> "NormalizedFlavor":
        return cls(
            name=flavor.name,
            category=flavor.category,
            vcpus=flavor.vcpus,
            memory=flavor.ram,
            memory_unit=MemoryUnit.MIB,
            disk_gib=flavor.disk,
            gpus=flavor.gpus,
        )

    @property
    def memory_quantity(self) -> str:
        return f"{self.memory}{self.memory_unit.value}"

    @property
    def memory_gib(self) -> float:
        if self.memory_unit == MemoryUnit.GIB:
            return float(self.memory)
        return self.memory / 1024


class Requirement(BaseModel):
    """An exact-match scheduling constraint: `key In values`."""

    key: str
    operator: str = "In"
    values: List[str] = Field(default_factory=list)


class Offering(BaseModel):
    """A (zone, price) option for an instance type."""

    requirements: List[Requirement] = Field(default_factory=list)
    price: float
    available: bool = True

    @property
    def zone(self) -> Optional[str]:
        for requirement in self.requirements:
            if requirement.key == LABEL_TOPOLOGY_ZONE and requirement.values:
                return requirement.values[0]
        return None


class InstanceType(BaseModel):
    name: str
    requirements: List[Requirement] = Field(default_factory=list)
    capacity: Dict[str, str] = Field(default_factory=dict)
    kube_reserved: Dict[str, str] = Field(default_factory=dict, description="Fixed reservation overhead")
    offerings: List[Offering] = Field(default_factory=list)

    def allocatable(self) -> Dict[str, str]:
        """Capacity minus the fixed reservation overhead."""
        return subtract_resources(self.capacity, self.kube_reserved)

    def cheapest_offering(self) -> Optional[Offering]:
        available = [offering for offering in self.offerings if offering.available]
        if not available:
            return None
        return min(available, key=lambda offering: offering.price)


class RepairPolicy(BaseModel):
    """How long a node may report a condition before it is considered unhealthy."""

    condition_type: str
    condition_status: str
    toleration_seconds: int
