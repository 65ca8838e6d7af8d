# src/karpenter_ovhcloud/models/labels.py
"""
Well-known label, annotation and naming constants shared by the pool
orchestrator and the instance catalog.

Pool names and provider IDs built from these constants are how pools and
nodes are rediscovered after a restart, so they must not change.
"""

GROUP = "karpenter.ovhcloud.sh"
NODE_CLASS_VERSION = "v1alpha1"
NODE_CLASS_PLURAL = "ovhnodeclasses"

# Instance labels
LABEL_INSTANCE_CATEGORY = f"{GROUP}/instance-category"

# Annotations binding a node claim to its OVH pool and node
ANNOTATION_POOL_ID = f"{GROUP}/pool-id"
ANNOTATION_NODE_ID = f"{GROUP}/node-id"
ANNOTATION_NODE_NAME = f"{GROUP}/node-name"

# Kubernetes and Karpenter well-known labels
LABEL_INSTANCE_TYPE = "node.kubernetes.io/instance-type"
LABEL_TOPOLOGY_ZONE = "topology.kubernetes.io/zone"
LABEL_ARCH = "kubernetes.io/arch"
LABEL_OS = "kubernetes.io/os"
LABEL_CAPACITY_TYPE = "karpenter.sh/capacity-type"
LABEL_NODEPOOL = "karpenter.sh/nodepool"
LABEL_REGISTERED = "karpenter.sh/registered"
LABEL_MANAGED_BY = "managed-by"

MANAGED_BY_VALUE = "karpenter"
CAPACITY_TYPE_ON_DEMAND = "on-demand"
ARCH_AMD64 = "amd64"
OS_LINUX = "linux"

# Resource names
RESOURCE_CPU = "cpu"
RESOURCE_MEMORY = "memory"
RESOURCE_PODS = "pods"
RESOURCE_EPHEMERAL_STORAGE = "ephemeral-storage"
RESOURCE_GPU = "nvidia.com/gpu"

# OVH MKS sets the OpenStack instance ID as the node provider ID.
PROVIDER_ID_PREFIX = "openstack:///"
POOL_NAME_PREFIX = "karpenter-"
DEFAULT_DESIRED_NODES = 1
NODE_STATUS_READY = "READY"
