# tests/conftest.py

import copy
import re
import threading
import time

import ovh.exceptions
import pytest

from karpenter_ovhcloud.clients.ovh_client import OVHClient
from karpenter_ovhcloud.core.metrics import InMemoryMetricsSink
from karpenter_ovhcloud.core.node_class import StaticNodeClassResolver
from karpenter_ovhcloud.core.retry import RetryConfig
from karpenter_ovhcloud.models.labels import LABEL_TOPOLOGY_ZONE, LABEL_INSTANCE_TYPE
from karpenter_ovhcloud.models.node_class import OVHNodeClass, OVHNodeClassSpec, SecretReference
from karpenter_ovhcloud.models.nodeclaim import NodeClaim, NodeClaimSpec, NodeClassRef, NodeSelectorRequirement

SERVICE_NAME = "proj-123"
KUBE_ID = "kube-abc"
REGION = "GRA7"

FAST_RETRY = RetryConfig(max_retries=2, initial_backoff=0.001, max_backoff=0.002, backoff_factor=2.0)


class FakeOVHAPI:
    """
    In-memory stand-in for `ovh.Client`, serving the MKS node pool endpoints.

    New nodes are added as READY with an instance ID whenever a pool's desired
    count grows, unless `auto_ready` is False.
    """

    def __init__(self, service_name=SERVICE_NAME, kube_id=KUBE_ID, region=REGION):
        self.base = f"/cloud/project/{service_name}/kube/{kube_id}"
        self.caps = f"/cloud/project/{service_name}/capabilities/kube"
        self.cluster = {"id": kube_id, "name": "test-cluster", "region": region, "version": "1.31"}
        self.pools = {}
        self.nodes = {}
        self.capability_flavors = []
        self.cluster_flavors = []
        self.regions = [region]
        self.calls = []
        self.create_bodies = []
        self.failures = {}
        self.delays = {}
        self.auto_ready = True
        self._counter = 0
        self._lock = threading.Lock()

    # --- helpers ---

    def _next(self):
        self._counter += 1
        return self._counter

    def fail(self, method, path, *errors):
        """Queues errors raised by the next calls to (method, path)."""
        self.failures.setdefault((method, path), []).extend(errors)

    def delay(self, method, path, seconds):
        """Makes every call to (method, path) block for `seconds` before it is served."""
        self.delays[(method, path)] = seconds

    def _maybe_fail(self, method, path):
        queue = self.failures.get((method, path))
        if queue:
            raise queue.pop(0)

    def add_pool(self, name, flavor="b3-8", desired=1, monthly_billed=False, anti_affinity=False, zone=None):
        with self._lock:
            pool_id = f"pool-{self._next()}"
            self.pools[pool_id] = {
                "id": pool_id,
                "name": name,
                "flavor": flavor,
                "desiredNodes": desired,
                "currentNodes": desired,
                "monthlyBilled": monthly_billed,
                "antiAffinity": anti_affinity,
                "availabilityZones": [zone] if zone else [],
                "status": "READY",
            }
            self.nodes[pool_id] = []
            self._sync_nodes(pool_id)
        return pool_id

    def add_node(self, pool_id, status="READY", instance_id=None):
        with self._lock:
            n = self._next()
            node = {
                "id": f"node-{n}",
                "nodePoolId": pool_id,
                "instanceId": instance_id if instance_id is not None else f"inst-{n}",
                "name": f"{self.pools[pool_id]['name']}-node-{n}",
                "status": status,
                "flavor": self.pools[pool_id]["flavor"],
            }
            self.nodes[pool_id].append(node)
        return node

    def _sync_nodes(self, pool_id):
        if not self.auto_ready:
            return
        pool = self.pools[pool_id]
        while len(self.nodes[pool_id]) < pool["desiredNodes"]:
            n = self._next()
            self.nodes[pool_id].append(
                {
                    "id": f"node-{n}",
                    "nodePoolId": pool_id,
                    "instanceId": f"inst-{n}",
                    "name": f"{pool['name']}-node-{n}",
                    "status": "READY",
                    "flavor": pool["flavor"],
                }
            )

    def _pool_or_404(self, pool_id):
        if pool_id not in self.pools:
            raise ovh.exceptions.ResourceNotFoundError(f"Node pool {pool_id} does not exist")
        return self.pools[pool_id]

    # --- ovh.Client surface ---

    def get(self, path, **params):
        with self._lock:
            self.calls.append(("GET", path, params))
            self._maybe_fail("GET", path)
            if path == self.base:
                return copy.deepcopy(self.cluster)
            if path == f"{self.base}/nodepool":
                return copy.deepcopy(list(self.pools.values()))
            if path == f"{self.base}/flavors":
                return copy.deepcopy(self.cluster_flavors)
            if path == f"{self.caps}/regions":
                return list(self.regions)
            if path == f"{self.caps}/flavors":
                return copy.deepcopy(self.capability_flavors)
            match = re.fullmatch(re.escape(self.base) + r"/nodepool/([^/]+)/nodes", path)
            if match:
                self._pool_or_404(match.group(1))
                return copy.deepcopy(self.nodes[match.group(1)])
            match = re.fullmatch(re.escape(self.base) + r"/nodepool/([^/]+)", path)
            if match:
                return copy.deepcopy(self._pool_or_404(match.group(1)))
        raise ovh.exceptions.ResourceNotFoundError(f"Unknown path {path}")

    def post(self, path, **body):
        with self._lock:
            self.calls.append(("POST", path, body))
            self._maybe_fail("POST", path)
            if path != f"{self.base}/nodepool":
                raise ovh.exceptions.ResourceNotFoundError(f"Unknown path {path}")
            self.create_bodies.append(copy.deepcopy(body))
            pool_id = f"pool-{self._next()}"
            self.pools[pool_id] = {
                "id": pool_id,
                "name": body["name"],
                "flavor": body["flavorName"],
                "desiredNodes": body["desiredNodes"],
                "currentNodes": 0,
                "monthlyBilled": body.get("monthlyBilled", False),
                "antiAffinity": body.get("antiAffinity", False),
                "availabilityZones": body.get("availabilityZones", []),
                "status": "INSTALLING",
            }
            self.nodes[pool_id] = []
            self._sync_nodes(pool_id)
            return copy.deepcopy(self.pools[pool_id])

    def put(self, path, **body):
        time.sleep(self.delays.get(("PUT", path), 0))
        with self._lock:
            self.calls.append(("PUT", path, body))
            self._maybe_fail("PUT", path)
            match = re.fullmatch(re.escape(self.base) + r"/nodepool/([^/]+)", path)
            if not match:
                raise ovh.exceptions.ResourceNotFoundError(f"Unknown path {path}")
            pool = self._pool_or_404(match.group(1))
            pool["desiredNodes"] = body["desiredNodes"]
            if self.auto_ready:
                del self.nodes[match.group(1)][body["desiredNodes"] :]
            self._sync_nodes(match.group(1))
            return None

    def delete(self, path, **params):
        with self._lock:
            self.calls.append(("DELETE", path, params))
            self._maybe_fail("DELETE", path)
            match = re.fullmatch(re.escape(self.base) + r"/nodepool/([^/]+)", path)
            if match:
                self._pool_or_404(match.group(1))
                del self.pools[match.group(1)]
                del self.nodes[match.group(1)]
                return None
            match = re.fullmatch(re.escape(self.base) + r"/node/([^/]+)", path)
            if match:
                for pool_id, nodes in self.nodes.items():
                    self.nodes[pool_id] = [n for n in nodes if n["id"] != match.group(1)]
                return None
        raise ovh.exceptions.ResourceNotFoundError(f"Unknown path {path}")

    def count(self, method, path=None):
        return len([c for c in self.calls if c[0] == method and (path is None or c[1] == path)])


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch):
    """
    Runs for every test so the config is predictable and isolated from the
    real environment.
    """
    monkeypatch.setenv("OVH_ENDPOINT", "ovh-eu")
    monkeypatch.setenv("OVH_APPLICATION_KEY", "test-ak")
    monkeypatch.setenv("OVH_APPLICATION_SECRET", "test-as")
    monkeypatch.setenv("OVH_CONSUMER_KEY", "test-ck")
    monkeypatch.setenv("OVH_SERVICE_NAME", SERVICE_NAME)
    monkeypatch.setenv("OVH_KUBE_ID", KUBE_ID)
    monkeypatch.delenv("OVH_REGION", raising=False)


@pytest.fixture(autouse=True)
def clear_factory_singletons():
    from karpenter_ovhcloud.core import factory

    factory.get_ovh_client.cache_clear()
    factory.get_pricing_client.cache_clear()
    factory.get_metrics_sink.cache_clear()
    yield
    factory.get_ovh_client.cache_clear()
    factory.get_pricing_client.cache_clear()
    factory.get_metrics_sink.cache_clear()


@pytest.fixture
def fake_api():
    return FakeOVHAPI()


@pytest.fixture
def metrics():
    return InMemoryMetricsSink()


@pytest.fixture
def ovh_client(fake_api, metrics):
    return OVHClient(
        None,
        service_name=SERVICE_NAME,
        kube_id=KUBE_ID,
        region=REGION,
        retry_config=FAST_RETRY,
        client=fake_api,
        metrics=metrics,
    )


def make_node_class(name="default", monthly_billed=False, anti_affinity=False, tags=None, conditions=None):
    return OVHNodeClass(
        name=name,
        spec=OVHNodeClassSpec(
            service_name=SERVICE_NAME,
            kube_id=KUBE_ID,
            region=REGION,
            credentials_secret_ref=SecretReference(name="ovh-credentials", namespace="karpenter"),
            monthly_billed=monthly_billed,
            anti_affinity=anti_affinity,
            tags=tags or {},
        ),
        status={"conditions": conditions or []},
    )


def make_claim(flavor="b3-8", zone=None, node_class="default", name="claim-1", labels=None, taints=None):
    requirements = []
    if flavor:
        requirements.append(NodeSelectorRequirement(key=LABEL_INSTANCE_TYPE, values=[flavor]))
    if zone:
        requirements.append(NodeSelectorRequirement(key=LABEL_TOPOLOGY_ZONE, values=[zone]))
    return NodeClaim(
        name=name,
        labels=labels or {},
        spec=NodeClaimSpec(
            requirements=requirements,
            taints=taints or [],
            node_class_ref=NodeClassRef(group="karpenter.ovhcloud.sh", kind="OVHNodeClass", name=node_class),
        ),
    )


@pytest.fixture
def node_class():
    return make_node_class()


@pytest.fixture
def resolver(node_class):
    return StaticNodeClassResolver({node_class.name: node_class})


@pytest.fixture
def claim_factory():
    return make_claim


@pytest.fixture
def node_class_factory():
    return make_node_class
