"""
Pytest configuration and fixtures.

The Kubernetes and CouchDB adapters are replaced by in-memory fakes that
record every call, including the ones they are told to fail.
"""
import itertools
from typing import Dict, List, Optional, Set, Tuple

import pytest

from couchdb_operator.config.settings import Settings, get_settings
from couchdb_operator.core.readiness import readiness
from couchdb_operator.exceptions import CouchDBAdminError, KubernetesError
from couchdb_operator.models.cluster import (
    INITIALIZED_ANNOTATION,
    CouchDBCluster,
    EnvVar,
    PodPolicy,
    RuntimeState,
)
from couchdb_operator.models.pod import APP_LABEL, APP_NAME, CLUSTER_LABEL, MemberPod, PodPhase

_pod_ips = itertools.count(10)


def make_cluster(
    name: str = "demo",
    namespace: str = "default",
    size: int = 3,
    initialized: Optional[bool] = None,
    env: Optional[List[EnvVar]] = None,
    **policy,
) -> CouchDBCluster:
    annotations = {}
    if initialized is not None:
        annotations[INITIALIZED_ANNOTATION] = "true" if initialized else "false"
    return CouchDBCluster(
        name=name,
        namespace=namespace,
        annotations=annotations,
        version="2.1.0",
        base_image="nicolai86/couchdb",
        size=size,
        pod=PodPolicy(couchdb_env=env or [], **policy),
    )


def make_pod(
    name: str,
    cluster: str = "demo",
    namespace: str = "default",
    phase: PodPhase = PodPhase.RUNNING,
    ready: Optional[List[bool]] = None,
    pod_ip: Optional[str] = None,
) -> MemberPod:
    return MemberPod(
        uid=f"uid-{name}",
        name=name,
        namespace=namespace,
        cluster_name=cluster,
        phase=phase,
        containers_ready=[True] if ready is None else ready,
        pod_ip=pod_ip or f"10.0.0.{next(_pod_ips)}",
        labels={APP_LABEL: APP_NAME, CLUSTER_LABEL: cluster},
    )


class FakePodFleet:
    """Records pod calls; fails the create calls / deletes it is told to."""

    def __init__(self, pods: Optional[List[MemberPod]] = None):
        self.pods: List[MemberPod] = list(pods or [])
        self.create_calls: List[Tuple[str, dict]] = []
        self.delete_calls: List[Tuple[str, str]] = []
        self.fail_create_calls: Set[int] = set()
        self.fail_deletes: Set[str] = set()
        self.list_error: Optional[Exception] = None

    async def list_pods(self, namespace: str, cluster_name: str) -> List[MemberPod]:
        if self.list_error is not None:
            raise self.list_error
        return [
            pod for pod in self.pods
            if pod.namespace == namespace and pod.cluster_name == cluster_name
        ]

    async def create_pod(self, namespace: str, manifest: dict) -> str:
        index = len(self.create_calls)
        self.create_calls.append((namespace, manifest))
        if index in self.fail_create_calls:
            raise KubernetesError("create pod failed: quota exceeded")
        return manifest["metadata"]["name"]

    async def delete_pod(self, namespace: str, name: str) -> None:
        self.delete_calls.append((namespace, name))
        if name in self.fail_deletes:
            raise KubernetesError("delete pod failed: connection reset")


class FakeClusterStore:
    """Holds clusters in memory and applies runtime state writes to them."""

    def __init__(self, clusters: Optional[List[CouchDBCluster]] = None):
        self.clusters: Dict[Tuple[str, str], CouchDBCluster] = {
            (cluster.namespace, cluster.name): cluster for cluster in clusters or []
        }
        self.writes: List[Tuple[str, RuntimeState]] = []
        self.get_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None

    async def get_cluster(self, namespace: str, name: str) -> Optional[CouchDBCluster]:
        if self.get_error is not None:
            raise self.get_error
        return self.clusters.get((namespace, name))

    async def write_runtime_state(self, cluster: CouchDBCluster, state: RuntimeState) -> None:
        self.writes.append((cluster.name, state))
        if self.write_error is not None:
            raise self.write_error
        stored = self.clusters.get((cluster.namespace, cluster.name))
        if stored is not None:
            annotations = dict(stored.annotations)
            annotations[INITIALIZED_ANNOTATION] = "true" if state.initialized else "false"
            self.clusters[(cluster.namespace, cluster.name)] = stored.model_copy(
                update={"annotations": annotations}
            )


class FakeConfigStore:
    """Secrets and config maps as plain dicts of decoded values."""

    def __init__(self):
        self.secrets: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.config_maps: Dict[Tuple[str, str], Dict[str, str]] = {}
        self.secret_error: Optional[Exception] = None
        self.reads: List[Tuple[str, str, str, str]] = []

    async def read_secret_key(self, namespace: str, name: str, key: str) -> Optional[str]:
        self.reads.append(("secret", namespace, name, key))
        if self.secret_error is not None:
            raise self.secret_error
        return self.secrets.get((namespace, name), {}).get(key)

    async def read_config_map_key(self, namespace: str, name: str, key: str) -> Optional[str]:
        self.reads.append(("configmap", namespace, name, key))
        return self.config_maps.get((namespace, name), {}).get(key)


class FakeAdminClient:
    """Records add_node calls; fails those targeting `fail_hosts`."""

    def __init__(self):
        self.calls: List[dict] = []
        self.fail_hosts: Set[str] = set()

    async def add_node(self, seed_address, host, credentials, port=5984):
        self.calls.append({
            "seed": seed_address,
            "host": host,
            "port": port,
            "username": credentials.username,
            "password": credentials.password.get_secret_value(),
        })
        if host in self.fail_hosts:
            raise CouchDBAdminError("conflict", "node already added", status_code=409)
        return {"ok": True}


@pytest.fixture
def pod_fleet():
    return FakePodFleet()


@pytest.fixture
def cluster_store():
    return FakeClusterStore()


@pytest.fixture
def config_store():
    return FakeConfigStore()


@pytest.fixture
def admin_client():
    return FakeAdminClient()


@pytest.fixture
def operator_env(monkeypatch):
    """Required operator identity in the environment."""
    monkeypatch.setenv("OPERATOR_NAMESPACE", "couchdb-system")
    monkeypatch.setenv("OPERATOR_NAME", "couchdb-operator-7d9f8")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_settings(operator_env):
    """Settings for testing, without reading a .env file."""
    return Settings(_env_file=None, prometheus_enabled=False)


@pytest.fixture
def reset_readiness():
    readiness.reset()
    yield readiness
    readiness.reset()
