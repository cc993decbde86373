"""
Member pod model and the labeling contract shared by every selector.
"""
from enum import Enum
from typing import Dict, List, Optional

from kubernetes_asyncio.client import V1Pod
from pydantic import BaseModel, Field

APP_LABEL = "app"
APP_NAME = "couchdb"
CLUSTER_LABEL = "cluster"


def cluster_selector(cluster_name: str) -> str:
    """Label selector matching every member pod of a cluster."""
    return f"{APP_LABEL}={APP_NAME},{CLUSTER_LABEL}={cluster_name}"


def member_labels(cluster_name: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Labels for a new member pod.

    User supplied labels are applied first so the reserved app and cluster
    labels always win.
    """
    labels = dict(extra or {})
    labels[APP_LABEL] = APP_NAME
    labels[CLUSTER_LABEL] = cluster_name
    return labels


class PodPhase(str, Enum):
    """Kubernetes pod phases."""

    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


class MemberPod(BaseModel):
    """One pod hosting a single CouchDB node."""

    uid: str = ""
    name: str
    namespace: str
    cluster_name: str = ""
    phase: PodPhase = PodPhase.UNKNOWN
    containers_ready: List[bool] = Field(default_factory=list)
    pod_ip: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)

    @property
    def is_couchdb(self) -> bool:
        return self.labels.get(APP_LABEL) == APP_NAME

    @property
    def is_ready(self) -> bool:
        """Running with every container reporting ready."""
        return self.phase == PodPhase.RUNNING and all(self.containers_ready)

    @classmethod
    def from_k8s(cls, pod: V1Pod) -> "MemberPod":
        """Build a MemberPod from a kubernetes_asyncio V1Pod."""
        metadata = pod.metadata
        status = pod.status
        labels = dict(metadata.labels or {})

        phase = PodPhase.UNKNOWN
        containers_ready: List[bool] = []
        pod_ip = None
        if status is not None:
            try:
                phase = PodPhase(status.phase)
            except ValueError:
                phase = PodPhase.UNKNOWN
            containers_ready = [bool(cs.ready) for cs in status.container_statuses or []]
            pod_ip = status.pod_ip

        return cls(
            uid=metadata.uid or "",
            name=metadata.name,
            namespace=metadata.namespace,
            cluster_name=labels.get(CLUSTER_LABEL, ""),
            phase=phase,
            containers_ready=containers_ready,
            pod_ip=pod_ip,
            labels=labels,
        )
