"""
Typed watch events.

Raw watch payloads are turned into one of two closed variants, ClusterEvent
or PodEvent. Anything that does not fit is dropped by returning None.
"""
from enum import Enum
from typing import Any, Dict, Optional

from kubernetes_asyncio.client import V1Pod
from pydantic import BaseModel, ValidationError

from couchdb_operator.models.cluster import CouchDBCluster
from couchdb_operator.models.pod import MemberPod


class EventType(str, Enum):
    """Watch event types."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


class ClusterEvent(BaseModel):
    type: EventType
    cluster: CouchDBCluster


class PodEvent(BaseModel):
    type: EventType
    pod: MemberPod


def _event_type(raw: Any) -> Optional[EventType]:
    if not isinstance(raw, dict):
        return None
    try:
        return EventType(raw.get("type"))
    except ValueError:
        return None


def parse_cluster_event(raw: Dict[str, Any]) -> Optional[ClusterEvent]:
    """Parse a CouchDB resource watch event, or None if unrecognized."""
    event_type = _event_type(raw)
    body = raw.get("object") if event_type else None
    if not isinstance(body, dict):
        return None
    try:
        return ClusterEvent(type=event_type, cluster=CouchDBCluster.from_resource(body))
    except ValidationError:
        return None


def parse_pod_event(raw: Dict[str, Any]) -> Optional[PodEvent]:
    """
    Parse a pod watch event, or None if unrecognized.

    Pods without the `app=couchdb` label are not member pods and are dropped.
    """
    event_type = _event_type(raw)
    obj = raw.get("object") if event_type else None
    if not isinstance(obj, V1Pod) or obj.metadata is None:
        return None
    try:
        pod = MemberPod.from_k8s(obj)
    except ValidationError:
        return None
    if not pod.is_couchdb:
        return None
    return PodEvent(type=event_type, pod=pod)
