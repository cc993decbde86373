"""
Member pod manifest construction.

Pure data assembly: given a cluster, build the pod body passed to
create_namespaced_pod.
"""
import uuid
from typing import Any, Dict, List

from couchdb_operator.models.cluster import CouchDBCluster
from couchdb_operator.models.pod import APP_NAME, CLUSTER_LABEL, member_labels

CONTAINER_NAME = "couchdb"
PROBE_INITIAL_DELAY_SECONDS = 20

# (name, port) pairs exposed by every CouchDB container
CONTAINER_PORTS = [
    ("standalone", 5984),   # clustered HTTP API
    ("node-local", 5986),   # node-local HTTP API
    ("epmd", 4369),         # Erlang port mapper
    ("inet", 9100),         # Erlang distribution
]


def generate_pod_name(cluster_name: str) -> str:
    return f"{APP_NAME}-{cluster_name}-{uuid.uuid4().hex[:8]}"


def build_container(image: str, env: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Build the single CouchDB container."""
    return {
        "name": CONTAINER_NAME,
        "image": image,
        "env": env + [
            {
                "name": "NODENAME",
                "valueFrom": {"fieldRef": {"fieldPath": "status.podIP"}},
            },
        ],
        "ports": [
            {"name": name, "containerPort": port, "protocol": "TCP"}
            for name, port in CONTAINER_PORTS
        ],
        "livenessProbe": {
            "initialDelaySeconds": PROBE_INITIAL_DELAY_SECONDS,
            "exec": {"command": ["pidof", "beam.smp"]},
        },
        "readinessProbe": {
            "initialDelaySeconds": PROBE_INITIAL_DELAY_SECONDS,
            "httpGet": {"scheme": "HTTP", "port": "standalone"},
        },
    }


def build_anti_affinity(cluster_name: str) -> Dict[str, Any]:
    """Required anti-affinity keeping members of one cluster on separate nodes."""
    return {
        "podAntiAffinity": {
            "requiredDuringSchedulingIgnoredDuringExecution": [
                {
                    "labelSelector": {"matchLabels": {CLUSTER_LABEL: cluster_name}},
                    "topologyKey": "kubernetes.io/hostname",
                },
            ],
        },
    }


def build_member_pod(
    cluster: CouchDBCluster,
    default_image: str,
    default_version: str,
) -> Dict[str, Any]:
    """
    Build a member pod manifest for the cluster.

    Args:
        cluster: Desired cluster state
        default_image: Image used when the cluster has no baseImage
        default_version: Tag used when the cluster has no version

    Returns:
        Pod manifest with a freshly generated name
    """
    policy = cluster.pod
    image = f"{cluster.base_image or default_image}:{cluster.version or default_version}"
    env = [declaration.to_manifest() for declaration in policy.couchdb_env]

    spec: Dict[str, Any] = {
        "restartPolicy": "Always",
        "containers": [build_container(image, env)],
        "dnsPolicy": "ClusterFirstWithHostNet",
        "subdomain": cluster.name,
    }
    if policy.node_selector:
        spec["nodeSelector"] = dict(policy.node_selector)
    if policy.anti_affinity:
        spec["affinity"] = build_anti_affinity(cluster.name)

    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": generate_pod_name(cluster.name),
            "labels": member_labels(cluster.name, policy.labels),
            "annotations": {},
        },
        "spec": spec,
    }
