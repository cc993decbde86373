from couchdb_operator.models.cluster import CouchDBCluster, PodPolicy, RuntimeState
from couchdb_operator.models.pod import MemberPod, PodPhase

__all__ = [
    "CouchDBCluster",
    "PodPolicy",
    "RuntimeState",
    "MemberPod",
    "PodPhase",
]
