"""
Cluster Scale Reconciler

Reacts to CouchDB resource events by creating or removing member pods.

- Added: resets the bootstrap flag, then creates the missing members
- Updated: nothing to do yet
- Deleted: removes every member pod of the cluster

Each pod call is independent. A failure is logged and the remaining calls
still run; nothing is retried here.
"""
from couchdb_operator.config.logging import get_logger
from couchdb_operator.exceptions import KubernetesError
from couchdb_operator.models.cluster import CouchDBCluster, RuntimeState
from couchdb_operator.services.kubernetes import ClusterStore, PodFleet
from couchdb_operator.services.pod_template import build_member_pod

logger = get_logger(__name__)


class ClusterScaleReconciler:
    """Turns desired cluster size into pod create/delete calls."""

    def __init__(
        self,
        pod_fleet: PodFleet,
        cluster_store: ClusterStore,
        default_image: str,
        default_version: str,
    ):
        self.pod_fleet = pod_fleet
        self.cluster_store = cluster_store
        self.default_image = default_image
        self.default_version = default_version

    async def on_added(self, cluster: CouchDBCluster) -> None:
        """
        Handle a new (or resynced) cluster resource.

        The bootstrap flag is reset unconditionally, so a re-add clears any
        previous bootstrap state.
        """
        logger.info("cluster_added", cluster=cluster.name, namespace=cluster.namespace, size=cluster.size)

        try:
            await self.cluster_store.write_runtime_state(
                cluster,
                RuntimeState(initialized=False, message="waiting for members to become ready"),
            )
        except KubernetesError as e:
            logger.error(
                "cluster_state_reset_failed",
                cluster=cluster.name,
                namespace=cluster.namespace,
                error=e.message,
            )

        try:
            pods = await self.pod_fleet.list_pods(cluster.namespace, cluster.name)
        except KubernetesError as e:
            logger.error(
                "cluster_pod_list_failed",
                cluster=cluster.name,
                namespace=cluster.namespace,
                error=e.message,
            )
            return

        missing = cluster.size - len(pods)
        logger.info(
            "cluster_members_counted",
            cluster=cluster.name,
            namespace=cluster.namespace,
            current=len(pods),
            desired=cluster.size,
        )
        if missing <= 0:
            return

        for index in range(missing):
            manifest = build_member_pod(cluster, self.default_image, self.default_version)
            pod_name = manifest["metadata"]["name"]
            try:
                await self.pod_fleet.create_pod(cluster.namespace, manifest)
            except KubernetesError as e:
                logger.error(
                    "member_pod_create_failed",
                    cluster=cluster.name,
                    namespace=cluster.namespace,
                    pod=pod_name,
                    error=e.message,
                )
                continue
            logger.info(
                "member_pod_created",
                cluster=cluster.name,
                namespace=cluster.namespace,
                pod=pod_name,
                index=index,
            )

    async def on_updated(self, cluster: CouchDBCluster) -> None:
        """Spec changes are not reconciled."""
        logger.debug("cluster_updated", cluster=cluster.name, namespace=cluster.namespace)

    async def on_deleted(self, cluster: CouchDBCluster) -> None:
        """Remove every member pod of a deleted cluster."""
        logger.info("cluster_removed", cluster=cluster.name, namespace=cluster.namespace)

        try:
            pods = await self.pod_fleet.list_pods(cluster.namespace, cluster.name)
        except KubernetesError as e:
            logger.error(
                "cluster_pod_list_failed",
                cluster=cluster.name,
                namespace=cluster.namespace,
                error=e.message,
            )
            return

        deleted = 0
        for pod in pods:
            try:
                await self.pod_fleet.delete_pod(cluster.namespace, pod.name)
            except KubernetesError as e:
                logger.error(
                    "member_pod_delete_failed",
                    cluster=cluster.name,
                    namespace=cluster.namespace,
                    pod=pod.name,
                    uid=pod.uid,
                    error=e.message,
                )
                continue
            deleted += 1

        logger.info(
            "cluster_members_deleted",
            cluster=cluster.name,
            namespace=cluster.namespace,
            deleted=deleted,
            total=len(pods),
        )
