"""
Bootstrap Orchestrator

Joins the members of a CouchDB cluster into a single ring, once.

On every member pod update the orchestrator checks, in order:
1. The owning cluster resource exists
2. The cluster is not yet initialized
3. Exactly `size` member pods exist
4. Every member is Running with all containers ready

When all gates pass, the first listed pod becomes the seed and every other
member is added to it with an add_node call. The initialized flag is then
written whatever the outcome of those calls: the bootstrap fires once and
does not verify the resulting membership.
"""
from typing import Optional

from couchdb_operator.config.logging import get_logger
from couchdb_operator.core.state_machine import BootstrapAttempt, BootstrapState
from couchdb_operator.exceptions import (
    CouchDBAdminError,
    CredentialResolutionError,
    KubernetesError,
)
from couchdb_operator.models.cluster import CouchDBCluster, RuntimeState
from couchdb_operator.models.pod import MemberPod
from couchdb_operator.services.couchdb_admin import ADMIN_PORT, CouchDBAdminClient
from couchdb_operator.services.credentials import CredentialResolver
from couchdb_operator.services.kubernetes import ClusterStore, PodFleet

logger = get_logger(__name__)


class BootstrapOrchestrator:
    """Drives the one-shot cluster join from pod update events."""

    def __init__(
        self,
        pod_fleet: PodFleet,
        cluster_store: ClusterStore,
        credential_resolver: CredentialResolver,
        admin_client: CouchDBAdminClient,
    ):
        self.pod_fleet = pod_fleet
        self.cluster_store = cluster_store
        self.credential_resolver = credential_resolver
        self.admin_client = admin_client

    async def on_pod_updated(self, pod: MemberPod) -> Optional[BootstrapState]:
        """
        Attempt the cluster bootstrap for the pod's cluster.

        Returns:
            The state the attempt reached, or None if the pod carries no
            cluster label
        """
        if not pod.cluster_name:
            return None

        attempt = BootstrapAttempt(pod.cluster_name)

        try:
            cluster = await self.cluster_store.get_cluster(pod.namespace, pod.cluster_name)
        except KubernetesError as e:
            logger.warning(
                "cluster_lookup_failed",
                cluster=pod.cluster_name,
                namespace=pod.namespace,
                error=e.message,
            )
            return attempt.state
        if cluster is None:
            return attempt.state

        if cluster.runtime_state.initialized:
            attempt.advance(BootstrapState.INITIALIZED)
            return attempt.state
        attempt.advance(BootstrapState.UNCLUSTERED)

        try:
            members = await self.pod_fleet.list_pods(cluster.namespace, cluster.name)
        except KubernetesError as e:
            logger.error(
                "cluster_pod_list_failed",
                cluster=cluster.name,
                namespace=cluster.namespace,
                error=e.message,
            )
            return attempt.state

        if len(members) != cluster.size:
            return attempt.state

        if not all(member.is_ready for member in members):
            logger.debug(
                "cluster_not_ready_to_join",
                cluster=cluster.name,
                namespace=cluster.namespace,
                ready=sum(1 for member in members if member.is_ready),
                total=len(members),
            )
            return attempt.state
        attempt.advance(BootstrapState.READY_TO_JOIN)

        if not members:
            # size 0: nothing to join, only the flag to commit
            attempt.advance(BootstrapState.JOINING)
            await self._mark_initialized(attempt, cluster, joined=0, expected=0)
            return attempt.state

        seed, others = members[0], members[1:]
        try:
            credentials = await self.credential_resolver.resolve(
                cluster.pod.couchdb_env, cluster.namespace
            )
        except CredentialResolutionError as e:
            logger.error(
                "admin_credentials_unresolved",
                cluster=cluster.name,
                namespace=cluster.namespace,
                variable=e.variable,
                reference=e.reference,
                error=e.reason,
            )
            return attempt.state
        attempt.advance(BootstrapState.JOINING)

        logger.info(
            "cluster_bootstrap_started",
            cluster=cluster.name,
            namespace=cluster.namespace,
            seed=seed.name,
            seed_address=seed.pod_ip,
            members=len(members),
        )

        joined = 0
        for member in others:
            try:
                await self.admin_client.add_node(
                    seed.pod_ip,
                    member.pod_ip,
                    credentials,
                    port=ADMIN_PORT,
                )
            except CouchDBAdminError as e:
                logger.error(
                    "cluster_add_node_failed",
                    cluster=cluster.name,
                    namespace=cluster.namespace,
                    node=member.name,
                    node_address=member.pod_ip,
                    error=e.error,
                    reason=e.reason,
                    status_code=e.status_code,
                )
                continue
            joined += 1
            logger.info(
                "cluster_node_added",
                cluster=cluster.name,
                namespace=cluster.namespace,
                node=member.name,
                node_address=member.pod_ip,
            )

        await self._mark_initialized(attempt, cluster, joined=joined, expected=len(others))
        return attempt.state

    async def _mark_initialized(
        self,
        attempt: BootstrapAttempt,
        cluster: CouchDBCluster,
        joined: int,
        expected: int,
    ) -> None:
        attempt.advance(BootstrapState.INITIALIZED)
        state = RuntimeState(
            initialized=True,
            message=f"bootstrap finished: {joined} of {expected} nodes joined the seed",
        )
        try:
            await self.cluster_store.write_runtime_state(cluster, state)
        except KubernetesError as e:
            logger.error(
                "cluster_state_write_failed",
                cluster=cluster.name,
                namespace=cluster.namespace,
                error=e.message,
            )
            return
        logger.info(
            "cluster_initialized",
            cluster=cluster.name,
            namespace=cluster.namespace,
            joined=joined,
            expected=expected,
        )
