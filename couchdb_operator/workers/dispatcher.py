"""
Routes typed watch events to the reconciler and the bootstrap orchestrator.
"""
from typing import Any, Dict

from couchdb_operator.config.logging import get_logger
from couchdb_operator.models.events import (
    ClusterEvent,
    EventType,
    PodEvent,
    parse_cluster_event,
    parse_pod_event,
)
from couchdb_operator.services.bootstrap import BootstrapOrchestrator
from couchdb_operator.services.scale_reconciler import ClusterScaleReconciler

logger = get_logger(__name__)


class EventDispatcher:
    """Closed dispatch over {ClusterEvent, PodEvent} x {ADDED, MODIFIED, DELETED}."""

    def __init__(self, reconciler: ClusterScaleReconciler, orchestrator: BootstrapOrchestrator):
        self.reconciler = reconciler
        self.orchestrator = orchestrator

    async def dispatch_cluster_event(self, raw: Dict[str, Any]) -> None:
        event = parse_cluster_event(raw)
        if event is not None:
            await self.handle_cluster_event(event)

    async def dispatch_pod_event(self, raw: Dict[str, Any]) -> None:
        event = parse_pod_event(raw)
        if event is not None:
            await self.handle_pod_event(event)

    async def handle_cluster_event(self, event: ClusterEvent) -> None:
        if event.type == EventType.ADDED:
            await self.reconciler.on_added(event.cluster)
        elif event.type == EventType.MODIFIED:
            await self.reconciler.on_updated(event.cluster)
        elif event.type == EventType.DELETED:
            await self.reconciler.on_deleted(event.cluster)

    async def handle_pod_event(self, event: PodEvent) -> None:
        pod = event.pod
        if event.type == EventType.MODIFIED:
            logger.debug(
                "member_pod_updated",
                pod=pod.name,
                uid=pod.uid,
                phase=pod.phase.value,
                cluster=pod.cluster_name,
            )
            await self.orchestrator.on_pod_updated(pod)
        elif event.type == EventType.ADDED:
            logger.info("member_pod_added", pod=pod.name, uid=pod.uid, cluster=pod.cluster_name)
        elif event.type == EventType.DELETED:
            logger.info("member_pod_deleted", pod=pod.name, uid=pod.uid, cluster=pod.cluster_name)
