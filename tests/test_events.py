"""
Tests for watch event parsing and dispatch.
"""
from unittest.mock import AsyncMock

import pytest
from kubernetes_asyncio.client import (
    V1ContainerStatus,
    V1ObjectMeta,
    V1Pod,
    V1PodStatus,
)

from couchdb_operator.models.events import EventType, parse_cluster_event, parse_pod_event
from couchdb_operator.models.pod import PodPhase
from couchdb_operator.workers.dispatcher import EventDispatcher


def cluster_body(size=3, **metadata):
    return {
        "apiVersion": "stable.couchdb.org/v1",
        "kind": "CouchDB",
        "metadata": {"name": "demo", "namespace": "default", "resourceVersion": "42", **metadata},
        "spec": {
            "version": "2.1.0",
            "baseImage": "nicolai86/couchdb",
            "size": size,
            "pod": {
                "labels": {"team": "payments"},
                "antiAffinity": True,
                "couchdbEnv": [{"name": "COUCHDB_USER", "value": "root"}],
            },
        },
    }


def v1_pod(labels, phase="Running", ready=(True,)):
    return V1Pod(
        metadata=V1ObjectMeta(name="couchdb-demo-1", namespace="default", uid="abc", labels=labels),
        status=V1PodStatus(
            phase=phase,
            pod_ip="10.1.0.7",
            container_statuses=[
                V1ContainerStatus(
                    name="couchdb",
                    ready=flag,
                    restart_count=0,
                    image="nicolai86/couchdb:2.1.0",
                    image_id="docker://sha",
                )
                for flag in ready
            ],
        ),
    )


def test_cluster_event_parsed():
    event = parse_cluster_event({"type": "ADDED", "object": cluster_body()})

    assert event.type == EventType.ADDED
    assert event.cluster.name == "demo"
    assert event.cluster.size == 3
    assert event.cluster.resource_version == "42"
    assert event.cluster.pod.anti_affinity is True
    assert event.cluster.pod.couchdb_env[0].value == "root"
    assert event.cluster.runtime_state.initialized is False


def test_cluster_initialized_annotation_read():
    body = cluster_body(annotations={"couchdb.org/initialized": "true"})

    event = parse_cluster_event({"type": "MODIFIED", "object": body})

    assert event.cluster.runtime_state.initialized is True


def test_cluster_without_pod_policy_parsed():
    body = cluster_body()
    body["spec"]["pod"] = None

    event = parse_cluster_event({"type": "ADDED", "object": body})

    assert event.cluster.pod.couchdb_env == []


@pytest.mark.parametrize(
    "raw",
    [
        "404 page not found",
        {"type": "BOOKMARK", "object": cluster_body()},
        {"type": "ERROR", "object": {"kind": "Status", "code": 500}},
        {"type": "ADDED", "object": "not-a-dict"},
        {"type": "ADDED", "object": cluster_body(size=-1)},
        {"type": "ADDED", "object": {"metadata": {}, "spec": {}}},
        {"type": "ADDED", "object": {**cluster_body(), "spec": "bogus"}},
        {"type": "ADDED", "object": {**cluster_body(), "metadata": "bogus"}},
        {"type": "MODIFIED", "object": {**cluster_body(), "status": ["Processed"]}},
    ],
)
def test_malformed_cluster_events_dropped(raw):
    assert parse_cluster_event(raw) is None


def test_pod_event_parsed():
    event = parse_pod_event({"type": "MODIFIED", "object": v1_pod({"app": "couchdb", "cluster": "demo"})})

    assert event.type == EventType.MODIFIED
    pod = event.pod
    assert pod.cluster_name == "demo"
    assert pod.phase == PodPhase.RUNNING
    assert pod.pod_ip == "10.1.0.7"
    assert pod.is_ready


def test_pod_with_unready_container_parsed_as_not_ready():
    raw = {"type": "MODIFIED", "object": v1_pod({"app": "couchdb", "cluster": "demo"}, ready=(True, False))}

    assert parse_pod_event(raw).pod.is_ready is False


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "MODIFIED", "object": v1_pod({"app": "nginx", "cluster": "demo"})},
        {"type": "MODIFIED", "object": v1_pod(None)},
        {"type": "MODIFIED", "object": {"metadata": {"name": "x"}}},
        {"type": "UNKNOWN", "object": v1_pod({"app": "couchdb", "cluster": "demo"})},
        None,
    ],
)
def test_unrelated_pod_events_dropped(raw):
    assert parse_pod_event(raw) is None


def make_dispatcher():
    reconciler = AsyncMock()
    orchestrator = AsyncMock()
    return EventDispatcher(reconciler, orchestrator), reconciler, orchestrator


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event_type,handler",
    [("ADDED", "on_added"), ("MODIFIED", "on_updated"), ("DELETED", "on_deleted")],
)
async def test_cluster_events_routed_to_reconciler(event_type, handler):
    dispatcher, reconciler, orchestrator = make_dispatcher()

    await dispatcher.dispatch_cluster_event({"type": event_type, "object": cluster_body()})

    getattr(reconciler, handler).assert_awaited_once()
    orchestrator.on_pod_updated.assert_not_awaited()


@pytest.mark.asyncio
async def test_only_pod_updates_reach_orchestrator():
    dispatcher, reconciler, orchestrator = make_dispatcher()
    pod = v1_pod({"app": "couchdb", "cluster": "demo"})

    for event_type in ("ADDED", "MODIFIED", "DELETED"):
        await dispatcher.dispatch_pod_event({"type": event_type, "object": pod})

    orchestrator.on_pod_updated.assert_awaited_once()
    assert orchestrator.on_pod_updated.await_args.args[0].name == "couchdb-demo-1"
    reconciler.on_added.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_events_not_dispatched():
    dispatcher, reconciler, orchestrator = make_dispatcher()

    await dispatcher.dispatch_cluster_event({"type": "ADDED", "object": None})
    await dispatcher.dispatch_pod_event({"type": "MODIFIED", "object": cluster_body()})

    reconciler.on_added.assert_not_awaited()
    orchestrator.on_pod_updated.assert_not_awaited()
