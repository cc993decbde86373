"""
Kubernetes Event Watcher

Watches CouchDB resources and CouchDB member pods and hands every event to
the dispatcher instead of polling.

The two watches run as independent asyncio tasks. Within one watch, events
are handled strictly one after another: a slow handler holds back the next
event of that watch but never the other watch.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
import structlog
from kubernetes_asyncio import watch
from kubernetes_asyncio.client import ApiException

from couchdb_operator.config.settings import Settings
from couchdb_operator.models.pod import APP_LABEL, APP_NAME
from couchdb_operator.services.kubernetes import KubernetesClientSet
from couchdb_operator.workers.dispatcher import EventDispatcher

logger = structlog.get_logger(__name__)

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]

WATCH_EXPIRED_DELAY = 3
WATCH_ERROR_DELAY = 15


def _resource_version(event: Any) -> Optional[str]:
    obj = event.get("object") if isinstance(event, dict) else None
    if isinstance(obj, dict):
        return (obj.get("metadata") or {}).get("resourceVersion")
    metadata = getattr(obj, "metadata", None)
    return getattr(metadata, "resource_version", None)


class EventWatcher:
    """
    Runs the cluster watch and the pod watch.

    Each watch remembers the last seen resource version, so a reconnect
    resumes where it left off. Only a 410 Gone forces a fresh list, which
    replays ADDED events for every existing object.
    """

    def __init__(
        self,
        client_set: KubernetesClientSet,
        dispatcher: EventDispatcher,
        settings: Settings,
    ):
        self.client_set = client_set
        self.dispatcher = dispatcher
        self.settings = settings
        self.running = False
        self._tasks: List[asyncio.Task] = []

    async def start(self) -> None:
        """Start both watch loops as background tasks."""
        if self.running:
            logger.warning("event_watcher_already_running")
            return

        self.running = True
        self._tasks = [
            asyncio.create_task(self.watch_clusters(), name="cluster-watch"),
            asyncio.create_task(self.watch_pods(), name="pod-watch"),
        ]
        logger.info(
            "event_watcher_started",
            namespace=self.settings.watch_namespace or "all",
        )

    async def stop(self) -> None:
        """Cancel both watch loops. In-flight handlers are not drained."""
        logger.info("event_watcher_stopping")
        self.running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("event_watcher_stopped")

    async def watch_clusters(self) -> None:
        custom_api = self.client_set.custom_api
        settings = self.settings
        if settings.watch_namespace:
            await self._run_watch(
                "clusters",
                custom_api.list_namespaced_custom_object,
                [settings.crd_group, settings.crd_version, settings.watch_namespace, settings.crd_plural],
                {},
                self.dispatcher.dispatch_cluster_event,
            )
        else:
            await self._run_watch(
                "clusters",
                custom_api.list_cluster_custom_object,
                [settings.crd_group, settings.crd_version, settings.crd_plural],
                {},
                self.dispatcher.dispatch_cluster_event,
            )

    async def watch_pods(self) -> None:
        core_api = self.client_set.core_api
        selector = {"label_selector": f"{APP_LABEL}={APP_NAME}"}
        if self.settings.watch_namespace:
            await self._run_watch(
                "pods",
                core_api.list_namespaced_pod,
                [self.settings.watch_namespace],
                selector,
                self.dispatcher.dispatch_pod_event,
            )
        else:
            await self._run_watch(
                "pods",
                core_api.list_pod_for_all_namespaces,
                [],
                selector,
                self.dispatcher.dispatch_pod_event,
            )

    async def _run_watch(
        self,
        name: str,
        list_func: Callable[..., Any],
        args: List[Any],
        kwargs: Dict[str, Any],
        handler: EventHandler,
    ) -> None:
        resource_version: Optional[str] = None
        w = watch.Watch()

        while self.running:
            stream_kwargs = dict(kwargs)
            if resource_version:
                stream_kwargs["resource_version"] = resource_version
            logger.info("watch_opened", watch=name, resource_version=resource_version)

            try:
                async for event in w.stream(list_func, *args, **stream_kwargs):
                    resource_version = _resource_version(event) or resource_version
                    try:
                        await handler(event)
                    except Exception as e:
                        logger.error(
                            "watch_event_handler_failed",
                            watch=name,
                            error=str(e),
                            exc_info=True,
                        )
            except ApiException as e:
                if e.status == 410:
                    logger.info("watch_expired_restarting", watch=name)
                    resource_version = None
                    await asyncio.sleep(WATCH_EXPIRED_DELAY)
                else:
                    logger.error("watch_api_error", watch=name, status=e.status, error=e.reason)
                    await asyncio.sleep(WATCH_ERROR_DELAY)
            except aiohttp.ClientError as e:
                logger.error("watch_connection_error", watch=name, error=str(e))
                await asyncio.sleep(WATCH_ERROR_DELAY)
            except Exception as e:
                # Undecodable payloads surface here as plain exceptions.
                logger.error("watch_stream_error", watch=name, error=str(e), exc_info=True)
                await asyncio.sleep(WATCH_ERROR_DELAY)

        logger.info("watch_closed", watch=name)
