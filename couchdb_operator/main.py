"""
Operator entry point.

Runs in one process:
1. Health/metrics HTTP server (FastAPI on uvicorn)
2. CouchDB resource watch feeding the scale reconciler
3. Member pod watch feeding the bootstrap orchestrator
"""
import platform
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import ValidationError

from couchdb_operator import __version__
from couchdb_operator.api.v1 import health
from couchdb_operator.config.logging import configure_logging, get_logger
from couchdb_operator.config.settings import Settings, get_settings
from couchdb_operator.core.readiness import readiness
from couchdb_operator.exceptions import ConfigurationError
from couchdb_operator.services.bootstrap import BootstrapOrchestrator
from couchdb_operator.services.couchdb_admin import CouchDBAdminClient
from couchdb_operator.services.credentials import CredentialResolver
from couchdb_operator.services.kubernetes import (
    ClusterStore,
    ConfigStore,
    PodFleet,
    create_client_set,
)
from couchdb_operator.services.scale_reconciler import ClusterScaleReconciler
from couchdb_operator.workers.dispatcher import EventDispatcher
from couchdb_operator.workers.event_watcher import EventWatcher

logger = get_logger(__name__)


def load_settings() -> Settings:
    """
    Load settings from the environment.

    Raises:
        ConfigurationError: If a required identifier is missing or invalid
    """
    try:
        return get_settings()
    except ValidationError as e:
        fields = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
        raise ConfigurationError(
            f"invalid or missing settings: {', '.join(fields)}",
            details={"fields": fields},
        )


def create_app(settings: Settings) -> FastAPI:
    """Build the FastAPI application whose lifespan runs the watch loops."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        logger.info(
            "operator_starting",
            operator_version=__version__,
            python_version=platform.python_version(),
            platform=f"{platform.system().lower()}/{platform.machine()}",
            operator_namespace=settings.operator_namespace,
            operator_name=settings.operator_name,
        )

        client_set = await create_client_set(settings.kubeconfig)
        admin_client = CouchDBAdminClient(timeout=settings.admin_request_timeout)

        pod_fleet = PodFleet(client_set.core_api)
        cluster_store = ClusterStore.from_settings(client_set.custom_api, settings)
        reconciler = ClusterScaleReconciler(
            pod_fleet,
            cluster_store,
            default_image=settings.couchdb_image,
            default_version=settings.couchdb_version,
        )
        orchestrator = BootstrapOrchestrator(
            pod_fleet,
            cluster_store,
            CredentialResolver(ConfigStore(client_set.core_api)),
            admin_client,
        )
        watcher = EventWatcher(client_set, EventDispatcher(reconciler, orchestrator), settings)

        await watcher.start()
        readiness.set_ready()
        logger.info("operator_started", listen_addr=settings.listen_addr)

        yield

        logger.info("operator_shutting_down")
        readiness.reset()
        await watcher.stop()
        await admin_client.close()
        await client_set.close()
        logger.info("operator_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Kubernetes operator for CouchDB clusters",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    if settings.prometheus_enabled:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")

    app.include_router(health.router, tags=["Health"])
    return app


def main() -> None:
    """Load configuration and serve until interrupted."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.critical("operator_configuration_invalid", error=e.message, **e.details)
        sys.exit(1)

    configure_logging(settings)

    # Initialize Sentry for error tracking (production)
    if settings.sentry_dsn and settings.is_production:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            environment=settings.environment,
            release=settings.app_version,
        )

    host, port = settings.listen_host_port
    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
