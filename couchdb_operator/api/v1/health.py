"""
Health check endpoints for the operator pod.
Provides liveness and readiness probes.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from couchdb_operator.core.readiness import readiness

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/live")
async def liveness():
    """
    Kubernetes liveness probe.
    Indicates whether the process is up.
    """
    return {"status": "alive", "timestamp": _now()}


@router.get("/readyz")
async def readyz():
    """
    Kubernetes readiness probe.
    Ready once both watch loops have been started.
    """
    if not readiness.is_ready():
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "not_ready", "timestamp": _now()},
        )

    return {"status": "ready", "timestamp": _now()}
