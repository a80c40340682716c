"""
Health, readiness and metrics endpoints.

Lightweight operational checks; nothing here exposes store contents.
"""

import logging

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse

from squatboard.core.config import settings
from squatboard.core.errors import StoreUnavailableError
from squatboard.core.logging import get_request_id
from squatboard.core.metrics import METRICS
from squatboard.features.store.base import get_store

logger = logging.getLogger("squatboard")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok", "env": settings.ENV}


@root_router.get("/readyz")
def readyz():
    """Readiness check: the ledger store answers a ping."""
    try:
        get_store().ping()
    except StoreUnavailableError as e:
        logger.error(f"[readyz] store unavailable: {e.message}", extra={"request_id": get_request_id()})
        return JSONResponse(status_code=503, content={"status": "error", "detail": "store unreachable"})
    return {"status": "ok", "store": type(get_store()).__name__}


@root_router.get("/metrics")
def metrics_endpoint():
    payload = METRICS.export_prometheus()
    return Response(content=payload, media_type="text/plain")
