"""
Health Check Routes

Endpoints for health, liveness, and readiness probes.
"""

import time
from typing import Dict, Any
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bookstore.api.deps import DbSession, ResultStoreDep
from bookstore.config import settings
from bookstore.core.idempotency.exceptions import StoreUnavailableError

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.
    Returns application status and version.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    db: DbSession,
    store: ResultStoreDep,
) -> Dict[str, Any]:
    """
    Readiness probe - checks all dependencies are available.
    Writes fail closed without the result store, so it gates traffic too.
    """
    checks: Dict[str, Dict[str, Any]] = {}
    overall_status = "ready"

    # Check database
    started = time.monotonic()
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.monotonic() - started) * 1000, 2)}
    except SQLAlchemyError as e:
        checks["database"] = {"status": "error", "error": str(e)}
        overall_status = "not_ready"

    # Check result store
    started = time.monotonic()
    try:
        await store.ping()
        checks["idempotency_store"] = {
            "status": "ok",
            "backend": settings.idempotency_store,
            "latency_ms": round((time.monotonic() - started) * 1000, 2),
        }
    except StoreUnavailableError as e:
        checks["idempotency_store"] = {
            "status": "error",
            "backend": settings.idempotency_store,
            "error": str(e),
        }
        overall_status = "not_ready"

    if overall_status != "ready":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": overall_status,
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness probe - basic check that the service is running.
    Used by Kubernetes to determine if the pod should be restarted.
    """
    return {"status": "alive"}
