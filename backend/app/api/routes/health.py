"""
Health check endpoints
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.components.contracts import HealthStatus, ReadinessStatus
from app.core.logging_config import LoggingConfig
from app.services.query_bridge import QueryBridge, get_query_bridge

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/api/health", response_model=HealthStatus)
async def health_check(bridge: QueryBridge = Depends(get_query_bridge)):
    """
    Engine availability check

    Returns:
        HealthStatus: availability flags and resolved paths of both engines
    """
    return bridge.health()


@router.get("/health/readiness", response_model=ReadinessStatus)
async def readiness_check(bridge: QueryBridge = Depends(get_query_bridge)):
    """
    Readiness check - can the service answer queries?
    """
    status = bridge.health()
    if not status.jqlite_available:
        logger.warning("Readiness check: query engine missing", extra={"jqlite_path": status.jqlite_path})
        return ReadinessStatus(
            status="not_ready",
            message=f"Query engine not found at {status.jqlite_path}",
            timestamp=_now(),
        )
    return ReadinessStatus(
        status="ready",
        message="Service is ready to accept traffic",
        timestamp=_now(),
    )


@router.get("/health/liveness")
async def liveness_check():
    """
    Liveness check - is the service alive?
    """
    return {
        "status": "alive",
        "timestamp": _now()
    }
