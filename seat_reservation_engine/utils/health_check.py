"""
Health check utilities for monitoring service dependencies.
"""

import asyncio
import logging
import time
from typing import Dict, Any

from sqlalchemy import func, select, text

from ..cache import get_cache
from ..database import get_db_session
from ..models import Hold, HoldStatus
from .clock import utcnow

logger = logging.getLogger(__name__)


class HealthCheckResult:
    """Result of a health check."""

    def __init__(self, service: str, healthy: bool, response_time: float, details: Dict[str, Any] = None,
                 required: bool = True):
        self.service = service
        self.healthy = healthy
        self.response_time = response_time
        self.details = details or {}
        self.required = required

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "healthy": self.healthy,
            "required": self.required,
            "response_time": self.response_time,
            "details": self.details,
        }


async def check_database_health() -> HealthCheckResult:
    """
    Check database connectivity and report reaper lag.

    ``stale_active_holds`` counts holds past expiry that no sweep has
    released yet; a growing number means the reaper is not running.
    """
    start_time = time.time()

    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
            stale = await session.scalar(
                select(func.count(Hold.id)).where(
                    Hold.status == HoldStatus.ACTIVE,
                    Hold.expires_at <= utcnow(),
                )
            )
        return HealthCheckResult(
            service="database",
            healthy=True,
            response_time=time.time() - start_time,
            details={"stale_active_holds": stale or 0}
        )
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return HealthCheckResult(
            service="database",
            healthy=False,
            response_time=time.time() - start_time,
            details={"error": str(e), "error_type": type(e).__name__}
        )


async def check_redis_health() -> HealthCheckResult:
    """Check the inventory cache. Redis is optional, so failure only degrades."""
    start_time = time.time()
    cache = get_cache()
    if not cache.is_available:
        return HealthCheckResult(
            service="redis",
            healthy=False,
            response_time=0.0,
            details={"error": "cache disabled"},
            required=False
        )

    healthy = await cache.ping()
    return HealthCheckResult(
        service="redis",
        healthy=healthy,
        response_time=time.time() - start_time,
        details={} if healthy else {"error": "cache unreachable"},
        required=False
    )


async def get_health_status() -> Dict[str, Any]:
    """Get health status of all dependencies."""
    start_time = time.time()

    checks = await asyncio.gather(check_database_health(), check_redis_health())
    results = [check.to_dict() for check in checks]

    if any(check.required and not check.healthy for check in checks):
        overall = "unhealthy"
    elif all(check.healthy for check in checks):
        overall = "healthy"
    else:
        overall = "degraded"

    return {
        "status": overall,
        "timestamp": utcnow().isoformat(),
        "total_check_time": time.time() - start_time,
        "services": results,
    }
