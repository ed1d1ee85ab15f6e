"""
Health check endpoints for operations monitoring.

Provides health checks for:
- Database connectivity (all configured databases)
- Redis/Celery broker connectivity
- Balance rebuild locks (a stuck rebuild blocks postings)

Endpoints:
- /_health/live    - liveness probe (is the process running?)
- /_health/ready   - readiness probe (can we serve traffic?)
- /_health/full    - full health report (for debugging/dashboards)
"""
import logging
import time
from typing import Dict, Any

import redis
from django.conf import settings
from django.db import connections
from django.http import JsonResponse
from django.utils import timezone
from django.views import View

logger = logging.getLogger(__name__)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            return {
                "status": "healthy",
                "alias": alias,
                "duration_ms": round((time.time() - start) * 1000, 2),
            }
        except Exception as e:
            logger.warning(f"Database check failed for {alias}: {e}")
            return {
                "status": "unhealthy",
                "alias": alias,
                "error": str(e),
                "duration_ms": round((time.time() - start) * 1000, 2),
            }

    @staticmethod
    def check_all_databases() -> Dict[str, Any]:
        """Check all configured databases."""
        results = {
            alias: HealthCheck.check_database(alias)
            for alias in settings.DATABASES.keys()
        }
        all_healthy = all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "degraded",
            "databases": results,
        }

    @staticmethod
    def check_redis() -> Dict[str, Any]:
        """Check the Celery broker (skipped when rebuilds run inline)."""
        redis_url = getattr(settings, "CELERY_BROKER_URL", None)
        if not redis_url or getattr(settings, "LEDGER_SYNC_REBUILD", False):
            return {"status": "skipped", "reason": "Broker not in use"}

        start = time.time()
        try:
            client = redis.from_url(redis_url)
            client.ping()
            return {
                "status": "healthy",
                "duration_ms": round((time.time() - start) * 1000, 2),
            }
        except redis.RedisError as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "duration_ms": round((time.time() - start) * 1000, 2),
            }

    @staticmethod
    def check_rebuild_locks() -> Dict[str, Any]:
        """Report balance rebuild locks; an old one means postings are blocked."""
        from balances.models import BalanceRebuildLock

        threshold = getattr(settings, "REBUILD_LOCK_STALE_SECONDS", 1800)
        now = timezone.now()
        locks = []
        stale = 0
        for lock in BalanceRebuildLock.objects.order_by("acquired_at"):
            age = (now - lock.acquired_at).total_seconds()
            if age > threshold:
                stale += 1
            locks.append({
                "scope": lock.scope,
                "owner": lock.owner,
                "age_seconds": round(age, 1),
            })

        return {
            "status": "degraded" if stale else "healthy",
            "active": locks[:10],
            "stale": stale,
            "threshold_seconds": threshold,
        }

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "databases": HealthCheck.check_all_databases(),
            "redis": HealthCheck.check_redis(),
            "rebuild_locks": HealthCheck.check_rebuild_locks(),
        }

        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s in ("healthy", "skipped") for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "production" if not settings.DEBUG else "development",
        }


class LivenessView(View):
    """Returns 200 if the process is running. Does not touch dependencies."""

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """Returns 200 if the default database answers."""

    def get(self, request):
        db_check = HealthCheck.check_database("default")

        if db_check["status"] == "healthy":
            return JsonResponse({"status": "ready", "database": db_check})
        return JsonResponse({"status": "not_ready", "database": db_check}, status=503)


class FullHealthView(View):
    """
    Full health check for debugging and dashboards.

    Should be protected in production (internal network only).
    """

    def get(self, request):
        health = HealthCheck.get_full_health()
        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)
