"""
Health checks in the shape of the "Health Check Response Format for HTTP
APIs" draft: liveness, readiness (dependencies) and a small metrics
document for scraping.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import Engine, inspect, text
from typing import Any, Callable, Dict, Optional
import os
import time
from datetime import datetime, timezone
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

# A named readiness check returns a partial check document; "status" is required
ReadinessCheck = Callable[[], Dict[str, Any]]

class ServiceHealth:
    """
    Builds the health router for one service.

    The database engine is injected; further dependencies (payment gateway
    configuration, remote services) are registered with ``add_check``.
    """

    def __init__(self, service_name: str, version: str = "1.0.0", engine: Optional[Engine] = None):
        self.service_name = service_name
        self.version = version
        self.engine = engine
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None
        self._extra_checks: Dict[str, ReadinessCheck] = {}

    def add_check(self, name: str, check: ReadinessCheck) -> None:
        self._extra_checks[name] = check

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        def health_check() -> Dict[str, Any]:
            """Liveness probe for load balancers, no dependency checks"""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            checks = self.perform_readiness_checks()
            overall_status = self.calculate_overall_status(checks)
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE if overall_status == HealthStatus.FAIL else status.HTTP_200_OK
            return JSONResponse(status_code=status_code, content={
                "status": overall_status.value,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "checks": checks,
                "serviceId": self.service_name,
                "description": f"{self.service_name} service",
                "timestamp": _now()
            })

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads()
                }
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {}
        if self.engine is not None:
            checks["database:connectivity"] = self._check_database()
            checks["database:migrations"] = self._check_migrations()
        checks["system:memory"] = self._check_memory()
        for name, check in self._extra_checks.items():
            try:
                result = check()
            except Exception as e:
                logger.error(f"Health check {name} raised: {e}")
                result = {"status": HealthStatus.FAIL, "output": str(e)}
            checks[name] = {**result, "time": _now()}
        return checks

    def _check_database(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            response_time = (time.time() - start_time) * 1000
            return {
                "status": HealthStatus.PASS,
                "componentType": "datastore",
                "observedValue": f"{response_time:.2f}",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_migrations(self) -> Dict[str, Any]:
        """Warn when the schema was created without alembic"""
        try:
            if inspect(self.engine).has_table("alembic_version"):
                return {"status": HealthStatus.PASS, "componentType": "datastore", "time": _now()}
            return {
                "status": HealthStatus.WARN,
                "componentType": "datastore",
                "output": "Migrations table not found",
                "time": _now()
            }
        except Exception as e:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_memory(self) -> Dict[str, Any]:
        try:
            available_mb = psutil.virtual_memory().available / (1024 ** 2)
            if available_mb < 100:
                status_val = HealthStatus.FAIL
            elif available_mb < 500:
                status_val = HealthStatus.WARN
            else:
                status_val = HealthStatus.PASS
            return {
                "status": status_val,
                "componentType": "system",
                "observedValue": f"{available_mb:.2f}",
                "observedUnit": "MB",
                "time": _now()
            }
        except Exception as e:
            return {
                "status": HealthStatus.WARN,
                "componentType": "system",
                "output": str(e),
                "time": _now()
            }

    @staticmethod
    def calculate_overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = [HealthStatus(check.get("status", HealthStatus.PASS)) for check in checks.values()]
        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
