"""
Health checks for session factories.

Each check opens a fresh session, runs the validation query under a timeout and
closes the session again. A failing check is reported, never raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Sequence

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from unitofwork.database.session import ManagedSessionFactory
from unitofwork.unit_of_work.descriptor import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthResult:
    healthy: bool
    message: str | None = None

    def to_payload(self) -> dict:
        payload = {"status": "healthy" if self.healthy else "unhealthy"}
        if self.message:
            payload["message"] = self.message
        return payload


class SessionFactoryHealthCheck:
    def __init__(self, factory: ManagedSessionFactory, validation_query: str = "SELECT 1", timeout: float = 5.0):
        self.factory = factory
        self.validation_query = validation_query
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.factory.name

    async def _run_query(self) -> None:
        session = self.factory.open(UnitOfWork(value=self.factory.name, read_only=True, transactional=False))
        try:
            await session.execute(text(self.validation_query))
        finally:
            await session.close()

    async def check(self) -> HealthResult:
        try:
            await asyncio.wait_for(self._run_query(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("health.timeout", extra={"session_factory": self.name, "timeout": self.timeout})
            return HealthResult(False, f"Validation query timed out after {self.timeout}s")
        except Exception as exc:
            logger.warning(
                "health.failed",
                extra={"session_factory": self.name, "error_type": type(exc).__name__},
            )
            return HealthResult(False, f"Validation query failed: {type(exc).__name__}")
        return HealthResult(True)


def build_health_router(checks: Sequence[SessionFactoryHealthCheck]) -> APIRouter:
    """
    GET /health -> 200 when every check passes, 503 otherwise.
    """
    router = APIRouter(tags=["health"])

    @router.get("/health", response_model=None)
    async def health() -> JSONResponse:
        results = {check.name: await check.check() for check in checks}
        healthy = all(result.healthy for result in results.values())
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "checks": {name: result.to_payload() for name, result in results.items()},
            },
        )

    return router
