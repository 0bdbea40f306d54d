"""HTTP surface: liveness and readiness endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from ..health.registry import HealthRegistry

logger = logging.getLogger(__name__)


def create_app(registry: HealthRegistry, *, title: str = "order-notifications") -> FastAPI:
    """Build the FastAPI app.

    ``GET /health`` answers as long as the process serves HTTP.
    ``GET /ready`` runs every registered check and answers 503 unless all of
    them are up.
    """
    app = FastAPI(title=title, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.health_registry = registry

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/ready")
    async def ready() -> JSONResponse:
        ok, components = await registry.is_ready()
        if not ok:
            down = sorted(name for name, state in components.items() if state != "up")
            logger.debug(f"Readiness check failed: {down}")
        return JSONResponse(
            status_code=200 if ok else 503,
            content={
                "status": "ready" if ok else "not_ready",
                "components": components,
            },
        )

    return app
