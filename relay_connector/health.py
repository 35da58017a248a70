"""Kubernetes probe endpoints served by FastAPI."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .models import ConnectorStatus, HealthStatus

if TYPE_CHECKING:
    from .base import BaseConnector

# Liveness tolerates startup; readiness does not
LIVE = frozenset({ConnectorStatus.STARTING, ConnectorStatus.RUNNING})
READY = frozenset({ConnectorStatus.RUNNING})


async def health_snapshot(connector: BaseConnector) -> HealthStatus:
    """Framework delivery counters merged with ``connector.health_check()``."""
    details: dict[str, object] = {
        "messages_delivered": connector.messages_delivered,
        "messages_dead_lettered": connector.messages_dead_lettered,
        "services": [type(s).__name__ for s in connector.services],
    }
    details.update(await connector.health_check())
    return HealthStatus(
        connector_name=connector.config.name,
        status=connector.status,
        uptime_seconds=round(time.monotonic() - connector.start_time, 3),
        details=details,
    )


def create_health_app(connector: BaseConnector) -> FastAPI:
    app = FastAPI(title=f"{connector.config.name} probes", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        snapshot = await health_snapshot(connector)
        return JSONResponse(
            snapshot.model_dump(mode="json"),
            status_code=200 if connector.status in LIVE else 503,
        )

    @app.get("/ready")
    async def ready() -> JSONResponse:
        is_ready = connector.status in READY
        return JSONResponse(
            {"ready": is_ready, "status": connector.status.value},
            status_code=200 if is_ready else 503,
        )

    return app
