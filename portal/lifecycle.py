"""
Process lifecycle: bind our own listener, or hand a request handler to an
on-demand host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import uvicorn
from fastapi import FastAPI
from mangum import Mangum

from portal.app import create_app
from portal.config import DeploymentMode, Settings, get_settings
from portal.db import Database

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    """The assembled app plus exactly one of a server or an exported handler."""

    mode: DeploymentMode
    app: FastAPI
    server: Optional[uvicorn.Server] = None
    handler: Optional[Mangum] = None

    def __post_init__(self):
        if (self.server is None) == (self.handler is None):
            raise ValueError("A deployment needs exactly one of server or handler")

    def serve(self) -> None:
        """Bind the listening socket and block until shutdown."""
        if self.server is None:
            raise RuntimeError("Exported deployments are driven by their host")
        port = self.server.config.port
        logger.info("Server running on port %d", port)
        logger.info("API Base URL: http://localhost:%d/api", port)
        logger.info("Frontend URL: http://localhost:%d", port)
        self.server.run()


def bootstrap(
    settings: Optional[Settings] = None, database: Optional[Database] = None
) -> Deployment:
    settings = settings or get_settings()
    app = create_app(settings, database)

    if settings.mode is DeploymentMode.EXPORTED:
        return Deployment(
            mode=settings.mode, app=app, handler=Mangum(app, lifespan="auto")
        )

    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=settings.idle_timeout_seconds,
        log_level=settings.log_level,
    )
    return Deployment(mode=settings.mode, app=app, server=uvicorn.Server(config))
