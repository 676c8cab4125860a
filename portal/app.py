"""
FastAPI application entry point for the school portal backend.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal.config import DeploymentMode, Settings, get_settings
from portal.db import Database, create_database
from portal.errors import register_error_handlers
from portal.middleware import (
    FormBodyMiddleware,
    IdleRequestMiddleware,
    StaticRootsMiddleware,
)
from portal.routers import MOUNTS
from portal.routes import debug_router, health_router, pages_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database: Database = app.state.database
    if settings.mode is DeploymentMode.LISTENING:
        # Accept requests while the connection is being established.
        app.state.connect_task = asyncio.create_task(database.connect())
        yield
        await database.close()
    else:
        await database.connect()
        yield


def create_app(
    settings: Optional[Settings] = None, database: Optional[Database] = None
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="School Portal API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database if database is not None else create_database(settings)

    # Added innermost first: CORS -> idle limit -> body parsing -> static roots
    # -> routes. The host owns request timeouts in exported mode.
    app.add_middleware(StaticRootsMiddleware, roots=settings.static_roots)
    app.add_middleware(FormBodyMiddleware)
    if settings.mode is DeploymentMode.LISTENING:
        app.add_middleware(IdleRequestMiddleware, timeout=settings.idle_timeout_seconds)
    app.add_middleware(
        CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )

    for prefix, router in MOUNTS:
        app.include_router(router, prefix=prefix)
    if settings.mode is DeploymentMode.EXPORTED:
        app.include_router(debug_router)
    app.include_router(health_router)
    app.include_router(pages_router)

    register_error_handlers(app)
    return app
