"""
HTTP routes owned by the server shell: fixed HTML pages, health and debug.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from portal.config import Settings
from portal.db import ConnectionState, Database
from portal.dependencies import get_database, get_settings
from portal.schemas import DebugResponse, HealthResponse

PAGES = {
    "/": "index.html",
    "/news": "news.html",
    "/calendar": "calendar.html",
    "/admin": "admin.html",
}

pages_router = APIRouter(include_in_schema=False)
health_router = APIRouter()
debug_router = APIRouter()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _page_endpoint(filename: str):
    def serve_page(settings: Settings = Depends(get_settings)) -> HTMLResponse:
        page = settings.project_root / filename
        return HTMLResponse(page.read_text(encoding="utf-8"))

    serve_page.__name__ = f"serve_{filename.split('.')[0]}_page"
    return serve_page


for _path, _filename in PAGES.items():
    pages_router.add_api_route(
        _path,
        _page_endpoint(_filename),
        methods=["GET", "HEAD"],
        response_class=HTMLResponse,
    )


@health_router.get("/health", response_model=HealthResponse)
def health(database: Database = Depends(get_database)):
    state = database.state
    return HealthResponse(
        status="healthy" if state is ConnectionState.CONNECTED else "degraded",
        message="School Portal API is running",
        mongodb=state.label,
        timestamp=_utc_now(),
    )


@debug_router.get("/api/debug", response_model=DebugResponse)
def debug(
    settings: Settings = Depends(get_settings),
    database: Database = Depends(get_database),
):
    """Report which secrets are configured, never their values."""
    return DebugResponse(
        environment=settings.node_env,
        mongodb_uri_set=bool(settings.mongodb_uri),
        jwt_secret_set=bool(settings.jwt_secret),
        mongodb_state=int(database.state),
        deployment_mode=settings.mode.value,
        vercel=settings.vercel,
        timestamp=_utc_now(),
    )
