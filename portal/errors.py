"""
Terminal error handlers producing the JSON failure envelope.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An error a router answers with its own status and message."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def envelope(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code, content=envelope(exc.message), headers=headers
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder(envelope("Validation failed", errors=errors)),
    )


async def handle_http_error(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    # Routers raise ApiError, so a 404/405 here is a routing miss.
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content=envelope("Endpoint not found"))
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Error: %s %s failed", request.method, request.url.path, exc_info=exc
    )
    content = envelope("Internal server error")
    if request.app.state.settings.is_development:
        content["error"] = str(exc)
    # ServerErrorMiddleware runs outside CORSMiddleware.
    headers = {"Access-Control-Allow-Origin": "*"} if "origin" in request.headers else None
    return JSONResponse(status_code=500, content=content, headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
