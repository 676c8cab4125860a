"""
ASGI middleware for the request pipeline.

``IdleRequestMiddleware`` aborts a request whose body stops arriving.
``FormBodyMiddleware`` turns URL-encoded bodies into JSON so routers accept
either encoding. ``StaticRootsMiddleware`` answers requests that name a file
under one of the static roots and lets everything else continue down the
pipeline.
"""

from __future__ import annotations

import json
import logging
import os
import stat
from pathlib import Path
from typing import Iterable
from urllib.parse import parse_qsl

import anyio
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from portal.errors import envelope

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
BLOCKED_SUFFIXES = (".py", ".pyc", ".pyo")


class RequestIdle(Exception):
    """Raised from ``receive`` when the client stops sending the body."""


class IdleRequestMiddleware:
    """
    Bound every wait for request body data by ``timeout`` seconds.

    When a wait runs out the request is abandoned: whatever the app would have
    answered is discarded and the client gets a 408 with ``Connection: close``
    so the server drops the socket. Waits after the body is complete (for a
    disconnect, say) are not bounded.
    """

    def __init__(self, app: ASGIApp, timeout: float):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        body_complete = False
        idle = False
        response_started = False

        async def receive_bounded() -> Message:
            nonlocal body_complete, idle
            if body_complete:
                return await receive()
            try:
                with anyio.fail_after(self.timeout):
                    message = await receive()
            except TimeoutError:
                idle = True
                raise RequestIdle(scope["path"]) from None
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def send_unless_idle(message: Message) -> None:
            nonlocal response_started
            if idle:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive_bounded, send_unless_idle)
        except RequestIdle:
            pass
        if not idle:
            return

        logger.warning(
            "Aborted %s %s: no body data for %ss",
            scope["method"],
            scope["path"],
            self.timeout,
        )
        if response_started:
            return
        response = JSONResponse(
            status_code=408,
            content=envelope("Request timeout"),
            headers={"Connection": "close"},
        )
        await response(scope, receive, send)


def _content_type(scope: Scope) -> str:
    for name, value in scope["headers"]:
        if name == b"content-type":
            return value.decode("latin-1").split(";")[0].strip().lower()
    return ""


class FormBodyMiddleware:
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or _content_type(scope) != FORM_CONTENT_TYPE:
            await self.app(scope, receive, send)
            return

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body += message.get("body", b"")
            more_body = message.get("more_body", False)

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            response = JSONResponse(
                status_code=400,
                content=envelope(
                    "Validation failed",
                    errors=[{"field": "body", "message": "Form body is not valid UTF-8"}],
                ),
            )
            await response(scope, receive, send)
            return

        fields = dict(parse_qsl(text, keep_blank_values=True))
        payload = json.dumps(fields).encode("utf-8")
        headers = [
            (name, value)
            for name, value in scope["headers"]
            if name not in (b"content-type", b"content-length")
        ]
        headers.append((b"content-type", b"application/json"))
        headers.append((b"content-length", str(len(payload)).encode("latin-1")))

        replayed = False

        async def receive_json() -> Message:
            nonlocal replayed
            if replayed:
                return await receive()
            replayed = True
            return {"type": "http.request", "body": payload, "more_body": False}

        await self.app(dict(scope, headers=headers), receive_json, send)


def _relative_path(path: str) -> str | None:
    parts = [part for part in path.split("/") if part]
    if not parts or any(part.startswith(".") for part in parts):
        return None
    if parts[-1].endswith(BLOCKED_SUFFIXES):
        return None
    return os.path.join(*parts)


class StaticRootsMiddleware:
    def __init__(self, app: ASGIApp, roots: Iterable[Path]):
        self.app = app
        self.roots = [
            StaticFiles(directory=root, check_dir=False)
            for root in roots
            if Path(root).is_dir()
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.app(scope, receive, send)
            return

        relative = _relative_path(scope["path"])
        if relative is not None:
            for files in self.roots:
                full_path, stat_result = await anyio.to_thread.run_sync(
                    files.lookup_path, relative
                )
                if stat_result is not None and stat.S_ISREG(stat_result.st_mode):
                    response = files.file_response(full_path, stat_result, scope)
                    await response(scope, receive, send)
                    return

        await self.app(scope, receive, send)
