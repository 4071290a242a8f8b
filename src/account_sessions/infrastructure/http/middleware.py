"""Request logging and body size limiting middleware."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

MAX_BODY_BYTES = 1_048_576
logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """Reject request bodies larger than `max_body_bytes`.

    A declared `Content-Length` is checked up front. Bodies without one
    (chunked uploads) are counted as they stream in, and reading past the
    limit raises a 413 inside the route that consumes the body.
    """

    def __init__(self, app: ASGIApp, *, max_body_bytes: int = MAX_BODY_BYTES) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                response = JSONResponse(
                    status_code=400,
                    content={"detail": "invalid content-length"},
                )
                await response(scope, receive, send)
                return
            if declared > self.max_body_bytes:
                response = JSONResponse(status_code=413, content={"detail": self._too_large_detail})
                await response(scope, receive, send)
                return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_bytes:
                    logger.warning(
                        "request_body_rejected path=%s received_bytes=%s",
                        scope.get("path"),
                        received,
                    )
                    raise HTTPException(status_code=413, detail=self._too_large_detail)
            return message

        await self.app(scope, limited_receive, send)

    @property
    def _too_large_detail(self) -> str:
        return f"request body must not be larger than {self.max_body_bytes} bytes"


def install_request_middleware(app: FastAPI, *, max_body_bytes: int = MAX_BODY_BYTES) -> None:
    """Log every request and reject bodies larger than `max_body_bytes`."""

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=max_body_bytes)

    @app.middleware("http")
    async def log_request(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        logger.info(
            "request_received method=%s path=%s remote_addr=%s",
            request.method,
            request.url.path,
            request.client.host if request.client else None,
        )
        return await call_next(request)
