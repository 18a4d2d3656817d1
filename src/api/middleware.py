"""
Request size limits.

Multipart uploads are held to the video size ceiling and everything else
to the JSON body ceiling. A declared Content-Length over the limit is
rejected before the app runs. Bodies without one (chunked transfer) are
counted as they stream in, and reading past the limit raises a 413
HTTPException out of the body read, before any parsing or validation.

This is a plain ASGI middleware because BaseHTTPMiddleware can't wrap
the `receive` channel the route handler reads the body from.
"""

import logging

from starlette.datastructures import Headers
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Room for the title/description form fields and multipart boundaries
MULTIPART_OVERHEAD_BYTES = 1024 * 1024


def too_large_message(ceiling: int) -> str:
    return f"Request too large. Maximum size: {ceiling // (1024 * 1024)}MB"


class RequestSizeLimitMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        max_upload_bytes: int,
        max_json_bytes: int,
    ) -> None:
        self.app = app
        self.max_upload_bytes = max_upload_bytes
        self.max_json_bytes = max_json_bytes

    def _limits_for(self, headers: Headers) -> tuple[int, int]:
        """(enforced byte limit, ceiling reported to the client)"""
        content_type = headers.get("content-type", "")
        if content_type.startswith("multipart/form-data"):
            return self.max_upload_bytes + MULTIPART_OVERHEAD_BYTES, self.max_upload_bytes
        return self.max_json_bytes, self.max_json_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        limit, ceiling = self._limits_for(headers)

        content_length = headers.get("content-length")
        if content_length:
            try:
                size = int(content_length)
            except ValueError:
                response = JSONResponse(
                    status_code=400,
                    content={"error": "Invalid Content-Length header."},
                )
                await response(scope, receive, send)
                return

            if size > limit:
                self._log_rejection(scope, size, limit)
                response = JSONResponse(
                    status_code=413,
                    content={"error": too_large_message(ceiling)},
                )
                await response(scope, receive, send)
                return

        received = 0

        async def receive_limited() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    self._log_rejection(scope, received, limit)
                    raise HTTPException(status_code=413, detail=too_large_message(ceiling))
            return message

        await self.app(scope, receive_limited, send)

    @staticmethod
    def _log_rejection(scope: Scope, size: int, limit: int) -> None:
        logger.warning(
            "Request too large",
            extra={
                "path": scope.get("path"),
                "method": scope.get("method"),
                "content_length": size,
                "max_size": limit,
            }
        )
