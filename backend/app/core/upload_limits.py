# app/core/upload_limits.py
import logging
from typing import Optional

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core.exceptions import error_body

logger = logging.getLogger(__name__)

# boundaries, part headers and the small form fields sent next to the file
MULTIPART_OVERHEAD = 64 * 1024


class UploadSizeLimitMiddleware:
    """Caps request bodies on upload routes before multipart parsing spools them to disk.

    A declared Content-Length over the cap is refused straight away; chunked
    bodies are counted as they arrive and cut off once they pass it.
    """

    def __init__(self, app: ASGIApp, prefix: str, max_body_size: int, max_multiple_body_size: int):
        self.app = app
        self.prefix = prefix.rstrip("/")
        self.max_body_size = max_body_size
        self.max_multiple_body_size = max_multiple_body_size

    def limit_for(self, path: str) -> Optional[int]:
        if not path.startswith(self.prefix):
            return None
        if path.rstrip("/").endswith("/multiple"):
            return self.max_multiple_body_size
        return self.max_body_size

    @staticmethod
    def _message(limit: int) -> str:
        return f"Request body exceeds the upload limit of {limit} bytes"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST":
            await self.app(scope, receive, send)
            return

        limit = self.limit_for(scope["path"])
        if limit is None:
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            logger.info(f"Refused upload to {scope['path']}: declared {declared} bytes, limit {limit}")
            response = JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content=error_body(self._message(limit), "PayloadTooLargeError"),
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    logger.info(f"Cut off upload to {scope['path']} after {received} bytes, limit {limit}")
                    raise HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, self._message(limit))
            return message

        await self.app(scope, limited_receive, send)
