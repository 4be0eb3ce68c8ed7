"""Request-size guard applied before the multipart body is received."""
from __future__ import annotations

import logging

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# Allowance for multipart boundaries and part headers around the file itself.
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class UploadLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, max_upload_bytes: int, paths: tuple[str, ...] = ("/analyze",)) -> None:
        super().__init__(app)
        self.max_body_bytes = max_upload_bytes + MULTIPART_OVERHEAD_BYTES
        self.max_upload_bytes = max_upload_bytes
        self.paths = paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.paths:
            declared = request.headers.get("content-length")
            # Chunked bodies carry no length; the route's own read limit covers them.
            if declared is not None:
                try:
                    length = int(declared)
                except ValueError:
                    return JSONResponse(
                        status_code=400,
                        content={"error": "Invalid request", "details": "malformed Content-Length"},
                    )
                if length > self.max_body_bytes:
                    logger.info(
                        "upload_rejected_too_large",
                        extra={"path": request.url.path, "content_length": length},
                    )
                    limit_mb = self.max_upload_bytes / (1024 * 1024)
                    return JSONResponse(
                        status_code=400,
                        content={
                            "error": "Image too large",
                            "details": f"request body exceeds {limit_mb:g} MB limit",
                        },
                    )
        return await call_next(request)
